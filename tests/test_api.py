"""
Tests for the HTTP API.
"""

import pytest
from fastapi.testclient import TestClient

from src.agents import prompts
from src.api.main import create_app
from src.core.identity import IdentityProvider
from src.data.store import JsonFileStore

from tests.helpers import make_campaigns, make_users


class BrokenUpdateStore(JsonFileStore):
    async def update_campaign(self, campaign_id, patch):
        return None


@pytest.fixture
def client(store, llm, test_settings):
    return TestClient(create_app(store=store, llm=llm, config=test_settings))


class TestAssistEndpoint:
    """Tests for POST /assist."""

    @pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}])
    def test_missing_prompt(self, client, body):
        response = client.post("/assist", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing prompt"}

    def test_non_string_prompt(self, client):
        response = client.post("/assist", json={"prompt": ["not", "text"]})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_unknown_mode_is_rejected(self, client, provider):
        response = client.post("/assist", json={"prompt": "donate 5 to clean water", "mode": "payy"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request"}
        assert provider.calls == []

    def test_search(self, client, provider):
        provider.plan = {"action": "search", "params": {"q": "cat"}}
        response = client.post("/assist", json={"prompt": "show me cat campaigns"})

        assert response.status_code == 200
        body = response.json()
        assert [r["id"] for r in body["results"]] == ["c3"]
        assert "receipt" not in body

    def test_malicious_prompt_is_refused_with_200(self, client, provider):
        response = client.post("/assist", json={"prompt": "<script>alert(1)</script>", "mode": "pay"})
        assert response.status_code == 200
        assert response.json() == {"text": prompts.MALICIOUS_INPUT_REFUSAL}
        assert provider.calls == []

    def test_donate_returns_receipt(self, client, provider):
        provider.plan = {"action": "donate", "params": {"amount": 20}}
        response = client.post(
            "/assist",
            json={
                "prompt": "donate 20 to the first one",
                "mode": "pay",
                "context": {"lastResults": [{"id": "c1", "title": "Clean Water"}], "messages": []},
            },
        )

        assert response.status_code == 200
        receipt = response.json()["receipt"]
        assert receipt["donation"]["campaignId"] == "c1"
        assert receipt["donation"]["amount"] == 20
        assert receipt["donation"]["chain"] == "Ethereum"
        assert receipt["donation"]["donorName"] == "Anonymous"
        assert receipt["campaign"]["raised"] == 120

        donations = client.get("/api/v1/campaigns/c1/donations").json()
        assert donations["count"] == 1
        assert donations["donations"][0]["amount"] == 20

    def test_donor_name_from_auth_cookie(self, store, llm, provider, test_settings):
        client = TestClient(create_app(store=store, llm=llm, config=test_settings))
        token = IdentityProvider(store, test_settings).create_token("u1")
        client.cookies.set(test_settings.auth_cookie_name, token)
        provider.plan = {"action": "donate", "params": {"title": "Clean Water", "amount": 5}}

        response = client.post("/assist", json={"prompt": "donate 5 to clean water", "mode": "pay"})
        assert response.json()["receipt"]["donation"]["donorName"] == "maria"

    def test_bad_cookie_means_anonymous(self, client, provider, test_settings):
        client.cookies.set(test_settings.auth_cookie_name, "not-a-jwt")
        provider.plan = {"action": "donate", "params": {"title": "Clean Water", "amount": 5}}

        response = client.post("/assist", json={"prompt": "donate 5 to clean water", "mode": "pay"})
        assert response.json()["receipt"]["donation"]["donorName"] == "Anonymous"

    def test_persistence_failure_is_500(self, llm, provider, test_settings):
        store = BrokenUpdateStore(campaigns=make_campaigns(), users=make_users())
        client = TestClient(create_app(store=store, llm=llm, config=test_settings))
        provider.plan = {"action": "donate", "params": {"title": "Clean Water", "amount": 5}}

        response = client.post("/assist", json={"prompt": "donate 5 to clean water", "mode": "pay"})
        assert response.status_code == 500
        assert response.json() == {"error": prompts.PERSISTENCE_FAILURE_MESSAGE}


class TestPaymentsEndpoint:
    """Tests for POST /api/payments."""

    def test_direct_donation(self, client):
        response = client.post(
            "/api/payments",
            json={"campaignId": "c1", "amount": 40, "chain": "Solana", "donorName": "sam"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["donation"]["campaignId"] == "c1"
        assert body["donation"]["donorName"] == "sam"
        assert body["campaign"]["raised"] == 140

        donations = client.get("/api/v1/campaigns/c1/donations").json()
        assert [d["amount"] for d in donations["donations"]] == [40]

    def test_may_exceed_goal(self, client):
        response = client.post(
            "/api/payments",
            json={"campaignId": "c3", "amount": 1000, "chain": "Bitcoin", "donorName": "sam"},
        )
        assert response.status_code == 200
        assert response.json()["campaign"]["raised"] == 2500

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"amount": 5, "chain": "Ethereum", "donorName": "sam"},
            {"campaignId": "c1", "chain": "Ethereum", "donorName": "sam"},
            {"campaignId": "c1", "amount": 5, "donorName": "sam"},
            {"campaignId": "c1", "amount": 5, "chain": "Ethereum"},
        ],
    )
    def test_missing_fields(self, client, body):
        response = client.post("/api/payments", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields: campaignId, amount, chain, donorName"}

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, client, amount):
        response = client.post(
            "/api/payments",
            json={"campaignId": "c1", "amount": amount, "chain": "Ethereum", "donorName": "sam"},
        )
        assert response.status_code == 400
        assert client.get("/api/v1/campaigns/c1/donations").json()["count"] == 0

    def test_unknown_campaign(self, client):
        response = client.post(
            "/api/payments",
            json={"campaignId": "nope", "amount": 5, "chain": "Ethereum", "donorName": "sam"},
        )
        assert response.status_code == 404

    def test_campaign_without_chains(self, client):
        response = client.post(
            "/api/payments",
            json={"campaignId": "c5", "amount": 5, "chain": "Ethereum", "donorName": "sam"},
        )
        assert response.status_code == 400

    def test_unsupported_chain(self, client):
        response = client.post(
            "/api/payments",
            json={"campaignId": "c3", "amount": 5, "chain": "Ethereum", "donorName": "sam"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Campaign does not support Ethereum payments"}
        assert client.get("/api/v1/campaigns/c3").json()["raised"] == 1500


class TestCampaignEndpoints:
    """Tests for the read-only campaign routes."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_list(self, client):
        body = client.get("/api/v1/campaigns").json()
        assert body["count"] == 6

    def test_list_filtered(self, client):
        body = client.get("/api/v1/campaigns", params={"q": "water"}).json()
        assert [c["id"] for c in body["campaigns"]] == ["c1", "c6"]

    def test_get_one(self, client):
        body = client.get("/api/v1/campaigns/c1").json()
        assert body["title"] == "Clean Water"
        assert body["progress"] == pytest.approx(10.0)

    def test_unknown_campaign(self, client):
        response = client.get("/api/v1/campaigns/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Campaign not found"}

        response = client.get("/api/v1/campaigns/nope/donations")
        assert response.status_code == 404
