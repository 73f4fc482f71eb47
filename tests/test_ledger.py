"""
Tests for the donation ledger.
"""

import asyncio

import pytest

from src.agents.ledger import LedgerMutator
from src.core.errors import CampaignNotFound, DonationRejected, PersistenceError
from src.data.models import ResolvedDonationTarget
from src.data.store import JsonFileStore

from tests.helpers import make_campaigns, make_users


class BrokenUpdateStore(JsonFileStore):
    """Store whose campaign update silently fails."""

    async def update_campaign(self, campaign_id, patch):
        return None


class TestLedgerMutator:
    """Tests for LedgerMutator.apply_donation."""

    @pytest.fixture
    def ledger(self, store):
        return LedgerMutator(store)

    @pytest.mark.asyncio
    async def test_raised_increases_by_exact_amount(self, ledger, store):
        before = await store.by_id("c1")
        receipt = await ledger.apply_donation("c1", "maria", 25.5, "Ethereum")

        assert receipt.campaign.raised == before.raised + 25.5
        assert (await store.by_id("c1")).raised == before.raised + 25.5

        donations = await store.donations_for("c1")
        assert len(donations) == 1
        assert donations[0].amount == 25.5
        assert donations[0].chain == "Ethereum"
        assert donations[0].donor_name == "maria"
        assert receipt.donation.id == donations[0].id

    @pytest.mark.asyncio
    async def test_apply_resolved_target(self, ledger, store):
        campaign = await store.by_id("c3")
        target = ResolvedDonationTarget(campaign=campaign, chain="Bitcoin", amount=12, donor_name="sam")

        receipt = await ledger.apply(target)

        assert receipt.campaign.raised == 1512
        assert [(d.donor_name, d.amount, d.chain) for d in await store.donations_for("c3")] == [("sam", 12, "Bitcoin")]

    @pytest.mark.asyncio
    async def test_may_exceed_goal(self, ledger, store):
        receipt = await ledger.apply_donation("c1", "Anonymous", 5000, "Solana")
        assert receipt.campaign.raised == 5100
        assert receipt.campaign.progress == pytest.approx(510.0)

    @pytest.mark.asyncio
    async def test_creator_aggregate_incremented(self, ledger, store):
        await ledger.apply_donation("c1", "Anonymous", 40, "Ethereum")
        assert (await store.find_user_by_id("u1")).total_raised == 740

    @pytest.mark.asyncio
    async def test_non_creator_owner_not_incremented(self, ledger, store):
        await ledger.apply_donation("c3", "Anonymous", 40, "Bitcoin")
        assert (await store.find_user_by_id("u2")).total_raised == 0

    @pytest.mark.asyncio
    async def test_unsupported_chain_rejected(self, ledger, store):
        with pytest.raises(DonationRejected):
            await ledger.apply_donation("c1", "Anonymous", 10, "Bitcoin")
        assert await store.donations_for("c1") == []
        assert (await store.by_id("c1")).raised == 100

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, float("inf"), float("nan")])
    async def test_invalid_amount_rejected(self, ledger, store, amount):
        with pytest.raises(DonationRejected):
            await ledger.apply_donation("c1", "Anonymous", amount, "Ethereum")
        assert await store.donations_for("c1") == []

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, ledger):
        with pytest.raises(CampaignNotFound):
            await ledger.apply_donation("missing", "Anonymous", 10, "Ethereum")

    @pytest.mark.asyncio
    async def test_failed_update_rolls_back_donation(self):
        store = BrokenUpdateStore(campaigns=make_campaigns(), users=make_users())
        ledger = LedgerMutator(store)

        with pytest.raises(PersistenceError):
            await ledger.apply_donation("c1", "Anonymous", 10, "Ethereum")

        assert await store.donations_for("c1") == []
        assert (await store.find_user_by_id("u1")).total_raised == 700

    @pytest.mark.asyncio
    async def test_concurrent_donations_do_not_lose_updates(self, ledger, store):
        await asyncio.gather(*[ledger.apply_donation("c1", "Anonymous", 1, "Ethereum") for _ in range(20)])
        assert (await store.by_id("c1")).raised == 120
        assert len(await store.donations_for("c1")) == 20

    @pytest.mark.asyncio
    async def test_receipt_wire_shape(self, ledger):
        receipt = await ledger.apply_donation("c1", "maria", 25, "Ethereum")
        body = receipt.to_dict()

        assert set(body["donation"]) == {"id", "campaignId", "amount", "chain", "donorName", "timestamp"}
        assert body["donation"]["campaignId"] == "c1"
        assert body["donation"]["donorName"] == "maria"
        assert body["campaign"] == {"id": "c1", "raised": 125, "goal": 1000, "progress": 12.5}
