"""
Test doubles and sample data shared by the test modules.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

from src.agents import prompts
from src.agents.ledger import LedgerMutator
from src.core.llm_service import LLMProvider
from src.data.models import Campaign, User

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


class ScriptedProvider(LLMProvider):
    """
    Text generator double.

    Planner calls (recognised by the planner system prompt) return `plan`;
    every other call echoes its prompt unless `reply` is set. Calls are
    recorded as (prompt, system_prompt) pairs.
    """

    def __init__(self, plan: Any = None, reply: Optional[str] = None):
        self.plan = plan
        self.reply = reply
        self.planner_error: Optional[Exception] = None
        self.phrase_error: Optional[Exception] = None
        self.calls: List[Tuple[str, Optional[str]]] = []

    @property
    def planner_calls(self) -> List[str]:
        return [p for p, s in self.calls if s == prompts.PLANNER_SYSTEM_PROMPT]

    @property
    def phrase_calls(self) -> List[str]:
        return [p for p, s in self.calls if s != prompts.PLANNER_SYSTEM_PROMPT]

    async def complete(self, prompt, system_prompt=None, temperature=0.7, max_tokens=1000) -> str:
        self.calls.append((prompt, system_prompt))
        if system_prompt == prompts.PLANNER_SYSTEM_PROMPT:
            if self.planner_error:
                raise self.planner_error
            if isinstance(self.plan, str):
                return self.plan
            return json.dumps(self.plan or {"action": "chat", "params": {}})
        if self.phrase_error:
            raise self.phrase_error
        return self.reply if self.reply is not None else prompt


class SpyLedger(LedgerMutator):
    """Ledger that records every apply_donation call."""

    def __init__(self, store):
        super().__init__(store)
        self.calls = []

    async def apply_donation(self, campaign_id, donor_name, amount, chain):
        self.calls.append((campaign_id, donor_name, amount, chain))
        return await super().apply_donation(campaign_id, donor_name, amount, chain)


def make_campaigns() -> List[Campaign]:
    return [
        Campaign(
            id="c1",
            title="Clean Water",
            description="Wells and filters for safe drinking water.",
            category="environment",
            goal=1000,
            raised=100,
            chains=["Ethereum", "Solana"],
            creator_id="u1",
            created_at=NOW - timedelta(days=30),
        ),
        Campaign(
            id="c2",
            title="EdTech for All",
            description="Bringing technology to classrooms.",
            category="education",
            goal=5000,
            raised=0,
            chains=["Solana"],
            creator_id="u1",
            created_at=NOW - timedelta(days=1),
        ),
        Campaign(
            id="c3",
            title="Cat Rescue Network",
            description="Shelter for rescued cats.",
            category="animals",
            goal=2000,
            raised=1500,
            chains=["Bitcoin"],
            creator_id="u2",
            created_at=NOW - timedelta(days=10),
        ),
        Campaign(
            id="c4",
            title="Rural Education Fund",
            description="Books and teachers for village schools.",
            category="education",
            goal=3000,
            raised=200,
            chains=["Ethereum"],
            creator_id="u1",
        ),
        Campaign(
            id="c5",
            title="Neighborhood Pantry",
            description="Groceries for families in need.",
            category="community",
            goal=100,
            raised=0,
            chains=[],
            creator_id="u1",
        ),
        Campaign(
            id="c6",
            title="Water Wells for Villages",
            description="Boreholes in dry regions.",
            category="environment",
            goal=8000,
            raised=400,
            chains=["Ethereum"],
            creator_id="u2",
        ),
    ]


def make_users() -> List[User]:
    return [
        User(id="u1", username="maria", email="maria@example.com", role="creator", total_raised=700),
        User(id="u2", username="sam", email="sam@example.com", role="user"),
    ]


