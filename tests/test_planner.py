"""
Tests for the intent planner and its strict action parsing.
"""

import pytest

from src.agents import prompts
from src.agents.intent_planner import (
    ClarifyAction,
    DonateAction,
    IntentPlanner,
    SearchAction,
    parse_action,
)
from src.core.errors import GenerationError
from src.data.models import ChatMessage, ConversationContext, ResultRef


class TestParseAction:
    """Tests for the tagged-union parse."""

    def test_search_with_aliases(self):
        action = parse_action('{"action":"search","params":{"q":"water","sortBy":"goal","goal":{"min":100}}}')
        assert isinstance(action, SearchAction)
        assert action.params.sort_by == "goal"
        assert action.params.goal.min == 100
        assert action.params.goal.max is None

    def test_donate_ordinal_alias(self):
        action = parse_action('{"action":"donate","params":{"amount":25,"useContextOrdinal":2}}')
        assert isinstance(action, DonateAction)
        assert action.params.amount == 25
        assert action.params.use_context_ordinal == 2

    @pytest.mark.parametrize("raw", ['{"action":"info"}', '{"action":"info","params":null}'])
    def test_missing_params_default(self, raw):
        action = parse_action(raw)
        assert action.action == "info"
        assert action.params.topic is None

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "not json",
            "[]",
            '{"params":{}}',
            '{"action":"transfer","params":{}}',
            '{"action":"search","params":{"q":"x","limit":5}}',
            '{"action":"search","params":{"sortBy":"oldest"}}',
            '{"action":"chat","params":{},"extra":1}',
            '```json\n{"action":"chat","params":{}}\n```',
        ],
    )
    def test_rejects_deviations(self, raw):
        assert parse_action(raw) is None

    def test_surrounding_whitespace(self):
        assert parse_action('  {"action":"chat","params":{"tone":"playful"}}\n').params.tone == "playful"


class TestIntentPlanner:
    """Tests for IntentPlanner.plan."""

    @pytest.fixture
    def planner(self, llm, test_settings):
        return IntentPlanner(llm, test_settings)

    @pytest.mark.asyncio
    async def test_plans_action(self, planner, provider):
        provider.plan = {"action": "search", "params": {"q": "water"}}
        action = await planner.plan("find water projects")
        assert isinstance(action, SearchAction)
        assert action.params.q == "water"
        assert len(provider.planner_calls) == 1

    @pytest.mark.asyncio
    async def test_invalid_output_falls_back_to_clarify(self, planner, provider):
        provider.plan = "Sure! I think you want to search."
        action = await planner.plan("hmm")
        assert isinstance(action, ClarifyAction)
        assert action.params.questions == [prompts.PLANNER_FALLBACK_QUESTION]

    @pytest.mark.asyncio
    async def test_generator_failure_falls_back_to_clarify(self, planner, provider):
        provider.planner_error = GenerationError("upstream down", status_code=503)
        action = await planner.plan("search water")
        assert isinstance(action, ClarifyAction)
        assert action.params.questions == [prompts.PLANNER_FALLBACK_QUESTION]
        # single attempt, no retry
        assert len(provider.planner_calls) == 1

    @pytest.mark.asyncio
    async def test_instruction_carries_context(self, planner, provider):
        messages = [ChatMessage("user", f"msg-{i:02d}") for i in range(10)]
        context = ConversationContext(
            last_results=[ResultRef("c1", "Clean Water"), ResultRef("c6", "Water Wells for Villages")],
            messages=messages,
        )
        await planner.plan('donate "5" to the second', context)

        instruction = provider.planner_calls[0]
        assert instruction.startswith('USER: "donate \\"5\\" to the second"\n')
        assert "1. Clean Water (#c1)\n2. Water Wells for Villages (#c6)" in instruction
        assert "msg-01" not in instruction
        assert "USER: msg-02" in instruction
        assert "USER: msg-09" in instruction

    @pytest.mark.asyncio
    async def test_empty_context_placeholders(self, planner, provider):
        await planner.plan("hello")
        instruction = provider.planner_calls[0]
        assert "CONTEXT_LAST_RESULTS:\n[]\n" in instruction
        assert "RECENT_CHAT:\nNone\n" in instruction
