"""
Intent Planner

Turns raw user text plus conversation context into exactly one Action by a
single call to the text generator. The generator's JSON is validated against a
strict tagged union; anything that does not validate, and any generator
failure, becomes a `clarify` action with a fixed question.
"""

from typing import Annotated, Any, List, Literal, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from src.agents import prompts
from src.config import Settings, settings as default_settings
from src.core.errors import GenerationError
from src.core.llm_service import LLMService
from src.data.models import ConversationContext

logger = structlog.get_logger()


class _Params(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class RangeParams(_Params):
    min: Optional[float] = None
    max: Optional[float] = None


class SearchParams(_Params):
    q: Optional[str] = None
    category: Optional[str] = None
    goal: Optional[RangeParams] = None
    raised: Optional[RangeParams] = None
    sort_by: Optional[Literal["goal", "raised", "newest"]] = Field(default=None, alias="sortBy")


class DonateParams(_Params):
    title: Optional[str] = None
    chain: Optional[str] = None
    amount: Optional[float] = None
    use_context_ordinal: Optional[int] = Field(default=None, alias="useContextOrdinal")


class SuggestParams(_Params):
    interests: Optional[str] = None


class ClarifyParams(_Params):
    questions: List[str] = Field(default_factory=list)


class InfoParams(_Params):
    topic: Optional[str] = None


class ChatParams(_Params):
    tone: Optional[str] = None


class RejectParams(_Params):
    reason: Optional[str] = None


class _ActionBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _default_params(cls, data: Any) -> Any:
        # `params` may be omitted or null
        if isinstance(data, dict) and data.get("params") is None:
            data = {**data, "params": {}}
        return data


class SearchAction(_ActionBase):
    action: Literal["search"]
    params: SearchParams


class DonateAction(_ActionBase):
    action: Literal["donate"]
    params: DonateParams


class SuggestAction(_ActionBase):
    action: Literal["suggest"]
    params: SuggestParams


class ClarifyAction(_ActionBase):
    action: Literal["clarify"]
    params: ClarifyParams


class InfoAction(_ActionBase):
    action: Literal["info"]
    params: InfoParams


class ChatAction(_ActionBase):
    action: Literal["chat"]
    params: ChatParams


class RejectAction(_ActionBase):
    action: Literal["reject"]
    params: RejectParams


Action = Annotated[
    Union[SearchAction, DonateAction, SuggestAction, ClarifyAction, InfoAction, ChatAction, RejectAction],
    Field(discriminator="action"),
]

_action_adapter = TypeAdapter(Action)


def fallback_action() -> ClarifyAction:
    return ClarifyAction(action="clarify", params=ClarifyParams(questions=[prompts.PLANNER_FALLBACK_QUESTION]))


def parse_action(raw: str) -> Optional[Action]:
    """Strictly parse a generator reply; None when it is not exactly one valid Action."""
    text = (raw or "").strip()
    if not text:
        return None
    try:
        return _action_adapter.validate_json(text)
    except ValidationError:
        return None


class IntentPlanner:
    """Single-shot planner. Never raises; degraded planning is a `clarify` action."""

    def __init__(self, llm: LLMService, config: Optional[Settings] = None):
        self._llm = llm
        self._settings = config or default_settings
        self._logger = logger.bind(component="intent_planner")

    @property
    def system_prompt(self) -> str:
        return self._settings.planner_system_prompt or prompts.PLANNER_SYSTEM_PROMPT

    async def plan(self, prompt: str, context: Optional[ConversationContext] = None) -> Action:
        context = context or ConversationContext()
        instruction = prompts.planner_instruction(
            prompt,
            context.last_results,
            context.messages,
            self._settings.planner_context_messages,
        )

        try:
            raw = await self._llm.generate(instruction, system_prompt=self.system_prompt)
        except GenerationError as e:
            self._logger.warning("planner_generation_failed", error=e.message)
            return fallback_action()

        action = parse_action(raw)
        if action is None:
            self._logger.warning("planner_output_invalid", raw_preview=(raw or "")[:200])
            return fallback_action()

        self._logger.info("action_planned", action=action.action)
        return action
