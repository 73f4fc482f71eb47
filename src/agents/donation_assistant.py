"""
Donation Assistant

Per-request pipeline behind `POST /assist`:

    screen -> (shortcut | rewrite) -> plan -> dispatch -> phrase

The assistant holds no conversation state between requests. Everything it
knows about the conversation arrives in the caller's `ConversationContext`.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from src.agents import prompts
from src.agents.entity_catalog import EntityCatalog, NumericRange
from src.agents.intent_planner import (
    ChatAction,
    ClarifyAction,
    DonateAction,
    InfoAction,
    IntentPlanner,
    RejectAction,
    SearchAction,
    SuggestAction,
)
from src.agents.ledger import DonationReceipt, LedgerMutator
from src.agents.query_normalizer import normalize_query
from src.agents.reference_resolver import (
    ReferenceResolver,
    ResolutionStatus,
    extract_last_donation,
    parse_amount,
)
from src.config import Settings, settings as default_settings
from src.core.errors import GenerationError, is_client_error
from src.core.identity import donor_name_for
from src.core.llm_service import LLMService
from src.data.models import ChatMessage, ConversationContext, Identity, ResolvedDonationTarget
from src.data.store import CampaignStore

logger = structlog.get_logger()

MALICIOUS_RE = re.compile(
    r"(\bselect\b.*\bfrom\b|\bunion\b.*\bselect\b|\bdrop\b\s+table|</?script|javascript:"
    r"|onerror\s*=|onload\s*=|<iframe|<img|<svg|eval\(|srcdoc=|data:text/)",
    re.IGNORECASE,
)
LAST_RESULTS_RE = re.compile(r"\bwhat (?:campaign|ones?) did (?:you|u) (?:just )?find\b", re.IGNORECASE)
REPEAT_RE = re.compile(r"\b(again|same)\b", re.IGNORECASE)


@dataclass
class AssistResponse:
    text: str
    results: Optional[List[Dict[str, Any]]] = None
    receipt: Optional[DonationReceipt] = None
    action: str = ""

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"text": self.text}
        if self.results is not None:
            body["results"] = self.results
        if self.receipt is not None:
            body["receipt"] = self.receipt.to_dict()
        return body


@dataclass(frozen=True)
class Turn:
    """One user request as seen by the action handlers."""

    prompt: str
    context: ConversationContext = field(default_factory=ConversationContext)
    pay_mode: bool = False
    identity: Optional[Identity] = None


Handler = Callable[[Any, Turn], Awaitable[AssistResponse]]


class DonationAssistant:
    """
    Screens, plans and dispatches one assistant request.

    Handlers are registered per action name; each turns the planned Action
    into an AssistResponse. Generator failures never escape a handler. A
    failed ledger write does (`PersistenceError`), because a donation whose
    total could not be saved must not be reported as a success.
    """

    def __init__(
        self,
        store: CampaignStore,
        llm: LLMService,
        config: Optional[Settings] = None,
        planner: Optional[IntentPlanner] = None,
        ledger: Optional[LedgerMutator] = None,
    ):
        self._settings = config or default_settings
        self._llm = llm
        self._catalog = EntityCatalog(store, page_size=self._settings.search_result_limit)
        self._resolver = ReferenceResolver(self._catalog)
        self._planner = planner or IntentPlanner(llm, self._settings)
        self._ledger = ledger or LedgerMutator(store)
        self._handlers: Dict[str, Handler] = {}
        self._logger = logger.bind(component="donation_assistant")

        self.register_handler("search", self._handle_search)
        self.register_handler("donate", self._handle_donate)
        self.register_handler("suggest", self._handle_suggest)
        self.register_handler("clarify", self._handle_clarify)
        self.register_handler("info", self._handle_info)
        self.register_handler("chat", self._handle_chat)
        self.register_handler("reject", self._handle_reject)

    @property
    def catalog(self) -> EntityCatalog:
        return self._catalog

    def register_handler(self, action: str, handler: Handler) -> None:
        """Register a handler for a planned action."""
        self._handlers[action] = handler

    async def assist(
        self,
        prompt: str,
        mode: str = "default",
        context: Optional[ConversationContext] = None,
        identity: Optional[Identity] = None,
    ) -> AssistResponse:
        context = context or ConversationContext()
        self._logger.info(
            "assist_request",
            mode=mode,
            prompt_length=len(prompt),
            last_results=len(context.last_results),
            messages=len(context.messages),
        )

        if MALICIOUS_RE.search(prompt):
            self._logger.warning("malicious_input_rejected")
            return AssistResponse(text=prompts.MALICIOUS_INPUT_REFUSAL, action="screen")

        if mode == "rewrite":
            return AssistResponse(text=await self._phrase(prompt), action="rewrite")

        if context.last_results and LAST_RESULTS_RE.search(prompt):
            refs = context.last_results
            return AssistResponse(
                text=prompts.last_results_text([r.title for r in refs]),
                results=[{"id": r.id, "title": r.title} for r in refs],
                action="shortcut",
            )

        action = await self._planner.plan(prompt, context)
        handler = self._handlers[action.action]
        turn = Turn(prompt=prompt, context=context, pay_mode=mode == "pay", identity=identity)
        response = await handler(action, turn)
        response.action = action.action
        return response

    async def _phrase(
        self,
        instruction: str,
        chat_context: Optional[Sequence[ChatMessage]] = None,
        fallback: Optional[str] = None,
    ) -> str:
        """
        Ask the generator to phrase `instruction` for the user.

        On failure returns `fallback` when given, otherwise a one-line
        apology that only distinguishes a rejected (400) request from any
        other failure. An empty reply counts as a failure.
        """
        system_prompt = prompts.executor_system_prompt(
            await self._catalog.all(), self._settings.executor_system_prompt
        )
        user_prompt = prompts.with_chat_context(
            instruction, chat_context, self._settings.executor_context_messages
        )
        try:
            text = await self._llm.generate(user_prompt, system_prompt=system_prompt)
        except GenerationError as e:
            self._logger.warning("phrasing_failed", error=e.message, status=e.upstream_status)
            if fallback is not None:
                return fallback
            return prompts.CLIENT_ERROR_APOLOGY if is_client_error(e) else prompts.GENERIC_APOLOGY
        if text:
            return text
        return fallback if fallback is not None else prompts.GENERIC_APOLOGY

    async def _handle_search(self, action: SearchAction, turn: Turn) -> AssistResponse:
        p = action.params
        query = p.q.strip() if p.q and p.q.strip() else turn.prompt
        page = await self._catalog.search(
            normalize_query(query),
            category=p.category,
            goal=NumericRange(p.goal.min, p.goal.max) if p.goal else None,
            raised=NumericRange(p.raised.min, p.raised.max) if p.raised else None,
            sort_by=p.sort_by,
        )

        if not page:
            query_params = p.model_dump(by_alias=True, exclude_none=True)
            return AssistResponse(text=await self._phrase(prompts.nothing_found_instruction(query_params)))

        results = [c.to_result() for c in page]
        text = await self._phrase(prompts.search_results_instruction(results, page.total))
        return AssistResponse(text=text, results=results)

    async def _handle_donate(self, action: DonateAction, turn: Turn) -> AssistResponse:
        if not turn.pay_mode:
            return AssistResponse(text=await self._phrase(prompts.PAY_MODE_OFF_INSTRUCTION))

        p = action.params
        prior = extract_last_donation(turn.context.messages) if REPEAT_RE.search(turn.prompt) else None
        title = (p.title or (prior.title if prior else "")).strip()

        resolution = await self._resolver.resolve(
            title=title,
            raw_text=turn.prompt,
            last_results=turn.context.last_results,
            context_ordinal=p.use_context_ordinal,
        )
        if resolution.status == ResolutionStatus.AMBIGUOUS:
            titles = [c.title for c in resolution.candidates]
            text = await self._phrase(
                prompts.ambiguous_instruction(titles),
                fallback=f"Multiple campaigns match:\n{prompts.numbered_titles(titles)}\nWhich one did you mean?",
            )
            return AssistResponse(text=text, results=[c.to_result() for c in resolution.candidates])
        if resolution.status == ResolutionStatus.NOT_FOUND:
            instruction = prompts.not_found_instruction(title) if title else prompts.UNRESOLVED_TARGET_INSTRUCTION
            return AssistResponse(text=await self._phrase(instruction))

        campaign = resolution.campaign
        if not campaign.chains:
            return AssistResponse(text=prompts.NO_CHAINS_MESSAGE)

        requested_chain = (p.chain or (prior.chain if prior else "")).strip()
        if requested_chain:
            chain = next((c for c in campaign.chains if c.lower() == requested_chain.lower()), None)
            if chain is None:
                return AssistResponse(text=prompts.unsupported_chain_message(requested_chain, campaign.chains))
        else:
            chain = campaign.chains[0]

        amount = self._resolve_amount(p.amount, turn.prompt, prior.amount if prior else None)
        if amount <= 0:
            return AssistResponse(text=await self._phrase(prompts.ask_amount_instruction(campaign.title, chain)))

        target = ResolvedDonationTarget(
            campaign=campaign, chain=chain, amount=amount, donor_name=donor_name_for(turn.identity)
        )
        receipt = await self._ledger.apply(target)

        text = await self._phrase(
            prompts.confirmation_instruction(target.donor_name, amount, chain, campaign.title),
            fallback=prompts.confirmation_fallback(amount, chain, campaign.title),
        )
        return AssistResponse(text=text, receipt=receipt)

    @staticmethod
    def _resolve_amount(planned: Optional[float], prompt: str, prior: Optional[float]) -> float:
        # planner amount, then the amount written in the prompt, then the repeated donation
        for candidate in (planned, parse_amount(prompt), prior):
            if candidate is not None and math.isfinite(candidate) and candidate > 0:
                return candidate
        return 0.0

    async def _handle_suggest(self, action: SuggestAction, turn: Turn) -> AssistResponse:
        interests = (action.params.interests or "").strip()
        last_results = turn.context.last_results

        candidates = []
        for ref in last_results:
            campaign = await self._catalog.by_id(ref.id)
            if campaign is not None:
                candidates.append(campaign)

        if not candidates:
            needle = (interests or turn.prompt).lower()
            candidates = [
                c for c in await self._catalog.all()
                if needle in c.title.lower()
                or needle in (c.category or "").lower()
                or needle in c.description.lower()
            ][: self._settings.search_result_limit]

        if not candidates:
            candidates = (await self._catalog.all())[: self._settings.suggest_fallback_limit]

        summaries = [{**prompts.campaign_summary(c), "creatorId": c.creator_id} for c in candidates]
        text = await self._phrase(
            prompts.suggest_instruction(turn.prompt, interests, bool(last_results), summaries)
        )
        return AssistResponse(
            text=text,
            results=[{**c.to_result(), "description": c.description} for c in candidates],
        )

    async def _handle_clarify(self, action: ClarifyAction, turn: Turn) -> AssistResponse:
        return AssistResponse(
            text=await self._phrase(prompts.clarify_instruction(turn.prompt, action.params.questions))
        )

    async def _handle_info(self, action: InfoAction, turn: Turn) -> AssistResponse:
        topic = (action.params.topic or "").strip()
        return AssistResponse(text=await self._phrase(prompts.info_instruction(topic), turn.context.messages))

    async def _handle_chat(self, action: ChatAction, turn: Turn) -> AssistResponse:
        tone = (action.params.tone or "").strip()
        return AssistResponse(
            text=await self._phrase(prompts.chat_instruction(turn.prompt, tone), turn.context.messages)
        )

    async def _handle_reject(self, action: RejectAction, turn: Turn) -> AssistResponse:
        reason = (action.params.reason or "").strip()
        self._logger.info("request_rejected_by_planner", reason=reason)
        return AssistResponse(text=await self._phrase(prompts.reject_instruction(reason)))
