"""
Donation target resolution.

Maps loose references ("the second one", "clean water", "same as last time")
to exactly one campaign, or reports that nothing or several things matched so
the caller can ask the user.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import structlog

from src.agents.entity_catalog import EntityCatalog
from src.data.models import Campaign, ChatMessage, ResultRef

logger = structlog.get_logger()


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass
class Resolution:
    status: ResolutionStatus
    campaign: Optional[Campaign] = None
    candidates: List[Campaign] = field(default_factory=list)
    strategy: str = ""

    @property
    def resolved(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED


@dataclass(frozen=True)
class PriorDonation:
    """Parameters recovered from the most recent donation confirmation."""

    title: str
    chain: str
    amount: float


ORDINAL_WORDS = {
    "first": 1, "1st": 1, "1": 1,
    "second": 2, "2nd": 2, "2": 2,
    "third": 3, "3rd": 3, "3": 3,
}

_AMOUNT_RE = re.compile(r"\$?\b([0-9][0-9,]*(?:\.[0-9]{1,2})?)\b")
_GRAND_RE = re.compile(r"\bgrands?\b")
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")

_AMOUNT_GROUP = r"\$(?P<amount>[0-9][0-9,]*(?:\.[0-9]{1,2})?)"
_CHAIN_GROUP = r"(?P<chain>[A-Za-z0-9 _-]+)"
_TITLE_GROUP = r'"(?P<title>[^"]+)"'

# "Donated $10 via Ethereum to "Clean Water"."
_CONFIRMATION_VIA_FIRST = re.compile(
    _AMOUNT_GROUP + r".*? via " + _CHAIN_GROUP + r" to " + _TITLE_GROUP,
    re.IGNORECASE,
)
# "Your donation of $10 to "Clean Water" went through via Ethereum"
_CONFIRMATION_TITLE_FIRST = re.compile(
    r"donat(?:ed|ion)[^$]*" + _AMOUNT_GROUP + r'.*? to ' + _TITLE_GROUP + r".*? via " + _CHAIN_GROUP,
    re.IGNORECASE,
)


def parse_amount(text: str) -> Optional[float]:
    """
    Parse a dollar amount out of free text.

    Accepts "$25", "25", "1,500.50" and "5 grand" (x1000). Any "%" voids the
    parse so "10%" is never read as ten dollars.
    """
    s = (text or "").lower()
    if "%" in s:
        return None
    match = _AMOUNT_RE.search(s)
    if not match:
        return None
    try:
        amount = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    if _GRAND_RE.search(s):
        amount *= 1000
    if not math.isfinite(amount):
        return None
    return amount


def extract_last_donation(messages: Sequence[ChatMessage]) -> Optional[PriorDonation]:
    """Scan assistant messages newest first for a donation confirmation."""
    for message in reversed(list(messages or [])):
        if message.role != "assistant":
            continue
        text = message.text or ""
        match = _CONFIRMATION_VIA_FIRST.search(text) or _CONFIRMATION_TITLE_FIRST.search(text)
        if not match:
            continue
        amount = parse_amount(match.group("amount"))
        if amount is None:
            continue
        return PriorDonation(
            title=match.group("title").strip(),
            chain=match.group("chain").strip(),
            amount=amount,
        )
    return None


class ReferenceResolver:
    """Resolves which campaign a donation request refers to."""

    def __init__(self, catalog: EntityCatalog):
        self._catalog = catalog
        self._logger = logger.bind(component="reference_resolver")

    async def resolve(
        self,
        title: str = "",
        raw_text: str = "",
        last_results: Sequence[ResultRef] = (),
        context_ordinal: Optional[int] = None,
    ) -> Resolution:
        """
        Try each strategy in order; the first hit wins.

        1. exact (normalized) title match against the whole catalog
        2. planner-supplied ordinal into the previous results
        3. the only previous result
        4. ordinal words in the raw text ("second", "2nd", "2")
        5. best token overlap with previous result titles
        6. free-text title search: none -> not found, many -> ambiguous
        """
        title = (title or "").strip()
        last_results = list(last_results or [])

        if title:
            campaign = await self._catalog.by_exact_title(title)
            if campaign:
                return self._hit(campaign, "exact_title")

        if context_ordinal is not None and 1 <= context_ordinal <= len(last_results):
            campaign = await self._catalog.by_id(last_results[context_ordinal - 1].id)
            if campaign:
                return self._hit(campaign, "context_ordinal")

        if len(last_results) == 1:
            campaign = await self._catalog.by_id(last_results[0].id)
            if campaign:
                return self._hit(campaign, "single_result")

        if last_results:
            lowered = (raw_text or "").lower()
            campaign = await self._by_ordinal_word(lowered, last_results)
            if campaign:
                return self._hit(campaign, "ordinal_word")
            campaign = await self._by_token_overlap(lowered, last_results)
            if campaign:
                return self._hit(campaign, "token_overlap")

        if title:
            matches = await self._catalog.find_by_text(title)
            if len(matches) == 1:
                return self._hit(matches[0], "title_search")
            if len(matches) > 1:
                self._logger.info("donation_target_ambiguous", title=title, candidates=len(matches))
                return Resolution(status=ResolutionStatus.AMBIGUOUS, candidates=matches)

        self._logger.info("donation_target_not_found", title=title)
        return Resolution(status=ResolutionStatus.NOT_FOUND)

    async def _by_ordinal_word(self, lowered: str, last_results: List[ResultRef]) -> Optional[Campaign]:
        for word, position in ORDINAL_WORDS.items():
            if position <= len(last_results) and re.search(rf"\b{re.escape(word)}\b", lowered):
                return await self._catalog.by_id(last_results[position - 1].id)
        return None

    async def _by_token_overlap(self, lowered: str, last_results: List[ResultRef]) -> Optional[Campaign]:
        tokens = [t for t in _TOKEN_SPLIT_RE.split(lowered) if t]
        best: Optional[ResultRef] = None
        best_score = 0
        for ref in last_results:
            title = ref.title.lower()
            score = sum(1 for t in tokens if t in title)
            if score > best_score:
                best, best_score = ref, score
        if best is None:
            return None
        return await self._catalog.by_id(best.id)

    def _hit(self, campaign: Campaign, strategy: str) -> Resolution:
        self._logger.debug("donation_target_resolved", campaign_id=campaign.id, strategy=strategy)
        return Resolution(status=ResolutionStatus.RESOLVED, campaign=campaign, strategy=strategy)
