"""
Read-only campaign catalog used by the assistant.

Keyword search uses whole-word, case-insensitive matching: the token "cat"
matches "Cat Rescue" but not "education".
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Sequence

import structlog

from src.data.models import Campaign
from src.data.store import CampaignStore

logger = structlog.get_logger()

SORT_FIELDS = ("goal", "raised", "newest")

_TRAILING_CATEGORY_RE = re.compile(r"\s+\[[^\]]*\]\s*$")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Lowercase, collapse whitespace and drop a trailing "[category]" suffix."""
    stripped = _TRAILING_CATEGORY_RE.sub("", title or "")
    return _WHITESPACE_RE.sub(" ", stripped).strip().lower()


@dataclass(frozen=True)
class NumericRange:
    """Inclusive range; a missing bound imposes no constraint."""

    min: Optional[float] = None
    max: Optional[float] = None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclass
class CampaignPage:
    """The first page of a search plus the number of campaigns that matched."""

    items: List[Campaign] = field(default_factory=list)
    total: int = 0

    def __iter__(self) -> Iterator[Campaign]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index):
        return self.items[index]


def _word_pattern(token: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(token)}\b", re.IGNORECASE)


def _newest_first(campaigns: List[Campaign]) -> List[Campaign]:
    # Timestamped campaigns newest first, then the rest by title
    dated = [c for c in campaigns if c.created_at is not None]
    undated = [c for c in campaigns if c.created_at is None]
    dated.sort(key=lambda c: c.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
    undated.sort(key=lambda c: c.title)
    return dated + undated


class EntityCatalog:
    """Lookup and keyword search over the campaign store."""

    def __init__(self, store: CampaignStore, page_size: int = 10):
        self._store = store
        self._page_size = page_size
        self._logger = logger.bind(component="entity_catalog")

    async def all(self) -> List[Campaign]:
        return await self._store.all()

    async def by_id(self, campaign_id: str) -> Optional[Campaign]:
        return await self._store.by_id(campaign_id)

    async def by_exact_title(self, title: str) -> Optional[Campaign]:
        wanted = normalize_title(title)
        if not wanted:
            return None
        for campaign in await self._store.all():
            if normalize_title(campaign.title) == wanted:
                return campaign
        return None

    async def find_by_text(self, text: str) -> List[Campaign]:
        """Loose substring lookup across title, description and category."""
        return await self._store.search(q=text)

    async def search(
        self,
        tokens: Sequence[str],
        category: Optional[str] = None,
        goal: Optional[NumericRange] = None,
        raised: Optional[NumericRange] = None,
        sort_by: Optional[str] = None,
    ) -> CampaignPage:
        """
        Filter, sort and paginate campaigns.

        Order of operations: category (case-insensitive exact match), tokens
        (any token matching any of title/category/description as a whole
        word), goal and raised ranges, sort, then truncate to the page size.
        """
        results = await self._store.all()

        if category:
            wanted = category.lower()
            results = [c for c in results if (c.category or "").lower() == wanted]

        if tokens:
            patterns = [_word_pattern(t) for t in tokens]
            results = [
                c for c in results
                if any(p.search(f) for p in patterns for f in (c.title, c.category or "", c.description))
            ]

        if goal is not None:
            results = [c for c in results if goal.contains(c.goal)]
        if raised is not None:
            results = [c for c in results if raised.contains(c.raised)]

        if sort_by == "newest":
            results = _newest_first(results)
        elif sort_by in ("goal", "raised"):
            results = sorted(results, key=lambda c: getattr(c, sort_by), reverse=True)

        self._logger.debug(
            "catalog_search",
            tokens=list(tokens),
            category=category,
            sort_by=sort_by,
            total=len(results),
        )
        return CampaignPage(items=results[: self._page_size], total=len(results))
