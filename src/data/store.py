"""
Campaign store implementations.

The assistant only talks to the abstract `CampaignStore`. Two backends are
provided: the flat-file `JsonFileStore` (an in-memory working set written
through to a JSON document) and `SqlCampaignStore` (SQLAlchemy async).

Both expose `transaction()`, which serializes a read-modify-write and rolls
back every write made inside it when the block raises.
"""

import asyncio
import json
import os
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.data.models import (
    Base,
    Campaign,
    CampaignRecord,
    Donation,
    DonationRecord,
    User,
    UserRecord,
)

logger = structlog.get_logger()

# (store, handle) of the transaction active in the current task, if any
_active_transaction: ContextVar[Optional[Tuple[Any, Any]]] = ContextVar(
    "givehub_active_transaction", default=None
)


def matches_filters(campaign: Campaign, q: Optional[str] = None, **filters: Any) -> bool:
    """
    Loose field matching used by `CampaignStore.search`.

    - `q`: case-insensitive substring over title, description and category
    - string fields: case-insensitive substring
    - number fields: exact match
    - list fields: the list contains the value (or any of the values)
    """
    if q:
        haystack = " ".join([campaign.title, campaign.description, campaign.category or ""]).lower()
        if str(q).lower() not in haystack:
            return False

    for key, value in filters.items():
        if value is None or not hasattr(campaign, key):
            continue
        current = getattr(campaign, key)
        if isinstance(current, str) or (current is None and isinstance(value, str)):
            if str(value).lower() not in (current or "").lower():
                return False
        elif isinstance(current, (int, float)):
            if float(value) != float(current):
                return False
        elif isinstance(current, list):
            wanted = value if isinstance(value, (list, tuple, set)) else [value]
            if not any(item in current for item in wanted):
                return False
    return True


class CampaignStore(ABC):
    """Repository interface used by the assistant pipeline."""

    @abstractmethod
    async def all(self) -> List[Campaign]:
        """Return every campaign in listing order."""
        pass

    @abstractmethod
    async def by_id(self, campaign_id: str) -> Optional[Campaign]:
        pass

    @abstractmethod
    async def search(self, q: Optional[str] = None, **filters: Any) -> List[Campaign]:
        pass

    @abstractmethod
    async def create_campaign(self, campaign: Campaign) -> Campaign:
        pass

    @abstractmethod
    async def create_donation(self, donation: Donation) -> Donation:
        pass

    @abstractmethod
    async def update_campaign(self, campaign_id: str, patch: Dict[str, Any]) -> Optional[Campaign]:
        """Apply `patch` and return the updated campaign, or None if it does not exist."""
        pass

    @abstractmethod
    async def donations_for(self, campaign_id: str) -> List[Donation]:
        pass

    @abstractmethod
    async def create_user(self, user: User) -> User:
        pass

    @abstractmethod
    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def update_user(self, user_id: str, patch: Dict[str, Any]) -> Optional[User]:
        pass

    @abstractmethod
    def transaction(self):
        """Async context manager grouping writes into one atomic unit."""
        pass

    async def close(self) -> None:
        pass

    def _in_transaction(self) -> bool:
        active = _active_transaction.get()
        return active is not None and active[0] is self


class JsonFileStore(CampaignStore):
    """
    Flat-file datastore.

    State lives in memory and is written through to `path` (when given) after
    every committed write. Domain objects are immutable, so a transaction
    snapshot is a shallow copy of the three collections.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        campaigns: Iterable[Campaign] = (),
        donations: Iterable[Donation] = (),
        users: Iterable[User] = (),
    ):
        self._path = Path(path) if path else None
        self._campaigns: Dict[str, Campaign] = {c.id: c for c in campaigns}
        self._donations: List[Donation] = list(donations)
        self._users: Dict[str, User] = {u.id: u for u in users}
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="json_store", path=str(self._path) if self._path else None)

    @classmethod
    def load(cls, path: Path) -> "JsonFileStore":
        """Load a store from `path`; a missing file yields an empty store."""
        path = Path(path)
        if not path.exists():
            return cls(path=path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("store_read_failed", path=str(path), error=str(e))
            raise
        return cls(
            path=path,
            campaigns=[Campaign.from_dict(c) for c in data.get("campaigns", [])],
            donations=[Donation.from_dict(d) for d in data.get("donations", [])],
            users=[User.from_dict(u) for u in data.get("users", [])],
        )

    def _flush(self) -> None:
        if self._path is None:
            return
        payload = {
            "campaigns": [c.to_dict() for c in self._campaigns.values()],
            "donations": [d.to_dict() for d in self._donations],
            "users": [u.to_dict() for u in self._users.values()],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[None]:
        # A lone write is its own transaction.
        async with self.transaction():
            yield

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["JsonFileStore"]:
        if self._in_transaction():
            yield self
            return
        async with self._lock:
            snapshot = (dict(self._campaigns), list(self._donations), dict(self._users))
            token = _active_transaction.set((self, None))
            try:
                yield self
                self._flush()
            except BaseException:
                self._campaigns, self._donations, self._users = snapshot
                self._logger.warning("transaction_rolled_back")
                raise
            finally:
                _active_transaction.reset(token)

    async def all(self) -> List[Campaign]:
        return list(self._campaigns.values())

    async def by_id(self, campaign_id: str) -> Optional[Campaign]:
        return self._campaigns.get(campaign_id)

    async def search(self, q: Optional[str] = None, **filters: Any) -> List[Campaign]:
        return [c for c in self._campaigns.values() if matches_filters(c, q, **filters)]

    async def create_campaign(self, campaign: Campaign) -> Campaign:
        async with self._write():
            self._campaigns[campaign.id] = campaign
        return campaign

    async def create_donation(self, donation: Donation) -> Donation:
        async with self._write():
            self._donations.append(donation)
        return donation

    async def update_campaign(self, campaign_id: str, patch: Dict[str, Any]) -> Optional[Campaign]:
        async with self._write():
            current = self._campaigns.get(campaign_id)
            if current is None:
                return None
            updated = current.with_patch(patch)
            self._campaigns[campaign_id] = updated
        return updated

    async def donations_for(self, campaign_id: str) -> List[Donation]:
        return [d for d in self._donations if d.campaign_id == campaign_id]

    async def create_user(self, user: User) -> User:
        async with self._write():
            self._users[user.id] = user
        return user

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def update_user(self, user_id: str, patch: Dict[str, Any]) -> Optional[User]:
        async with self._write():
            current = self._users.get(user_id)
            if current is None:
                return None
            updated = current.with_patch(patch)
            self._users[user_id] = updated
        return updated


class SqlCampaignStore(CampaignStore):
    """SQLAlchemy-backed store. Calls made inside `transaction()` share one session."""

    def __init__(self, database_url: str):
        self._engine = create_async_engine(database_url)
        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False)
        self._logger = logger.bind(component="sql_store")

    async def create_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._in_transaction():
            yield _active_transaction.get()[1]
            return
        async with self._sessionmaker() as session:
            async with session.begin():
                yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlCampaignStore"]:
        if self._in_transaction():
            yield self
            return
        async with self._sessionmaker() as session:
            async with session.begin():
                token = _active_transaction.set((self, session))
                try:
                    yield self
                finally:
                    _active_transaction.reset(token)

    async def all(self) -> List[Campaign]:
        async with self._session() as session:
            result = await session.execute(select(CampaignRecord).order_by(CampaignRecord.title))
            return [record.to_domain() for record in result.scalars()]

    async def by_id(self, campaign_id: str) -> Optional[Campaign]:
        async with self._session() as session:
            stmt = select(CampaignRecord).where(CampaignRecord.id == campaign_id)
            if self._in_transaction():
                stmt = stmt.with_for_update()
            record = (await session.execute(stmt)).scalar_one_or_none()
            return record.to_domain() if record else None

    async def search(self, q: Optional[str] = None, **filters: Any) -> List[Campaign]:
        async with self._session() as session:
            stmt = select(CampaignRecord).order_by(CampaignRecord.title)
            if q:
                pattern = f"%{q}%"
                stmt = stmt.where(
                    or_(
                        CampaignRecord.title.ilike(pattern),
                        CampaignRecord.description.ilike(pattern),
                        CampaignRecord.category.ilike(pattern),
                    )
                )
            result = await session.execute(stmt)
            campaigns = [record.to_domain() for record in result.scalars()]
        # Structured filters share the flat-file semantics (list membership etc.)
        return [c for c in campaigns if matches_filters(c, None, **filters)]

    async def create_campaign(self, campaign: Campaign) -> Campaign:
        async with self._session() as session:
            session.add(
                CampaignRecord(
                    id=campaign.id,
                    title=campaign.title,
                    description=campaign.description,
                    category=campaign.category,
                    goal=campaign.goal,
                    raised=campaign.raised,
                    chains=list(campaign.chains),
                    creator_id=campaign.creator_id,
                    created_at=campaign.created_at,
                )
            )
        return campaign

    async def create_donation(self, donation: Donation) -> Donation:
        async with self._session() as session:
            session.add(
                DonationRecord(
                    id=donation.id,
                    campaign_id=donation.campaign_id,
                    donor_name=donation.donor_name,
                    amount=donation.amount,
                    chain=donation.chain,
                    timestamp=donation.timestamp,
                )
            )
            await session.flush()
        return donation

    async def update_campaign(self, campaign_id: str, patch: Dict[str, Any]) -> Optional[Campaign]:
        async with self._session() as session:
            record = await session.get(CampaignRecord, campaign_id)
            if record is None:
                return None
            for key, value in patch.items():
                if key != "id" and hasattr(CampaignRecord, key):
                    setattr(record, key, list(value) if key == "chains" else value)
            await session.flush()
            return record.to_domain()

    async def donations_for(self, campaign_id: str) -> List[Donation]:
        async with self._session() as session:
            result = await session.execute(
                select(DonationRecord)
                .where(DonationRecord.campaign_id == campaign_id)
                .order_by(DonationRecord.timestamp)
            )
            return [record.to_domain() for record in result.scalars()]

    async def create_user(self, user: User) -> User:
        async with self._session() as session:
            session.add(
                UserRecord(
                    id=user.id,
                    username=user.username,
                    email=user.email,
                    role=user.role,
                    total_raised=user.total_raised,
                    total_donated=user.total_donated,
                )
            )
        return user

    async def find_user_by_id(self, user_id: str) -> Optional[User]:
        async with self._session() as session:
            record = await session.get(UserRecord, user_id)
            return record.to_domain() if record else None

    async def update_user(self, user_id: str, patch: Dict[str, Any]) -> Optional[User]:
        async with self._session() as session:
            record = await session.get(UserRecord, user_id)
            if record is None:
                return None
            for key, value in patch.items():
                if key != "id" and hasattr(UserRecord, key):
                    setattr(record, key, value)
            await session.flush()
            return record.to_domain()


async def seed_store(store: CampaignStore, campaigns: Iterable[Campaign], users: Iterable[User] = ()) -> None:
    """Insert demo data into an empty store."""
    if await store.all():
        return
    async with store.transaction():
        for user in users:
            await store.create_user(user)
        for campaign in campaigns:
            await store.create_campaign(campaign)
    logger.info("store_seeded", store=type(store).__name__)
