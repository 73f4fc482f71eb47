"""
Data models for the GiveHub assistant.

Domain objects are plain dataclasses passed between the pipeline stages.
The SQLAlchemy records at the bottom back the SQL implementation of the
campaign store.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return _as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Campaign:
    """A fundraising campaign. `chains` keeps configuration order."""

    id: str
    title: str
    description: str = ""
    category: Optional[str] = None
    goal: float = 0.0
    raised: float = 0.0
    chains: List[str] = field(default_factory=list)
    creator_id: str = ""
    created_at: Optional[datetime] = None

    @property
    def progress(self) -> float:
        return (self.raised / self.goal) * 100 if self.goal else 0.0

    def supports_chain(self, chain: str) -> bool:
        return chain in self.chains

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "goal": self.goal,
            "raised": self.raised,
            "chains": list(self.chains),
            "creatorId": self.creator_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def to_result(self) -> Dict[str, Any]:
        """Summary shape returned to clients and cached as `lastResults`."""
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "chains": list(self.chains),
            "raised": self.raised,
            "goal": self.goal,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Campaign":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            category=data.get("category") or None,
            goal=float(data.get("goal") or 0),
            raised=float(data.get("raised") or 0),
            chains=list(data.get("chains") or []),
            creator_id=str(data.get("creatorId") or data.get("creator_id") or ""),
            created_at=_parse_datetime(data.get("createdAt") or data.get("created_at")),
        )

    def with_patch(self, patch: Dict[str, Any]) -> "Campaign":
        allowed = {k: v for k, v in patch.items() if k in self.__dataclass_fields__ and k != "id"}
        return replace(self, **allowed)


@dataclass(frozen=True)
class Donation:
    """An immutable donation record."""

    campaign_id: str
    donor_name: str
    amount: float
    chain: str
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaignId": self.campaign_id,
            "name": self.donor_name,
            "amount": self.amount,
            "chain": self.chain,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Donation":
        return cls(
            id=str(data.get("id") or uuid4()),
            campaign_id=str(data["campaignId"]),
            donor_name=str(data.get("name") or "Anonymous"),
            amount=float(data["amount"]),
            chain=str(data["chain"]),
            timestamp=_parse_datetime(data.get("timestamp")) or utcnow(),
        )


@dataclass(frozen=True)
class User:
    """A platform account. Creators carry the `total_raised` aggregate."""

    id: str
    username: str
    email: str = ""
    role: str = "user"  # user, creator
    total_raised: float = 0.0
    total_donated: float = 0.0

    @property
    def is_creator(self) -> bool:
        return self.role == "creator"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "totalRaised": self.total_raised,
            "totalDonated": self.total_donated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=str(data["id"]),
            username=str(data.get("username") or ""),
            email=str(data.get("email") or ""),
            role=str(data.get("role") or "user"),
            total_raised=float(data.get("totalRaised") or data.get("total_raised") or 0),
            total_donated=float(data.get("totalDonated") or data.get("total_donated") or 0),
        )

    def with_patch(self, patch: Dict[str, Any]) -> "User":
        allowed = {k: v for k, v in patch.items() if k in self.__dataclass_fields__ and k != "id"}
        return replace(self, **allowed)


@dataclass(frozen=True)
class ResultRef:
    """One entry of a previous result list held by the client."""

    id: str
    title: str


@dataclass(frozen=True)
class ChatMessage:
    role: str  # user, assistant
    text: str


@dataclass(frozen=True)
class ConversationContext:
    """Per-request snapshot of client-held conversation state."""

    last_results: List[ResultRef] = field(default_factory=list)
    messages: List[ChatMessage] = field(default_factory=list)


@dataclass(frozen=True)
class Identity:
    """The signed-in user behind a request."""

    user_id: str
    display_name: str


@dataclass(frozen=True)
class ResolvedDonationTarget:
    campaign: Campaign
    chain: str
    amount: float
    donor_name: str = "Anonymous"


# SQL records


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQL records."""
    pass


class CampaignRecord(Base):
    """Campaign table."""

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid4()))
    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[Optional[str]] = mapped_column(String(100))
    goal: Mapped[float] = mapped_column(Float, default=0.0)
    raised: Mapped[float] = mapped_column(Float, default=0.0)
    chains: Mapped[list] = mapped_column(JSON, default=list)
    creator_id: Mapped[str] = mapped_column(String(64), index=True, default="")
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def to_domain(self) -> Campaign:
        return Campaign(
            id=self.id,
            title=self.title,
            description=self.description or "",
            category=self.category,
            goal=self.goal or 0.0,
            raised=self.raised or 0.0,
            chains=list(self.chains or []),
            creator_id=self.creator_id or "",
            created_at=_as_utc(self.created_at),
        )

    def __repr__(self) -> str:
        return f"<Campaign {self.title[:30]} ({self.id})>"


class DonationRecord(Base):
    """Donation table."""

    __tablename__ = "donations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    campaign_id: Mapped[str] = mapped_column(String(64), ForeignKey("campaigns.id"), index=True)
    donor_name: Mapped[str] = mapped_column(String(255))
    amount: Mapped[float] = mapped_column(Float)
    chain: Mapped[str] = mapped_column(String(50))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def to_domain(self) -> Donation:
        return Donation(
            id=self.id,
            campaign_id=self.campaign_id,
            donor_name=self.donor_name,
            amount=self.amount,
            chain=self.chain,
            timestamp=_as_utc(self.timestamp),
        )

    def __repr__(self) -> str:
        return f"<Donation ${self.amount} from {self.donor_name} to {self.campaign_id}>"


class UserRecord(Base):
    """User table."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), default="")
    role: Mapped[str] = mapped_column(String(20), default="user")
    total_raised: Mapped[float] = mapped_column(Float, default=0.0)
    total_donated: Mapped[float] = mapped_column(Float, default=0.0)

    def to_domain(self) -> User:
        return User(
            id=self.id,
            username=self.username,
            email=self.email or "",
            role=self.role or "user",
            total_raised=self.total_raised or 0.0,
            total_donated=self.total_donated or 0.0,
        )

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.id})>"
