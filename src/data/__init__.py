"""
Data module: domain models, campaign stores and synthetic seed data.
"""

from src.data.models import (
    Campaign,
    ChatMessage,
    ConversationContext,
    Donation,
    Identity,
    ResolvedDonationTarget,
    ResultRef,
    User,
)
from src.data.store import CampaignStore, JsonFileStore, SqlCampaignStore, seed_store
from src.data.synthetic import SyntheticDataGenerator

__all__ = [
    "Campaign",
    "ChatMessage",
    "ConversationContext",
    "Donation",
    "Identity",
    "ResolvedDonationTarget",
    "ResultRef",
    "User",
    "CampaignStore",
    "JsonFileStore",
    "SqlCampaignStore",
    "seed_store",
    "SyntheticDataGenerator",
]
