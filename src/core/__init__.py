"""
Core services: errors, text generation and session identity.
"""

from src.core.errors import (
    CampaignNotFound,
    DonationRejected,
    GenerationError,
    GivehubError,
    PersistenceError,
)
from src.core.identity import IdentityProvider
from src.core.llm_service import LLMService

__all__ = [
    "CampaignNotFound",
    "DonationRejected",
    "GenerationError",
    "GivehubError",
    "PersistenceError",
    "IdentityProvider",
    "LLMService",
]
