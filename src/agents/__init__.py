"""
Assistant pipeline: query normalization, catalog search, reference
resolution, intent planning, ledger mutation and action dispatch.
"""

from src.agents.donation_assistant import AssistResponse, DonationAssistant
from src.agents.entity_catalog import CampaignPage, EntityCatalog, NumericRange
from src.agents.intent_planner import IntentPlanner, parse_action
from src.agents.ledger import DonationReceipt, LedgerMutator
from src.agents.query_normalizer import normalize_query
from src.agents.reference_resolver import ReferenceResolver, extract_last_donation, parse_amount

__all__ = [
    "AssistResponse",
    "DonationAssistant",
    "CampaignPage",
    "EntityCatalog",
    "NumericRange",
    "IntentPlanner",
    "parse_action",
    "DonationReceipt",
    "LedgerMutator",
    "normalize_query",
    "ReferenceResolver",
    "extract_last_donation",
    "parse_amount",
]
