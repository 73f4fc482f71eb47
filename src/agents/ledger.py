"""
Ledger mutation for donations.

`apply_donation` is the only code path that writes donation records or moves
a campaign's `raised` total.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict

import structlog

from src.core.errors import CampaignNotFound, DonationRejected, PersistenceError
from src.data.models import Campaign, Donation, ResolvedDonationTarget
from src.data.store import CampaignStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class DonationReceipt:
    donation: Donation
    campaign: Campaign

    def to_dict(self) -> Dict[str, Any]:
        return {
            "donation": {
                "id": self.donation.id,
                "campaignId": self.donation.campaign_id,
                "amount": self.donation.amount,
                "chain": self.donation.chain,
                "donorName": self.donation.donor_name,
                "timestamp": self.donation.timestamp.isoformat(),
            },
            "campaign": {
                "id": self.campaign.id,
                "raised": self.campaign.raised,
                "goal": self.campaign.goal,
                "progress": self.campaign.progress,
            },
        }


class LedgerMutator:
    """Applies one donation: record, campaign total, creator aggregate."""

    def __init__(self, store: CampaignStore):
        self._store = store
        self._logger = logger.bind(component="ledger")

    async def apply(self, target: ResolvedDonationTarget) -> DonationReceipt:
        """Apply a donation whose campaign, chain and amount are already resolved."""
        return await self.apply_donation(target.campaign.id, target.donor_name, target.amount, target.chain)

    async def apply_donation(self, campaign_id: str, donor_name: str, amount: float, chain: str) -> DonationReceipt:
        """
        Record a donation and raise the campaign total by exactly `amount`.

        Runs in one store transaction, so concurrent donations to the same
        campaign cannot lose updates and a failed campaign update leaves no
        orphan donation record behind.

        Raises:
            DonationRejected: amount is not a finite positive number or chain is not supported
            CampaignNotFound: no campaign with `campaign_id`
            PersistenceError: the campaign total could not be written
        """
        if amount is None or not math.isfinite(amount) or amount <= 0:
            raise DonationRejected("Donation amount must be a positive number", amount=amount)

        async with self._store.transaction():
            campaign = await self._store.by_id(campaign_id)
            if campaign is None:
                raise CampaignNotFound(f"Campaign {campaign_id} not found", campaign_id=campaign_id)
            if not campaign.supports_chain(chain):
                raise DonationRejected(
                    f"Campaign does not support {chain} payments",
                    campaign_id=campaign_id,
                    chain=chain,
                    supported=list(campaign.chains),
                )

            donation = await self._store.create_donation(
                Donation(campaign_id=campaign.id, donor_name=donor_name, amount=amount, chain=chain)
            )

            updated = await self._store.update_campaign(campaign.id, {"raised": campaign.raised + amount})
            if updated is None:
                self._logger.error("campaign_update_failed", campaign_id=campaign.id, donation_id=donation.id)
                raise PersistenceError("Failed to update campaign totals", campaign_id=campaign.id)

            creator = await self._store.find_user_by_id(campaign.creator_id) if campaign.creator_id else None
            if creator is not None and creator.is_creator:
                await self._store.update_user(creator.id, {"total_raised": creator.total_raised + amount})

        self._logger.info(
            "donation_applied",
            campaign_id=campaign.id,
            donation_id=donation.id,
            amount=amount,
            chain=chain,
            raised=updated.raised,
        )
        return DonationReceipt(donation=donation, campaign=updated)
