"""
Partner Account Service - partner lookup and discount schedules
"""
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.core.logging import get_logger
from app.db.models.network import OperationTrack
from app.db.models.partner_account import PartnerAccount, PartnerDiscountTier
from app.domain.pricing.discounts import DiscountTier, validate_schedule

logger = get_logger(__name__)


def schedule_for_track(partner: PartnerAccount, track: OperationTrack) -> list[DiscountTier]:
    """The partner's tiers for one track, ordered by threshold"""
    return [
        DiscountTier.of(tier.threshold, tier.percent)
        for tier in sorted(partner.discount_tiers, key=lambda t: t.threshold)
        if tier.track == OperationTrack(track)
    ]


class PartnerAccountService:
    """Read access to partner accounts plus schedule maintenance"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_partner_account(self, network_id: int, partner_account_id: int) -> PartnerAccount:
        """Partner of the given network, with both schedules loaded"""
        result = await self.db.execute(
            select(PartnerAccount).where(
                PartnerAccount.id == partner_account_id,
                PartnerAccount.network_id == network_id,
            )
        )
        partner = result.scalar_one_or_none()
        if partner is None:
            raise NotFoundException("Partner account", partner_account_id)
        return partner

    async def replace_discount_schedule(
        self,
        network_id: int,
        partner_account_id: int,
        track: OperationTrack,
        tiers: Sequence[DiscountTier],
    ) -> list[DiscountTier]:
        """
        Replace the partner's schedule for one track.

        The new schedule is validated before anything is written; the other
        track's schedule is left untouched. Called by partner administration;
        session pricing only reads schedules.
        """
        validate_schedule(tiers)
        partner = await self.get_partner_account(network_id, partner_account_id)

        # Orphans are deleted on this flush, before the new rows hit the unique constraint
        partner.discount_tiers = [
            tier for tier in partner.discount_tiers if tier.track != OperationTrack(track)
        ]
        await self.db.flush()

        for tier in tiers:
            partner.discount_tiers.append(PartnerDiscountTier(
                track=track,
                threshold=tier.threshold,
                percent=tier.percent,
            ))
        await self.db.commit()

        logger.info(
            "Discount schedule replaced",
            extra_data={
                "network_id": network_id,
                "partner_account_id": partner.id,
                "track": OperationTrack(track).value,
                "tier_count": len(tiers),
            }
        )
        return schedule_for_track(partner, track)
