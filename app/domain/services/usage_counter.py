"""
Usage Counter - how many washes a partner has had in the current billing period

The count is a plain query over persisted sessions, so it is reproducible for a
fixed ``as_of``. Concurrent creations for the same partner may both observe the
same count; tier boundaries are not serialised.
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.db.models.network import OperationTrack
from app.db.models.partner_account import BillingCycle, PartnerAccount
from app.db.models.wash_session import WashSession, WashSessionStatus


def billing_period(cycle: BillingCycle, as_of: datetime) -> Tuple[datetime, datetime]:
    """
    Half-open [start, end) window of the billing period containing ``as_of``.

    Monthly periods are calendar months; weekly periods are ISO weeks
    starting Monday 00:00.
    """
    day_start = as_of.replace(hour=0, minute=0, second=0, microsecond=0)

    if BillingCycle(cycle) == BillingCycle.WEEKLY:
        start = day_start - timedelta(days=day_start.weekday())
        return start, start + timedelta(days=7)

    start = day_start.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class UsageCounter:
    """Counts non-rejected sessions per partner, track and billing period"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_billing_cycle(self, partner_account_id: int) -> BillingCycle:
        result = await self.db.execute(
            select(PartnerAccount.billing_cycle).where(PartnerAccount.id == partner_account_id)
        )
        cycle = result.scalar_one_or_none()
        if cycle is None:
            raise NotFoundException("Partner account", partner_account_id)
        return cycle

    async def count_for_period(
        self,
        partner_account_id: int,
        track: OperationTrack,
        as_of: datetime,
        exclude_session_id: Optional[int] = None,
    ) -> int:
        """
        Sessions of the partner on ``track``, not rejected, created in the
        billing period containing ``as_of`` and not after ``as_of``.
        """
        cycle = await self._get_billing_cycle(partner_account_id)
        period_start, _ = billing_period(cycle, as_of)

        query = select(func.count(WashSession.id)).where(
            WashSession.partner_account_id == partner_account_id,
            WashSession.operation_track == track,
            WashSession.status != WashSessionStatus.REJECTED,
            WashSession.created_at >= period_start,
            WashSession.created_at <= as_of,
        )
        if exclude_session_id is not None:
            query = query.where(WashSession.id != exclude_session_id)

        result = await self.db.execute(query)
        return result.scalar_one()
