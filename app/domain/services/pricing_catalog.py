"""
Pricing Catalog - base unit prices of service packages per vehicle type

Lookup precedence for one (package, vehicle type):
partner-specific price, then location-specific price, then the network default.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PriceNotAvailableError
from app.core.logging import get_logger
from app.db.models.service_price import ServicePrice, VehicleType

logger = get_logger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    price: Decimal
    currency: str
    service_price_id: int
    source: str  # "partner" | "location" | "default"


def _specificity(row: ServicePrice) -> tuple[int, int, int]:
    return (
        1 if row.partner_account_id is not None else 0,
        1 if row.location_id is not None else 0,
        row.id,
    )


class PricingCatalog:
    """Read-only access to ServicePrice rows"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_price(
        self,
        network_id: int,
        location_id: int,
        service_package_id: int,
        vehicle_type: VehicleType,
        partner_account_id: Optional[int] = None,
    ) -> PriceQuote:
        """
        Resolve the unit price that applies to this partner at this location.

        Raises:
            PriceNotAvailableError: no active price row matches
        """
        partner_condition = ServicePrice.partner_account_id.is_(None)
        if partner_account_id is not None:
            partner_condition = or_(
                partner_condition,
                ServicePrice.partner_account_id == partner_account_id,
            )

        result = await self.db.execute(
            select(ServicePrice).where(
                ServicePrice.network_id == network_id,
                ServicePrice.service_package_id == service_package_id,
                ServicePrice.vehicle_type == vehicle_type,
                ServicePrice.is_active == True,  # noqa: E712
                or_(
                    ServicePrice.location_id.is_(None),
                    ServicePrice.location_id == location_id,
                ),
                partner_condition,
            )
        )
        candidates = list(result.scalars().all())
        if not candidates:
            logger.warning(
                "No active price found",
                extra_data={
                    "network_id": network_id,
                    "location_id": location_id,
                    "service_package_id": service_package_id,
                    "vehicle_type": VehicleType(vehicle_type).value,
                    "partner_account_id": partner_account_id,
                }
            )
            raise PriceNotAvailableError(
                service_package_id=service_package_id,
                vehicle_type=VehicleType(vehicle_type).value,
                location_id=location_id,
            )

        best = max(candidates, key=_specificity)
        if best.partner_account_id is not None:
            source = "partner"
        elif best.location_id is not None:
            source = "location"
        else:
            source = "default"

        return PriceQuote(
            price=Decimal(str(best.price)),
            currency=best.currency,
            service_price_id=best.id,
            source=source,
        )
