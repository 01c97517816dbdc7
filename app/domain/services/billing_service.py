"""
Billing Service - invoice-ready line items for locked sessions

Lines are built from the prices stored on the session; nothing is priced
again here.
"""
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PreconditionError
from app.db.models.service_price import VehicleType
from app.db.models.wash_session import VehicleRole, WashSession, WashSessionStatus
from app.state_machine.manager import WashSessionStateManager

ROLE_LABELS = {
    VehicleRole.TRACTOR: "Tractor",
    VehicleRole.TRAILER: "Trailer",
    VehicleRole.SINGLE: "Vehicle",
}


@dataclass(frozen=True)
class BillingLineItem:
    wash_session_id: int
    position: int
    description: str
    vehicle_role: VehicleRole
    vehicle_type: VehicleType
    plate_number: str
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    total: Decimal
    currency: str


def build_line_items(session: WashSession) -> list[BillingLineItem]:
    """One item per component, in creation order"""
    items = []
    for component in sorted(session.components, key=lambda c: c.position):
        role = VehicleRole(component.vehicle_role)
        items.append(BillingLineItem(
            wash_session_id=session.id,
            position=component.position,
            description=f"Wash #{session.id} - {ROLE_LABELS[role]} {component.plate_number}",
            vehicle_role=role,
            vehicle_type=VehicleType(component.vehicle_type),
            plate_number=component.plate_number,
            quantity=component.quantity,
            unit_price=Decimal(str(component.unit_price)),
            discount_percent=Decimal(str(component.discount_percent)),
            total=Decimal(str(component.total_price)),
            currency=session.currency,
        ))
    return items


class BillingService:
    """Composes billing lines of LOCKED sessions"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.state_manager = WashSessionStateManager(db)

    async def compose(self, network_id: int, session_id: int) -> list[BillingLineItem]:
        """
        Raises:
            WashSessionNotFoundError: unknown id in this network
            PreconditionError: the session is not LOCKED yet
        """
        session = await self.state_manager.load(network_id, session_id)
        if WashSessionStatus(session.status) != WashSessionStatus.LOCKED:
            raise PreconditionError(
                f"Wash session {session_id} is not locked",
                details={"session_id": session_id, "status": WashSessionStatus(session.status).value},
            )
        return build_line_items(session)
