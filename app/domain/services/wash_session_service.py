"""
Wash Session Service - creation, lifecycle operations and queries

Creation validates tenant ownership of every referenced entity, prices each
vehicle component and fixes the volume discount. All later status changes are
delegated to WashSessionStateManager.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AppException, ValidationException
from app.core.logging import get_logger
from app.db.models.audit_log import AuditAction
from app.db.models.driver import Driver
from app.db.models.network import Location, LocationServiceAvailability, OperationTrack, ServicePackage
from app.db.models.partner_account import PartnerAccount
from app.db.models.service_price import VehicleType
from app.db.models.wash_session import (
    EntryMode,
    VehicleRole,
    WashSession,
    WashSessionComponent,
    WashSessionStatus,
)
from app.domain.pricing.discounts import ZERO_PERCENT, apply_discount, resolve_discount
from app.domain.services.audit_service import ActorContext, AuditService, SYSTEM_ACTOR
from app.domain.services.partner_account_service import PartnerAccountService, schedule_for_track
from app.domain.services.pricing_catalog import PricingCatalog
from app.domain.services.usage_counter import UsageCounter
from app.state_machine.manager import WashSessionStateManager
from app.state_machine.states import TransitionAction

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 50


@dataclass
class VehicleComponentInput:
    vehicle_role: VehicleRole
    vehicle_type: VehicleType
    plate_number: str
    quantity: int = 1


@dataclass
class CreateWashSessionInput:
    """
    Input for a new session.

    Driver entry mode needs ``driver_id``; the partner is taken from the
    driver. Operator entry mode needs ``driver_name_manual`` and may name a
    partner; without one the session is a walk-in and gets no discount.
    """
    location_id: int
    service_package_id: int
    entry_mode: EntryMode
    components: list[VehicleComponentInput] = field(default_factory=list)
    driver_id: Optional[int] = None
    driver_name_manual: Optional[str] = None
    partner_account_id: Optional[int] = None


def _normalize_components(components: list[VehicleComponentInput]) -> list[VehicleComponentInput]:
    if not components:
        raise ValidationException("At least one vehicle is required", field="components")

    normalized: list[VehicleComponentInput] = []
    seen_roles: set[VehicleRole] = set()
    for component in components:
        role = VehicleRole(component.vehicle_role)
        plate = (component.plate_number or "").strip().upper()
        if not plate:
            raise ValidationException("Plate number is required for every vehicle", field="plate_number")
        if role in seen_roles:
            raise ValidationException(f"Duplicate vehicle role: {role.value}", field="vehicle_role")
        if component.quantity < 1:
            raise ValidationException("Quantity must be at least 1", field="quantity")
        seen_roles.add(role)
        normalized.append(VehicleComponentInput(
            vehicle_role=role,
            vehicle_type=VehicleType(component.vehicle_type),
            plate_number=plate,
            quantity=component.quantity,
        ))

    if VehicleRole.SINGLE in seen_roles and len(seen_roles) > 1:
        raise ValidationException(
            "A single vehicle cannot be combined with tractor or trailer",
            field="vehicle_role",
        )
    if VehicleRole.TRAILER in seen_roles and VehicleRole.TRACTOR not in seen_roles:
        raise ValidationException("A trailer requires a tractor", field="vehicle_role")
    return normalized


def _money(value) -> str:
    return str(Decimal(str(value)))


class WashSessionService:
    """Wash session lifecycle"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.state_manager = WashSessionStateManager(db)
        self.audit = AuditService(db)
        self.catalog = PricingCatalog(db)
        self.usage_counter = UsageCounter(db)
        self.partner_service = PartnerAccountService(db)

    # ==================== Creation ====================

    async def _get_location(self, network_id: int, location_id: int) -> Location:
        result = await self.db.execute(
            select(Location).where(
                Location.id == location_id,
                Location.network_id == network_id,
                Location.is_active == True,  # noqa: E712
            )
        )
        location = result.scalar_one_or_none()
        if location is None:
            raise ValidationException("Location not found or inactive", field="location_id")
        return location

    async def _ensure_package_available(self, network_id: int, location_id: int, service_package_id: int) -> None:
        result = await self.db.execute(
            select(ServicePackage.id)
            .join(
                LocationServiceAvailability,
                LocationServiceAvailability.service_package_id == ServicePackage.id,
            )
            .where(
                ServicePackage.id == service_package_id,
                ServicePackage.network_id == network_id,
                ServicePackage.is_active == True,  # noqa: E712
                LocationServiceAvailability.location_id == location_id,
                LocationServiceAvailability.is_active == True,  # noqa: E712
            )
        )
        if result.scalar_one_or_none() is None:
            raise ValidationException(
                "Service package is not available at this location",
                field="service_package_id",
            )

    async def _get_partner(self, network_id: int, partner_account_id: int) -> PartnerAccount:
        result = await self.db.execute(
            select(PartnerAccount).where(
                PartnerAccount.id == partner_account_id,
                PartnerAccount.network_id == network_id,
                PartnerAccount.is_active == True,  # noqa: E712
            )
        )
        partner = result.scalar_one_or_none()
        if partner is None:
            raise ValidationException("Partner account not found or inactive", field="partner_account_id")
        return partner

    async def _get_driver(self, network_id: int, driver_id: int) -> Driver:
        result = await self.db.execute(
            select(Driver).where(
                Driver.id == driver_id,
                Driver.network_id == network_id,
                Driver.is_active == True,  # noqa: E712
            )
        )
        driver = result.scalar_one_or_none()
        if driver is None:
            raise ValidationException("Driver not found or inactive", field="driver_id")
        return driver

    async def _resolve_partner(
        self, network_id: int, data: CreateWashSessionInput
    ) -> Tuple[Optional[PartnerAccount], Optional[Driver]]:
        if EntryMode(data.entry_mode) == EntryMode.DRIVER:
            if data.driver_id is None:
                raise ValidationException("Driver is required in driver entry mode", field="driver_id")
            driver = await self._get_driver(network_id, data.driver_id)
            if data.partner_account_id is not None and data.partner_account_id != driver.partner_account_id:
                raise ValidationException(
                    "Partner account does not match the driver's partner",
                    field="partner_account_id",
                )
            partner = await self._get_partner(network_id, driver.partner_account_id)
            return partner, driver

        if not (data.driver_name_manual or "").strip():
            raise ValidationException(
                "Driver name is required in operator entry mode",
                field="driver_name_manual",
            )
        if data.partner_account_id is None:
            return None, None
        return await self._get_partner(network_id, data.partner_account_id), None

    async def _price_components(
        self,
        network_id: int,
        location_id: int,
        service_package_id: int,
        partner: Optional[PartnerAccount],
        track: OperationTrack,
        components: list[VehicleComponentInput],
        as_of: datetime,
        exclude_session_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Unit prices, discount and totals for a set of components"""
        usage_count = 0
        discount_percent = ZERO_PERCENT
        if partner is not None:
            usage_count = await self.usage_counter.count_for_period(
                partner.id, track, as_of, exclude_session_id=exclude_session_id
            ) + 1
            discount_percent = resolve_discount(schedule_for_track(partner, track), usage_count)

        currency = None
        lines = []
        for position, component in enumerate(components, start=1):
            quote = await self.catalog.get_price(
                network_id=network_id,
                location_id=location_id,
                service_package_id=service_package_id,
                vehicle_type=component.vehicle_type,
                partner_account_id=partner.id if partner else None,
            )
            if currency is None:
                currency = quote.currency
            elif quote.currency != currency:
                raise ValidationException(
                    "All vehicles of a session must be priced in the same currency",
                    field="currency",
                )
            total = apply_discount(quote.price * component.quantity, discount_percent)
            lines.append({
                "position": position,
                "component": component,
                "unit_price": quote.price,
                "price_source": quote.source,
                "total_price": total,
            })

        return {
            "usage_count": usage_count,
            "discount_percent": discount_percent,
            "currency": currency or settings.DEFAULT_CURRENCY,
            "total_price": sum((line["total_price"] for line in lines), Decimal("0.00")),
            "lines": lines,
        }

    @staticmethod
    def _pricing_snapshot(pricing: dict[str, Any], track: OperationTrack, partner_account_id: Optional[int]) -> dict:
        """JSON-safe record of a pricing decision for the audit trail"""
        return {
            "partner_account_id": partner_account_id,
            "track": OperationTrack(track).value,
            "usage_count": pricing["usage_count"],
            "discount_percent": _money(pricing["discount_percent"]),
            "currency": pricing["currency"],
            "total_price": _money(pricing["total_price"]),
            "components": [
                {
                    "position": line["position"],
                    "vehicle_role": line["component"].vehicle_role.value,
                    "vehicle_type": line["component"].vehicle_type.value,
                    "plate_number": line["component"].plate_number,
                    "quantity": line["component"].quantity,
                    "unit_price": _money(line["unit_price"]),
                    "price_source": line["price_source"],
                    "total_price": _money(line["total_price"]),
                }
                for line in pricing["lines"]
            ],
        }

    async def create(
        self,
        network_id: int,
        data: CreateWashSessionInput,
        actor: ActorContext,
        now: Optional[datetime] = None,
    ) -> WashSession:
        """
        Create and price a new session in CREATED state.

        Raises:
            ValidationException: unknown/inactive/foreign references, missing
                vehicles or plates, or no applicable price
        """
        now = now or datetime.utcnow()
        components = _normalize_components(data.components)
        location = await self._get_location(network_id, data.location_id)
        await self._ensure_package_available(network_id, location.id, data.service_package_id)
        partner, driver = await self._resolve_partner(network_id, data)

        track = OperationTrack(location.operation_track)
        pricing = await self._price_components(
            network_id=network_id,
            location_id=location.id,
            service_package_id=data.service_package_id,
            partner=partner,
            track=track,
            components=components,
            as_of=now,
        )

        entry_mode = EntryMode(data.entry_mode)
        session = WashSession(
            network_id=network_id,
            location_id=location.id,
            service_package_id=data.service_package_id,
            entry_mode=entry_mode,
            driver_id=driver.id if driver else None,
            driver_name_manual=(
                data.driver_name_manual.strip() if entry_mode == EntryMode.OPERATOR_MANUAL else None
            ),
            created_by_user_id=actor.actor_id if entry_mode == EntryMode.OPERATOR_MANUAL else None,
            partner_account_id=partner.id if partner else None,
            operation_track=track,
            status=WashSessionStatus.CREATED,
            version=1,
            usage_count=pricing["usage_count"],
            discount_percent=pricing["discount_percent"],
            total_price=pricing["total_price"],
            currency=pricing["currency"],
            created_at=now,
            components=[
                WashSessionComponent(
                    position=line["position"],
                    vehicle_role=line["component"].vehicle_role,
                    vehicle_type=line["component"].vehicle_type,
                    plate_number=line["component"].plate_number,
                    quantity=line["component"].quantity,
                    unit_price=line["unit_price"],
                    discount_percent=pricing["discount_percent"],
                    total_price=line["total_price"],
                )
                for line in pricing["lines"]
            ],
        )

        try:
            self.db.add(session)
            await self.db.flush()
            self.audit.record(
                network_id=network_id,
                wash_session_id=session.id,
                action=AuditAction.CREATE,
                previous_status=None,
                new_status=WashSessionStatus.CREATED,
                actor=actor,
                version=1,
                pricing=self._pricing_snapshot(pricing, track, session.partner_account_id),
                created_at=now,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(session)

        logger.info(
            "Wash session created",
            extra_data={
                "session_id": session.id,
                "network_id": network_id,
                "partner_account_id": session.partner_account_id,
                "usage_count": session.usage_count,
                "discount_percent": str(session.discount_percent),
                "total_price": str(session.total_price),
                "actor_type": actor.actor_type.value,
                "actor_id": actor.actor_id,
            }
        )
        return session

    # ==================== Transitions ====================

    async def authorize(
        self, network_id: int, session_id: int, actor: ActorContext, expected_version: Optional[int] = None
    ) -> WashSession:
        return await self.state_manager.transition(
            network_id, session_id, TransitionAction.AUTHORIZE, actor, expected_version=expected_version
        )

    async def start(
        self, network_id: int, session_id: int, actor: ActorContext, expected_version: Optional[int] = None
    ) -> WashSession:
        return await self.state_manager.transition(
            network_id, session_id, TransitionAction.START, actor, expected_version=expected_version
        )

    async def complete(
        self,
        network_id: int,
        session_id: int,
        actor: ActorContext,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> WashSession:
        """
        IN_PROGRESS -> COMPLETED.

        The creation-time price is kept unless REPRICE_ON_COMPLETION is set, in
        which case the discount is resolved again against usage as of now.
        """
        if not settings.REPRICE_ON_COMPLETION:
            return await self.state_manager.transition(
                network_id, session_id, TransitionAction.COMPLETE, actor,
                expected_version=expected_version, now=now,
            )

        now = now or datetime.utcnow()
        session = await self.state_manager.load(network_id, session_id)
        self.state_manager.ensure_version(session, expected_version)
        self.state_manager.validate(session, TransitionAction.COMPLETE)

        changes: dict[str, Any] = {}
        snapshot = None
        if session.partner_account_id is not None:
            # deactivation after creation does not block completion
            partner = await self.partner_service.get_partner_account(network_id, session.partner_account_id)
            track = OperationTrack(session.operation_track)
            usage_count = await self.usage_counter.count_for_period(
                partner.id, track, now, exclude_session_id=session.id
            ) + 1
            discount_percent = resolve_discount(schedule_for_track(partner, track), usage_count)

            total = Decimal("0.00")
            lines = []
            for component in session.components:
                component_total = apply_discount(
                    Decimal(str(component.unit_price)) * component.quantity, discount_percent
                )
                component.discount_percent = discount_percent
                component.total_price = component_total
                total += component_total
                lines.append({
                    "position": component.position,
                    "component": VehicleComponentInput(
                        vehicle_role=VehicleRole(component.vehicle_role),
                        vehicle_type=VehicleType(component.vehicle_type),
                        plate_number=component.plate_number,
                        quantity=component.quantity,
                    ),
                    "unit_price": Decimal(str(component.unit_price)),
                    "price_source": "stored",
                    "total_price": component_total,
                })

            changes = {
                "usage_count": usage_count,
                "discount_percent": discount_percent,
                "total_price": total,
            }
            snapshot = self._pricing_snapshot(
                {
                    "usage_count": usage_count,
                    "discount_percent": discount_percent,
                    "currency": session.currency,
                    "total_price": total,
                    "lines": lines,
                },
                track,
                partner.id,
            )

        return await self.state_manager.transition(
            network_id, session_id, TransitionAction.COMPLETE, actor,
            changes=changes, pricing=snapshot, session=session, now=now,
        )

    async def reject(
        self,
        network_id: int,
        session_id: int,
        actor: ActorContext,
        reason: str,
        expected_version: Optional[int] = None,
    ) -> WashSession:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("Rejection reason is required", field="reason")
        return await self.state_manager.transition(
            network_id, session_id, TransitionAction.REJECT, actor,
            expected_version=expected_version,
            changes={"rejection_reason": reason},
            details={"reason": reason},
        )

    async def lock(
        self,
        network_id: int,
        session_id: int,
        actor: ActorContext = SYSTEM_ACTOR,
        expected_version: Optional[int] = None,
    ) -> WashSession:
        return await self.state_manager.transition(
            network_id, session_id, TransitionAction.LOCK, actor, expected_version=expected_version
        )

    async def lock_completed_sessions(
        self,
        older_than: datetime,
        network_id: Optional[int] = None,
    ) -> dict[str, int]:
        """
        Lock every COMPLETED session completed before ``older_than`` as SYSTEM.

        A failure on one session is logged and the batch moves on.
        """
        query = select(WashSession.id, WashSession.network_id).where(
            WashSession.status == WashSessionStatus.COMPLETED,
            WashSession.completed_at < older_than,
        )
        if network_id is not None:
            query = query.where(WashSession.network_id == network_id)
        result = await self.db.execute(query.order_by(WashSession.completed_at.asc()))
        candidates = result.all()

        locked = 0
        skipped = 0
        failed = 0
        for candidate_id, candidate_network_id in candidates:
            try:
                await self.state_manager.transition(
                    candidate_network_id, candidate_id, TransitionAction.LOCK, SYSTEM_ACTOR
                )
                locked += 1
            except AppException as e:
                skipped += 1
                logger.warning(
                    "Skipping session during batch lock",
                    extra_data={
                        "session_id": candidate_id,
                        "network_id": candidate_network_id,
                        "error_code": e.error_code.value,
                        "error": e.message,
                    }
                )
            except Exception as e:
                failed += 1
                await self.db.rollback()
                logger.error(
                    "Failed to lock session during batch lock",
                    extra_data={
                        "session_id": candidate_id,
                        "network_id": candidate_network_id,
                        "error": str(e),
                    },
                    exc_info=True
                )

        summary = {
            "processed": len(candidates),
            "locked": locked,
            "skipped": skipped,
            "failed": failed,
        }
        logger.info("Batch lock finished", extra_data=summary)
        return summary

    # ==================== Queries ====================

    async def get_session(self, network_id: int, session_id: int) -> WashSession:
        return await self.state_manager.load(network_id, session_id)

    async def list_sessions(
        self,
        network_id: int,
        location_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        partner_account_id: Optional[int] = None,
        status: Optional[WashSessionStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> Tuple[list[WashSession], int]:
        """Sessions of a network, newest first, with the unpaginated total"""
        conditions = [WashSession.network_id == network_id]
        if location_id is not None:
            conditions.append(WashSession.location_id == location_id)
        if driver_id is not None:
            conditions.append(WashSession.driver_id == driver_id)
        if partner_account_id is not None:
            conditions.append(WashSession.partner_account_id == partner_account_id)
        if status is not None:
            conditions.append(WashSession.status == status)
        if date_from is not None:
            conditions.append(WashSession.created_at >= date_from)
        if date_to is not None:
            conditions.append(WashSession.created_at <= date_to)

        total_result = await self.db.execute(select(func.count(WashSession.id)).where(*conditions))
        total = total_result.scalar_one()

        result = await self.db.execute(
            select(WashSession)
            .where(*conditions)
            .order_by(WashSession.created_at.desc(), WashSession.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    async def get_history(self, network_id: int, session_id: int):
        """Audit entries of one session, oldest first"""
        await self.state_manager.load(network_id, session_id)
        return await self.audit.get_session_history(network_id, session_id)
