"""
Tests for BillingService - invoice-ready lines of locked sessions
"""
from datetime import datetime
from decimal import Decimal

import pytest

from app.core.exceptions import ErrorCode, PreconditionError, WashSessionNotFoundError
from app.db.models.service_price import VehicleType
from app.db.models.wash_session import VehicleRole, WashSessionStatus
from app.domain.services.billing_service import BillingService
from app.domain.services.wash_session_service import WashSessionService
from tests.conftest import DRIVER_ACTOR, OPERATOR, tractor_trailer_input

NOW = datetime(2026, 3, 20, 10, 0)


async def _locked_session(db_session, world, **overrides):
    service = WashSessionService(db_session)
    session = await service.create(world.network.id, tractor_trailer_input(world, **overrides), DRIVER_ACTOR, now=NOW)
    await service.authorize(world.network.id, session.id, OPERATOR)
    await service.start(world.network.id, session.id, OPERATOR)
    await service.complete(world.network.id, session.id, OPERATOR)
    return await service.lock(world.network.id, session.id)


class TestCompose:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("steps", [[], ["authorize"], ["authorize", "start"], ["authorize", "start", "complete"]])
    async def test_not_locked_raises_precondition(self, db_session, wash_world, steps) -> None:
        service = WashSessionService(db_session)
        session = await service.create(wash_world.network.id, tractor_trailer_input(wash_world), DRIVER_ACTOR, now=NOW)
        for step in steps:
            await getattr(service, step)(wash_world.network.id, session.id, OPERATOR)

        with pytest.raises(PreconditionError) as exc_info:
            await BillingService(db_session).compose(wash_world.network.id, session.id)

        assert exc_info.value.error_code == ErrorCode.PRECONDITION_FAILED
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_rejected_session_not_billable(self, db_session, wash_world) -> None:
        service = WashSessionService(db_session)
        session = await service.create(wash_world.network.id, tractor_trailer_input(wash_world), DRIVER_ACTOR, now=NOW)
        await service.reject(wash_world.network.id, session.id, OPERATOR, "no show")

        with pytest.raises(PreconditionError) as exc_info:
            await BillingService(db_session).compose(wash_world.network.id, session.id)

        assert exc_info.value.details["status"] == WashSessionStatus.REJECTED.value

    @pytest.mark.asyncio
    async def test_locked_two_component_session(self, db_session, wash_world) -> None:
        session = await _locked_session(db_session, wash_world)

        items = await BillingService(db_session).compose(wash_world.network.id, session.id)

        assert len(items) == 2
        assert sum(item.total for item in items) == session.total_price
        tractor, trailer = items
        assert (tractor.position, tractor.vehicle_role, tractor.vehicle_type) == (
            1, VehicleRole.TRACTOR, VehicleType.TRACTOR
        )
        assert tractor.description == f"Wash #{session.id} - Tractor ABC-123"
        assert trailer.description == f"Wash #{session.id} - Trailer XYZ-987"
        assert trailer.unit_price == Decimal("4000.00")
        assert {item.currency for item in items} == {"HUF"}

    @pytest.mark.asyncio
    async def test_lines_use_stored_prices(self, db_session, wash_world, price_factory) -> None:
        session = await _locked_session(db_session, wash_world)
        # a later catalog change does not affect a locked session
        await price_factory(
            wash_world.network.id, wash_world.package.id, VehicleType.TRACTOR, "9999.00",
            location_id=wash_world.location.id,
        )

        items = await BillingService(db_session).compose(wash_world.network.id, session.id)

        assert items[0].unit_price == Decimal("6000.00")
        assert sum(item.total for item in items) == Decimal("10000.00")

    @pytest.mark.asyncio
    async def test_discounted_lines_sum_to_stored_total(
        self, db_session, wash_world, partner_factory, driver_factory, session_row_factory
    ) -> None:
        partner = await partner_factory(wash_world.network.id, name="Discount Freight", own_tiers=[(2, "12.5")])
        driver = await driver_factory(wash_world.network.id, partner.id, name="Discount Driver")
        await session_row_factory(
            network_id=wash_world.network.id,
            location_id=wash_world.location.id,
            service_package_id=wash_world.package.id,
            partner_account_id=partner.id,
            created_at=datetime(2026, 3, 1, 6, 0),
        )

        session = await _locked_session(db_session, wash_world, driver_id=driver.id)
        items = await BillingService(db_session).compose(wash_world.network.id, session.id)

        assert [item.discount_percent for item in items] == [Decimal("12.5"), Decimal("12.5")]
        assert [item.total for item in items] == [Decimal("5250.00"), Decimal("3500.00")]
        assert sum(item.total for item in items) == session.total_price == Decimal("8750.00")

    @pytest.mark.asyncio
    async def test_other_network(self, db_session, wash_world) -> None:
        session = await _locked_session(db_session, wash_world)

        with pytest.raises(WashSessionNotFoundError):
            await BillingService(db_session).compose(wash_world.network.id + 1, session.id)
