"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async)
- HTTP test client
- Test data factories (networks, catalog, partners, drivers, sessions)
"""
import pytest
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.database import Base, get_db
from app.db.models.audit_log import ActorType
from app.db.models.driver import Driver
from app.db.models.network import (
    Location,
    LocationServiceAvailability,
    Network,
    OperationTrack,
    ServicePackage,
)
from app.db.models.partner_account import BillingCycle, PartnerAccount, PartnerDiscountTier
from app.db.models.service_price import ServicePrice, VehicleType
from app.db.models.wash_session import (
    EntryMode,
    VehicleRole,
    WashSession,
    WashSessionComponent,
    WashSessionStatus,
)
from app.domain.services.audit_service import ActorContext
from app.domain.services.invoicing import BaseInvoiceProvider, InvoiceRequest, InvoiceResult
from app.domain.services.wash_session_service import CreateWashSessionInput, VehicleComponentInput
from app.main import app


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

OPERATOR = ActorContext(actor_type=ActorType.USER, actor_id="operator-1")
DRIVER_ACTOR = ActorContext(actor_type=ActorType.DRIVER, actor_id="driver-1")

API_HEADERS = {
    "X-Actor-Type": "user",
    "X-Actor-ID": "operator-1",
}


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(async_engine):
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def second_db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """An independent session on the same database, for concurrent writers"""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession):
    """Create test client with database override"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def network_factory(db_session: AsyncSession):
    """Network with one service package, and a helper to add locations to it"""
    async def _create_network(name: str = "Test Wash Network") -> Network:
        network = Network(name=name)
        db_session.add(network)
        await db_session.commit()
        await db_session.refresh(network)
        return network

    return _create_network


@pytest.fixture
def location_factory(db_session: AsyncSession):
    async def _create_location(
        network_id: int,
        service_package_ids: list[int],
        name: str = "Main Street Wash",
        operation_track: OperationTrack = OperationTrack.OWN,
        is_active: bool = True,
    ) -> Location:
        location = Location(
            network_id=network_id,
            name=name,
            operation_track=operation_track,
            is_active=is_active,
        )
        db_session.add(location)
        await db_session.flush()
        for package_id in service_package_ids:
            db_session.add(LocationServiceAvailability(
                network_id=network_id,
                location_id=location.id,
                service_package_id=package_id,
            ))
        await db_session.commit()
        await db_session.refresh(location)
        return location

    return _create_location


@pytest.fixture
def price_factory(db_session: AsyncSession):
    async def _create_price(
        network_id: int,
        service_package_id: int,
        vehicle_type: VehicleType,
        price: str,
        currency: str = "HUF",
        location_id: int | None = None,
        partner_account_id: int | None = None,
        is_active: bool = True,
    ) -> ServicePrice:
        row = ServicePrice(
            network_id=network_id,
            service_package_id=service_package_id,
            vehicle_type=vehicle_type,
            price=Decimal(price),
            currency=currency,
            location_id=location_id,
            partner_account_id=partner_account_id,
            is_active=is_active,
        )
        db_session.add(row)
        await db_session.commit()
        await db_session.refresh(row)
        return row

    return _create_price


@pytest.fixture
def partner_factory(db_session: AsyncSession):
    async def _create_partner(
        network_id: int,
        name: str = "Trans Cargo Ltd",
        own_tiers: list[tuple[int, str]] | None = None,
        subcontractor_tiers: list[tuple[int, str]] | None = None,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        payment_due_days: int | None = None,
        is_active: bool = True,
    ) -> PartnerAccount:
        partner = PartnerAccount(
            network_id=network_id,
            name=name,
            billing_name=f"{name} Billing",
            billing_address="Fo utca 1",
            billing_city="Budapest",
            billing_zip_code="1011",
            billing_country="HU",
            tax_number="12345678-2-41",
            billing_cycle=billing_cycle,
            payment_due_days=payment_due_days,
            is_active=is_active,
        )
        for track, tiers in (
            (OperationTrack.OWN, own_tiers or []),
            (OperationTrack.SUBCONTRACTOR, subcontractor_tiers or []),
        ):
            for threshold, percent in tiers:
                partner.discount_tiers.append(PartnerDiscountTier(
                    track=track,
                    threshold=threshold,
                    percent=Decimal(percent),
                ))
        db_session.add(partner)
        await db_session.commit()
        await db_session.refresh(partner)
        return partner

    return _create_partner


@pytest.fixture
def driver_factory(db_session: AsyncSession):
    async def _create_driver(
        network_id: int,
        partner_account_id: int,
        name: str = "Kovacs Janos",
        is_active: bool = True,
    ) -> Driver:
        driver = Driver(
            network_id=network_id,
            partner_account_id=partner_account_id,
            name=name,
            is_active=is_active,
        )
        db_session.add(driver)
        await db_session.commit()
        await db_session.refresh(driver)
        return driver

    return _create_driver


@pytest.fixture
def session_row_factory(db_session: AsyncSession):
    """
    Inserts a WashSession directly, bypassing pricing and audit.

    Used to build up partner usage history quickly.
    """
    async def _create_rows(
        network_id: int,
        location_id: int,
        service_package_id: int,
        partner_account_id: int | None,
        created_at: datetime,
        count: int = 1,
        status: WashSessionStatus = WashSessionStatus.COMPLETED,
        operation_track: OperationTrack = OperationTrack.OWN,
        completed_at: datetime | None = None,
    ) -> list[WashSession]:
        rows = []
        for _ in range(count):
            row = WashSession(
                network_id=network_id,
                location_id=location_id,
                service_package_id=service_package_id,
                entry_mode=EntryMode.OPERATOR_MANUAL,
                driver_name_manual="History Driver",
                partner_account_id=partner_account_id,
                operation_track=operation_track,
                status=status,
                version=1,
                usage_count=0,
                discount_percent=Decimal("0"),
                total_price=Decimal("1000.00"),
                currency="HUF",
                created_at=created_at,
                completed_at=completed_at,
                components=[
                    WashSessionComponent(
                        position=1,
                        vehicle_role=VehicleRole.SINGLE,
                        vehicle_type=VehicleType.CAR,
                        plate_number="HIST-001",
                        quantity=1,
                        unit_price=Decimal("1000.00"),
                        discount_percent=Decimal("0"),
                        total_price=Decimal("1000.00"),
                    )
                ],
            )
            db_session.add(row)
            rows.append(row)
        await db_session.commit()
        return rows

    return _create_rows


@pytest.fixture
async def wash_world(
    db_session,
    network_factory,
    location_factory,
    price_factory,
    partner_factory,
    driver_factory,
):
    """
    A complete tenant:
    - OWN and SUBCONTRACTOR locations offering one package
    - default prices: TRACTOR 6000, TRAILER 4000, CAR 3000 (HUF)
    - a partner with OWN tiers 50/5%, 100/10%, 200/15% and SUBCONTRACTOR tier 10/3%
    - one driver of that partner
    """
    network = await network_factory()
    package = ServicePackage(network_id=network.id, name="Exterior wash")
    db_session.add(package)
    await db_session.commit()
    await db_session.refresh(package)

    location = await location_factory(network.id, [package.id])
    sub_location = await location_factory(
        network.id, [package.id],
        name="Partner Yard Wash",
        operation_track=OperationTrack.SUBCONTRACTOR,
    )

    for vehicle_type, price in (
        (VehicleType.TRACTOR, "6000.00"),
        (VehicleType.TRAILER, "4000.00"),
        (VehicleType.CAR, "3000.00"),
    ):
        await price_factory(network.id, package.id, vehicle_type, price)

    partner = await partner_factory(
        network.id,
        own_tiers=[(50, "5"), (100, "10"), (200, "15")],
        subcontractor_tiers=[(10, "3")],
    )
    driver = await driver_factory(network.id, partner.id)

    return SimpleNamespace(
        network=network,
        package=package,
        location=location,
        sub_location=sub_location,
        partner=partner,
        driver=driver,
    )


def tractor_trailer_input(world, **overrides) -> CreateWashSessionInput:
    """Driver-mode session for a tractor + trailer combination"""
    data = dict(
        location_id=world.location.id,
        service_package_id=world.package.id,
        entry_mode=EntryMode.DRIVER,
        driver_id=world.driver.id,
        components=[
            VehicleComponentInput(VehicleRole.TRACTOR, VehicleType.TRACTOR, "abc-123"),
            VehicleComponentInput(VehicleRole.TRAILER, VehicleType.TRAILER, "xyz-987"),
        ],
    )
    data.update(overrides)
    return CreateWashSessionInput(**data)


# ============================================================================
# Singletons Reset
# ============================================================================

@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """Reset circuit breakers between tests"""
    from app.core.circuit_breaker import CircuitBreaker
    CircuitBreaker.reset_all()
    yield
    CircuitBreaker.reset_all()


@pytest.fixture(autouse=True)
def reset_invoice_provider():
    from app.domain.services.invoicing import reset_provider
    reset_provider()
    yield
    reset_provider()


# ============================================================================
# Invoice provider double
# ============================================================================

class FakeInvoiceProvider(BaseInvoiceProvider):
    """Records requests and answers with a preset result or error"""

    def __init__(self, result: InvoiceResult | None = None, error: Exception | None = None):
        self.result = result or InvoiceResult(success=True, reference="INV-2026-0001")
        self.error = error
        self.requests: list[InvoiceRequest] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    async def create_invoice(self, request: InvoiceRequest) -> InvoiceResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result

    async def validate_connection(self) -> bool:
        return True
