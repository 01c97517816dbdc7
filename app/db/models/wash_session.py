"""
Wash Session Model - one wash transaction and its priced vehicle components

Sessions are never deleted. Status changes go exclusively through
app.state_machine.manager, which bumps ``version`` on every write.
"""
import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Numeric, Text,
    Enum as SQLEnum, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.db.models.network import OperationTrack
from app.db.models.service_price import VehicleType


class WashSessionStatus(str, enum.Enum):
    CREATED = "created"
    AUTHORIZED = "authorized"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    LOCKED = "locked"
    REJECTED = "rejected"


class EntryMode(str, enum.Enum):
    DRIVER = "driver"  # driver-initiated from the mobile app
    OPERATOR_MANUAL = "operator_manual"  # keyed in by a location operator


class VehicleRole(str, enum.Enum):
    TRACTOR = "tractor"
    TRAILER = "trailer"
    SINGLE = "single"  # rigid vehicle, no tractor/trailer split


class WashSession(Base):
    """Wash transaction"""

    __tablename__ = "wash_sessions"
    __table_args__ = (
        # Usage counter query: partner + track + billing window
        Index(
            "ix_wash_sessions_partner_usage",
            "partner_account_id", "operation_track", "created_at",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    service_package_id = Column(Integer, ForeignKey("service_packages.id"), nullable=False)

    entry_mode = Column(SQLEnum(EntryMode), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)
    driver_name_manual = Column(String(200), nullable=True)
    created_by_user_id = Column(String(64), nullable=True)

    # Billing responsible party; empty for walk-in operator sessions
    partner_account_id = Column(Integer, ForeignKey("partner_accounts.id"), nullable=True)
    operation_track = Column(SQLEnum(OperationTrack), nullable=False)

    status = Column(SQLEnum(WashSessionStatus), default=WashSessionStatus.CREATED, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)

    # Pricing, fixed when the session is priced
    usage_count = Column(Integer, nullable=False, default=0)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    total_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    currency = Column(String(3), nullable=False)

    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    authorized_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    locked_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    components = relationship(
        "WashSessionComponent",
        order_by="WashSessionComponent.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class WashSessionComponent(Base):
    """A separately priced vehicle of a session (tractor, trailer, ...)"""

    __tablename__ = "wash_session_components"
    __table_args__ = (
        UniqueConstraint("wash_session_id", "position", name="session_position"),
    )

    id = Column(Integer, primary_key=True, index=True)
    wash_session_id = Column(Integer, ForeignKey("wash_sessions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    vehicle_role = Column(SQLEnum(VehicleRole), nullable=False)
    vehicle_type = Column(SQLEnum(VehicleType), nullable=False)
    plate_number = Column(String(20), nullable=False)

    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    total_price = Column(Numeric(12, 2), nullable=False)
