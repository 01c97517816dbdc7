"""
Partner Account Model - fleet companies billed for their drivers' washes
"""
import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.db.models.network import OperationTrack


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class PartnerAccount(Base):
    """Billing-responsible fleet company"""

    __tablename__ = "partner_accounts"

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)

    # Billing identity handed to the invoice provider
    billing_name = Column(String(200), nullable=True)
    billing_address = Column(String(300), nullable=True)
    billing_city = Column(String(100), nullable=True)
    billing_zip_code = Column(String(20), nullable=True)
    billing_country = Column(String(2), nullable=True)
    tax_number = Column(String(50), nullable=True)

    billing_cycle = Column(SQLEnum(BillingCycle), default=BillingCycle.MONTHLY, nullable=False)
    payment_due_days = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    discount_tiers = relationship(
        "PartnerDiscountTier",
        order_by="PartnerDiscountTier.threshold",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class PartnerDiscountTier(Base):
    """One (threshold, percent) pair of a partner's own or subcontracted schedule"""

    __tablename__ = "partner_discount_tiers"
    __table_args__ = (
        UniqueConstraint("partner_account_id", "track", "threshold", name="partner_track_threshold"),
    )

    id = Column(Integer, primary_key=True, index=True)
    partner_account_id = Column(Integer, ForeignKey("partner_accounts.id"), nullable=False, index=True)
    track = Column(SQLEnum(OperationTrack), nullable=False)
    threshold = Column(Integer, nullable=False)
    percent = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))
