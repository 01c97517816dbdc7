"""
Invoice Record Model - outcome of handing a partner's locked sessions to the invoice provider
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship

from app.db.database import Base


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    ISSUED = "issued"
    FAILED = "failed"


class InvoiceRecord(Base):
    """One attempt to issue an invoice through the provider"""

    __tablename__ = "invoice_records"

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False, index=True)
    partner_account_id = Column(Integer, ForeignKey("partner_accounts.id"), nullable=False, index=True)

    provider = Column(String(50), nullable=False)
    status = Column(SQLEnum(InvoiceStatus), nullable=False)
    external_reference = Column(String(100), nullable=True)
    error = Column(Text, nullable=True)

    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    line_count = Column(Integer, nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    sessions = relationship("InvoicedSession", cascade="all, delete-orphan", lazy="selectin")


class InvoicedSession(Base):
    """Links a locked session to the invoice that billed it; a session is billed once"""

    __tablename__ = "invoiced_sessions"

    id = Column(Integer, primary_key=True, index=True)
    invoice_record_id = Column(Integer, ForeignKey("invoice_records.id"), nullable=False, index=True)
    wash_session_id = Column(Integer, ForeignKey("wash_sessions.id"), nullable=False, unique=True)
