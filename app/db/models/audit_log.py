"""
Audit Log Model - immutable record of every wash session transition

One row per successful transition (plus one for creation): who moved the
session from which status to which, and the pricing decision when one was made.
Rows are only ever inserted.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, String, Enum as SQLEnum, Index
from sqlalchemy.types import JSON

from app.db.database import Base
from app.db.models.wash_session import WashSessionStatus


class AuditAction(str, enum.Enum):
    CREATE = "create"
    AUTHORIZE = "authorize"
    START = "start"
    COMPLETE = "complete"
    REJECT = "reject"
    LOCK = "lock"


class ActorType(str, enum.Enum):
    DRIVER = "driver"
    USER = "user"
    SYSTEM = "system"


class WashAuditLog(Base):
    """Append-only audit entry"""

    __tablename__ = "wash_audit_logs"
    __table_args__ = (
        Index("ix_wash_audit_logs_network_created", "network_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False)
    wash_session_id = Column(Integer, ForeignKey("wash_sessions.id"), nullable=False, index=True)
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    previous_status = Column(SQLEnum(WashSessionStatus), nullable=True)
    new_status = Column(SQLEnum(WashSessionStatus), nullable=False)
    actor_type = Column(SQLEnum(ActorType), nullable=False)
    actor_id = Column(String(64), nullable=True)
    # Session version after the transition
    version = Column(Integer, nullable=False)
    # Usage count, tier, component prices; set only when pricing was decided
    pricing = Column(JSON, nullable=True)
    # e.g. rejection reason
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
