"""
Driver Model
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey

from app.db.database import Base


class Driver(Base):
    """Driver employed by a partner company"""

    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False, index=True)
    partner_account_id = Column(Integer, ForeignKey("partner_accounts.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
