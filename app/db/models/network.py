"""
Network Models - tenants, their wash locations and service packages
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum, UniqueConstraint

from app.db.database import Base


class OperationTrack(str, enum.Enum):
    """Whether a location is run by the network itself or by a subcontractor.

    Selects which of a partner's two discount schedules applies.
    """
    OWN = "own"
    SUBCONTRACTOR = "subcontractor"


class Network(Base):
    """Tenant: an operator of one or more wash locations"""

    __tablename__ = "networks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Location(Base):
    """Wash location belonging to a network"""

    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    operation_track = Column(SQLEnum(OperationTrack), default=OperationTrack.OWN, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)



class ServicePackage(Base):
    """A wash service offered by a network (e.g. exterior wash)"""

    __tablename__ = "service_packages"

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class LocationServiceAvailability(Base):
    """Which service packages can be ordered at which location"""

    __tablename__ = "location_service_availability"
    __table_args__ = (
        UniqueConstraint("location_id", "service_package_id", name="location_service"),
    )

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    service_package_id = Column(Integer, ForeignKey("service_packages.id"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
