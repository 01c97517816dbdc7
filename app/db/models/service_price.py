"""
Service Price Model - base unit price per (service package, vehicle type)
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric, Enum as SQLEnum, Index

from app.db.database import Base


class VehicleType(str, enum.Enum):
    CAR = "car"
    VAN = "van"
    BUS = "bus"
    TRUCK_1_5T = "truck_1_5t"
    TRUCK_3_5T = "truck_3_5t"
    TRUCK_7_5T = "truck_7_5t"
    TRUCK_12T = "truck_12t"
    TRUCK_12T_PLUS = "truck_12t_plus"
    SEMI_TRUCK = "semi_truck"
    TRACTOR = "tractor"
    TRAILER = "trailer"
    TANK_SOLO = "tank_solo"
    TANK_TRUCK = "tank_truck"
    TANK_SEMI_TRAILER = "tank_semi_trailer"


class ServicePrice(Base):
    """
    Price of a service package for a vehicle type.

    A row with neither location nor partner set is the network default; a
    location-specific row overrides it at that location, and a partner-specific
    row overrides both for that partner.
    """

    __tablename__ = "service_prices"
    __table_args__ = (
        Index(
            "ix_service_prices_lookup",
            "network_id", "service_package_id", "vehicle_type",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    network_id = Column(Integer, ForeignKey("networks.id"), nullable=False)
    service_package_id = Column(Integer, ForeignKey("service_packages.id"), nullable=False)
    vehicle_type = Column(SQLEnum(VehicleType), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    partner_account_id = Column(Integer, ForeignKey("partner_accounts.id"), nullable=True)

    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
