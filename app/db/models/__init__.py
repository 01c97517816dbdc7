"""
Database Models
"""
from app.db.models.network import Network, Location, ServicePackage, LocationServiceAvailability, OperationTrack
from app.db.models.partner_account import PartnerAccount, PartnerDiscountTier, BillingCycle
from app.db.models.driver import Driver
from app.db.models.service_price import ServicePrice, VehicleType
from app.db.models.wash_session import (
    WashSession, WashSessionComponent, WashSessionStatus, EntryMode, VehicleRole,
)
from app.db.models.audit_log import WashAuditLog, AuditAction, ActorType
from app.db.models.invoice_record import InvoiceRecord, InvoicedSession, InvoiceStatus

__all__ = [
    "Network",
    "Location",
    "ServicePackage",
    "LocationServiceAvailability",
    "OperationTrack",
    "PartnerAccount",
    "PartnerDiscountTier",
    "BillingCycle",
    "Driver",
    "ServicePrice",
    "VehicleType",
    "WashSession",
    "WashSessionComponent",
    "WashSessionStatus",
    "EntryMode",
    "VehicleRole",
    "WashAuditLog",
    "AuditAction",
    "ActorType",
    "InvoiceRecord",
    "InvoicedSession",
    "InvoiceStatus",
]
