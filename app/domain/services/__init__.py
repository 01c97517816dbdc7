"""
Domain Services

Only the leaf services are re-exported here; services built on the state
machine are imported from their own modules.
"""
from app.domain.services.audit_service import ActorContext, AuditService, SYSTEM_ACTOR
from app.domain.services.pricing_catalog import PricingCatalog
from app.domain.services.usage_counter import UsageCounter
from app.domain.services.partner_account_service import PartnerAccountService

__all__ = [
    "ActorContext",
    "AuditService",
    "SYSTEM_ACTOR",
    "PricingCatalog",
    "UsageCounter",
    "PartnerAccountService",
]
