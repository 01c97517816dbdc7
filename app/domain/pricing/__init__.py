"""
Pricing rules that need no database access
"""
from app.domain.pricing.discounts import (
    DiscountTier,
    MAX_TIERS,
    apply_discount,
    resolve_discount,
    validate_schedule,
)

__all__ = [
    "DiscountTier",
    "MAX_TIERS",
    "apply_discount",
    "resolve_discount",
    "validate_schedule",
]
