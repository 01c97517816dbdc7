"""
Volume Discount Resolution

A partner has two independent schedules (own locations, subcontractor
locations), each a list of at most five (threshold, percent) tiers. The
applicable percent for a usage count is the percent of the highest threshold
that the usage has reached.

Everything here is pure: no database, no clock.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from app.core.exceptions import ErrorCode, ValidationException

MAX_TIERS = 5
ZERO_PERCENT = Decimal("0")
HUNDRED_PERCENT = Decimal("100")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class DiscountTier:
    threshold: int
    percent: Decimal

    @classmethod
    def of(cls, threshold: int, percent) -> "DiscountTier":
        return cls(threshold=int(threshold), percent=Decimal(str(percent)))


def _invalid(message: str, schedule: Sequence[DiscountTier]) -> ValidationException:
    return ValidationException(
        message,
        field="discount_schedule",
        error_code=ErrorCode.INVALID_DISCOUNT_SCHEDULE,
        details={
            "tiers": [
                {"threshold": tier.threshold, "percent": str(tier.percent)}
                for tier in schedule
            ]
        },
    )


def validate_schedule(schedule: Sequence[DiscountTier]) -> None:
    """
    Raise ValidationException unless the schedule has at most five tiers,
    strictly increasing positive thresholds and every percent within [0, 100].
    """
    if len(schedule) > MAX_TIERS:
        raise _invalid(f"A discount schedule may have at most {MAX_TIERS} tiers", schedule)

    previous = 0
    for tier in schedule:
        if tier.threshold <= previous:
            raise _invalid("Discount thresholds must be positive and strictly increasing", schedule)
        if tier.percent < ZERO_PERCENT or tier.percent > HUNDRED_PERCENT:
            raise _invalid("Discount percent must be between 0 and 100", schedule)
        previous = tier.threshold


def resolve_discount(schedule: Iterable[DiscountTier], usage_count: int) -> Decimal:
    """
    Percent of the highest tier whose threshold is <= usage_count.

    Returns 0 for an empty schedule or a usage below the first threshold.
    The schedule does not need to be sorted.
    """
    if usage_count < 0:
        raise ValidationException("Usage count cannot be negative", field="usage_count")

    percent = ZERO_PERCENT
    best_threshold = None
    for tier in schedule:
        if tier.threshold <= usage_count and (best_threshold is None or tier.threshold > best_threshold):
            best_threshold = tier.threshold
            percent = tier.percent
    return percent


def apply_discount(amount: Decimal, percent: Decimal) -> Decimal:
    """Amount after a percent discount, rounded to cents"""
    discounted = amount * (HUNDRED_PERCENT - percent) / HUNDRED_PERCENT
    return discounted.quantize(CENT)
