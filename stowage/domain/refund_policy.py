"""Refund policy domain logic.

Refunds are tiered by the time remaining until the booking starts:
- 48h or more: 100% of the total
- 24h to 48h: 75%
- 6h to 24h: 50%
- under 6h: no refund
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")

# (minimum time before start, refund percentage, reason)
# Evaluated in order - first match wins
REFUND_TIERS: list[tuple[timedelta, Decimal, str]] = [
    (timedelta(hours=48), Decimal("100"), "Full refund - cancelled more than 48 hours before start"),
    (timedelta(hours=24), Decimal("75"), "Partial refund - cancelled 24-48 hours before start"),
    (timedelta(hours=6), Decimal("50"), "Partial refund - cancelled 6-24 hours before start"),
]

NO_REFUND_REASON = "No refund - cancelled less than 6 hours before start"


@dataclass(frozen=True)
class RefundQuote:
    """Outcome of applying the refund policy."""

    refund_amount: Decimal
    percentage: Decimal
    reason: str


def calculate_refund_percentage(start_time: datetime, now: datetime) -> tuple[Decimal, str]:
    """Return the refund percentage (0-100) and its reason."""
    time_until_start = start_time - now
    for min_notice, refund_pct, reason in REFUND_TIERS:
        if time_until_start >= min_notice:
            return refund_pct, reason
    return Decimal("0"), NO_REFUND_REASON


def calculate_refund(
    start_time: datetime,
    total_price: Decimal,
    now: datetime,
    requested_amount: Decimal | None = None,
) -> RefundQuote:
    """Calculate the refundable amount for a booking.

    Args:
        start_time: Booking start
        total_price: Total paid for the booking
        now: Time of the refund request
        requested_amount: Amount asked for; defaults to the full price

    Returns:
        RefundQuote: min(requested, total x tier percentage), rounded to cents
    """
    refund_pct, reason = calculate_refund_percentage(start_time, now)
    requested = total_price if requested_amount is None else Decimal(requested_amount)
    max_refund = Decimal(total_price) * refund_pct / Decimal("100")
    refund_amount = min(requested, max_refund).quantize(CENTS, rounding=ROUND_HALF_UP)
    return RefundQuote(refund_amount=refund_amount, percentage=refund_pct, reason=reason)
