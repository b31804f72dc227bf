"""Duration classification for pricing tiers."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from stowage.core.exceptions import ValidationError

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
DAYS_PER_MONTH = 30

# Upper bounds (inclusive, in hours) for each tier
HOURLY_MAX_HOURS = 24
DAILY_MAX_HOURS = 720


class PricingTier(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class DurationInfo:
    hours: int
    days: int
    months: int
    exact_hours: float
    tier: PricingTier

    @property
    def units(self) -> int:
        """Number of billable units for the selected tier."""
        if self.tier == PricingTier.HOURLY:
            return self.hours
        if self.tier == PricingTier.DAILY:
            return self.days
        return self.months


def _ceil_div(delta: timedelta, unit: timedelta) -> int:
    return -(-delta // unit)


def determine_tier(hours: int) -> PricingTier:
    if hours <= HOURLY_MAX_HOURS:
        return PricingTier.HOURLY
    if hours <= DAILY_MAX_HOURS:
        return PricingTier.DAILY
    return PricingTier.MONTHLY


def classify_duration(start: datetime, end: datetime) -> DurationInfo:
    """Map an interval to rounded-up hours/days/months and a pricing tier."""
    if end <= start:
        raise ValidationError("End time must be after start time")

    delta = end - start
    hours = _ceil_div(delta, HOUR)
    days = _ceil_div(delta, DAY)
    months = -(-days // DAYS_PER_MONTH)

    return DurationInfo(
        hours=hours,
        days=days,
        months=months,
        exact_hours=delta / HOUR,
        tier=determine_tier(hours),
    )
