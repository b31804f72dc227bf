"""Pricing rule conditions and evaluation.

Rules carry a closed set of optional conditions. A rule applies when every
condition it supplies holds for the candidate booking; absent conditions are
ignored. An applicable rule yields one adjustment of
``base_price * |multiplier - 1|``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Annotated, Any, Literal
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stowage.domain.duration import DurationInfo
from stowage.models.unit import UnitSize

CENTS = Decimal("0.01")

Weekday = Annotated[int, Field(ge=0, le=6)]  # 0=Sunday, 6=Saturday


class HourRange(BaseModel):
    """Half-open hour window [start, end) in local time."""

    model_config = ConfigDict(extra="forbid")

    start: int = Field(ge=0, le=23)
    end: int = Field(ge=1, le=24)

    @model_validator(mode="after")
    def validate_order(self) -> "HourRange":
        if self.end <= self.start:
            raise ValueError("hourRange.end must be after hourRange.start")
        return self


class RuleConditions(BaseModel):
    """Closed set of pricing rule conditions. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    day_of_week: list[Weekday] | None = Field(default=None, alias="dayOfWeek")
    hour_range: HourRange | None = Field(default=None, alias="hourRange")
    min_duration: float | None = Field(default=None, ge=0, alias="minDuration")
    max_duration: float | None = Field(default=None, ge=0, alias="maxDuration")
    unit_size: list[UnitSize] | None = Field(default=None, alias="unitSize")
    cities: list[str] | None = None

    @model_validator(mode="after")
    def validate_duration_bounds(self) -> "RuleConditions":
        if (
            self.min_duration is not None
            and self.max_duration is not None
            and self.min_duration > self.max_duration
        ):
            raise ValueError("minDuration must not exceed maxDuration")
        return self

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class LoadedRule:
    """A validated, active rule ready for evaluation."""

    name: str
    multiplier: Decimal
    priority: int
    conditions: RuleConditions


@dataclass(frozen=True)
class PricingContext:
    """Everything a rule predicate may look at."""

    start: datetime
    end: datetime
    duration: DurationInfo
    unit_size: UnitSize
    city: str | None
    timezone: str = "UTC"

    @property
    def local_start(self) -> datetime:
        return self.start.astimezone(ZoneInfo(self.timezone))


@dataclass(frozen=True)
class PriceAdjustment:
    name: str
    type: Literal["surcharge", "discount"]
    amount: Decimal  # rounded for reporting
    percentage: int
    raw_amount: Decimal  # unrounded, used for accumulation


def weekday_sunday_first(moment: datetime) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return moment.isoweekday() % 7


def rule_applies(conditions: RuleConditions, context: PricingContext) -> bool:
    local_start = context.local_start

    if conditions.day_of_week is not None:
        if weekday_sunday_first(local_start) not in conditions.day_of_week:
            return False

    if conditions.hour_range is not None:
        hour = local_start.hour
        if hour < conditions.hour_range.start or hour >= conditions.hour_range.end:
            return False

    hours = context.duration.exact_hours
    if conditions.min_duration is not None and hours < conditions.min_duration:
        return False
    if conditions.max_duration is not None and hours > conditions.max_duration:
        return False

    if conditions.unit_size is not None and context.unit_size not in conditions.unit_size:
        return False

    if conditions.cities is not None and context.city not in conditions.cities:
        return False

    return True


def evaluate_rule(
    rule: LoadedRule,
    context: PricingContext,
    base_price: Decimal,
) -> PriceAdjustment | None:
    """Evaluate one rule; return its adjustment or None if it does not apply."""
    if not rule_applies(rule.conditions, context):
        return None

    delta = rule.multiplier - Decimal("1")
    raw_amount = base_price * abs(delta)
    # Halves round toward positive infinity: -12.5 -> -12, 12.5 -> 13
    percentage = int((delta * 100 + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))

    return PriceAdjustment(
        name=rule.name,
        type="surcharge" if rule.multiplier >= 1 else "discount",
        amount=raw_amount.quantize(CENTS, rounding=ROUND_HALF_UP),
        percentage=percentage,
        raw_amount=raw_amount,
    )


def evaluate_rules(
    rules: list[LoadedRule],
    context: PricingContext,
    base_price: Decimal,
) -> list[PriceAdjustment]:
    """Evaluate rules by descending priority; ties keep their incoming order."""
    ordered = sorted(rules, key=lambda r: r.priority, reverse=True)
    adjustments: list[PriceAdjustment] = []
    for rule in ordered:
        adjustment = evaluate_rule(rule, context, base_price)
        if adjustment:
            adjustments.append(adjustment)
    return adjustments
