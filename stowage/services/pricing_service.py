"""Price calculation service.

Prices are built from the unit's base rate for the duration tier, adjusted by
every applicable active pricing rule, floored at the hourly rate and taxed.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stowage.config import Settings, settings
from stowage.core.exceptions import ValidationError
from stowage.database import async_session_maker, transactional_session
from stowage.domain.duration import DurationInfo, PricingTier, classify_duration
from stowage.domain.pricing_rules import (
    LoadedRule,
    PricingContext,
    RuleConditions,
    evaluate_rules,
)
from stowage.models.pricing import PricingRule
from stowage.models.unit import Location, Unit, UnitSize
from stowage.schemas.pricing import (
    EstimatedPrices,
    PriceAdjustmentResponse,
    PriceCalculation,
    PricingRuleCreate,
)
from stowage.services.availability_service import load_unit
from stowage.utils.time import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def base_price_for(unit: Unit, duration: DurationInfo) -> Decimal:
    """Base rate times billable units for the duration's tier."""
    rates = {
        PricingTier.HOURLY: unit.base_price_hourly,
        PricingTier.DAILY: unit.base_price_daily,
        PricingTier.MONTHLY: unit.monthly_rate,
    }
    return Decimal(rates[duration.tier]) * duration.units


class PricingService:
    """Service for pricing units and managing pricing rules."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock = utc_now,
        config: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_maker
        self._clock = clock
        self._settings = config or settings

    async def calculate_price(self, unit_id: UUID, start: datetime, end: datetime) -> PriceCalculation:
        """Calculate the full price for renting a unit over [start, end].

        Args:
            unit_id: Unit to price
            start: Rental start
            end: Rental end

        Returns:
            PriceCalculation: Base price, adjustments, subtotal, tax and total
        """
        async with self._session_factory() as db:
            unit = await load_unit(db, unit_id)
            return await self.price_unit(db, unit, start, end)

    async def price_unit(
        self,
        db: AsyncSession,
        unit: Unit,
        start: datetime,
        end: datetime,
    ) -> PriceCalculation:
        """Price an already-loaded unit within the caller's session."""
        start, end = as_utc(start), as_utc(end)
        duration = classify_duration(start, end)
        base_price = base_price_for(unit, duration)

        city = await db.scalar(select(Location.city).where(Location.id == unit.location_id))
        context = PricingContext(
            start=start,
            end=end,
            duration=duration,
            unit_size=UnitSize(unit.size),
            city=city,
            timezone=self._settings.pricing_timezone,
        )
        rules = await self.get_active_rules(db)
        adjustments = evaluate_rules(rules, context, base_price)

        subtotal = base_price
        for adjustment in adjustments:
            if adjustment.type == "surcharge":
                subtotal += adjustment.raw_amount
            else:
                subtotal -= adjustment.raw_amount
        subtotal = max(subtotal, Decimal(unit.base_price_hourly))

        tax = round_money(subtotal * self._settings.tax_rate)
        total = round_money(subtotal + tax)

        return PriceCalculation(
            base_price=round_money(base_price),
            duration=duration.hours,
            duration_type=duration.tier.value,
            adjustments=[
                PriceAdjustmentResponse(
                    name=a.name,
                    type=a.type,
                    amount=a.amount,
                    percentage=a.percentage,
                )
                for a in adjustments
            ],
            subtotal=round_money(subtotal),
            tax=tax,
            total=total,
            currency=unit.currency,
        )

    async def get_active_rules(self, db: AsyncSession) -> list[LoadedRule]:
        """Load active rules in effect now, highest priority first.

        Raises:
            ValidationError: A stored rule has malformed conditions
        """
        now = self._clock()
        result = await db.execute(
            select(PricingRule)
            .where(
                PricingRule.is_active.is_(True),
                or_(PricingRule.start_date.is_(None), PricingRule.start_date <= now),
                or_(PricingRule.end_date.is_(None), PricingRule.end_date >= now),
            )
            .order_by(PricingRule.priority.desc(), PricingRule.created_at, PricingRule.id)
        )

        rules = []
        for row in result.scalars().all():
            try:
                conditions = RuleConditions.model_validate(row.conditions or {})
            except PydanticValidationError as e:
                logger.error(f"Pricing rule {row.id} ({row.name}) has invalid conditions: {e}")
                raise ValidationError(f"Pricing rule '{row.name}' has invalid conditions") from e
            rules.append(
                LoadedRule(
                    name=row.name,
                    multiplier=Decimal(row.multiplier),
                    priority=row.priority,
                    conditions=conditions,
                )
            )
        return rules

    async def get_estimated_prices(self, unit_id: UUID) -> EstimatedPrices:
        """Headline hourly/daily/weekly/monthly prices before rules and tax."""
        async with self._session_factory() as db:
            unit = await load_unit(db, unit_id)

        daily = Decimal(unit.base_price_daily)
        return EstimatedPrices(
            hourly=round_money(Decimal(unit.base_price_hourly)),
            daily=round_money(daily),
            weekly=round_money(daily * 7),
            monthly=round_money(Decimal(unit.monthly_rate)),
            currency=unit.currency,
        )

    async def create_rule(self, data: PricingRuleCreate) -> PricingRule:
        """Persist a new pricing rule.

        Args:
            data: Validated rule definition

        Returns:
            PricingRule: Created rule
        """
        async with transactional_session(self._session_factory) as db:
            rule = PricingRule(
                name=data.name,
                description=data.description,
                rule_type=data.rule_type,
                conditions=data.conditions.to_storage(),
                multiplier=data.multiplier,
                priority=data.priority,
                is_active=data.is_active,
                start_date=as_utc(data.start_date) if data.start_date else None,
                end_date=as_utc(data.end_date) if data.end_date else None,
            )
            db.add(rule)
            await db.flush()

        logger.info(f"Created pricing rule {rule.id} ({rule.name}) x{rule.multiplier}")
        return rule
