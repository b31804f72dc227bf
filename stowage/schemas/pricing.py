"""Pricing-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stowage.domain.pricing_rules import RuleConditions


class PriceAdjustmentResponse(BaseModel):
    """A single rule-driven surcharge or discount."""

    name: str
    type: Literal["surcharge", "discount"]
    amount: Decimal
    percentage: int


class PriceCalculation(BaseModel):
    """Itemised price for a unit and interval."""

    base_price: Decimal
    duration: int  # billable hours
    duration_type: Literal["hourly", "daily", "monthly"]
    adjustments: list[PriceAdjustmentResponse]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    currency: str


class EstimatedPrices(BaseModel):
    """Headline prices for a unit."""

    hourly: Decimal
    daily: Decimal
    weekly: Decimal
    monthly: Decimal
    currency: str


class PricingRuleCreate(BaseModel):
    """Schema for creating a pricing rule."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    rule_type: Literal["time", "duration", "size", "custom"]
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    multiplier: Decimal = Field(..., gt=0, le=10)
    priority: int = 0
    is_active: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("end_date")
    @classmethod
    def validate_window(cls, v: datetime | None, info) -> datetime | None:
        start_date = info.data.get("start_date")
        if v and start_date and v < start_date:
            raise ValueError("end_date must not be before start_date")
        return v


class PricingRuleResponse(BaseModel):
    """Schema for pricing rule response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    rule_type: str
    conditions: dict[str, Any]
    multiplier: Decimal
    priority: int
    is_active: bool
    start_date: datetime | None
    end_date: datetime | None
    created_at: datetime
