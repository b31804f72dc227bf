"""Unit availability schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AvailabilityConflict(BaseModel):
    """A blocking booking overlapping the requested interval."""

    booking_id: UUID
    start_time: datetime
    end_time: datetime


class AvailabilityResult(BaseModel):
    """Outcome of an availability check."""

    available: bool
    conflicts: list[AvailabilityConflict] = []


class UnitResponse(BaseModel):
    """Schema for unit response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    location_id: UUID
    unit_number: str
    size: str
    base_price_hourly: Decimal
    base_price_daily: Decimal
    base_price_monthly: Decimal | None
    currency: str
    status: str
    is_active: bool
