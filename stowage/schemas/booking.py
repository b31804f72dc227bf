"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stowage.utils.time import as_utc


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    unit_id: UUID
    start_time: datetime
    end_time: datetime
    notes: str | None = Field(None, max_length=1000)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalise_timezone(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("end_time")
    @classmethod
    def validate_end(cls, v: datetime, info) -> datetime:
        start_time = info.data.get("start_time")
        if start_time and v <= start_time:
            raise ValueError("end_time must be after start_time")
        return v


class BookingExtendRequest(BaseModel):
    """Schema for extending a booking."""

    new_end_time: datetime

    @field_validator("new_end_time")
    @classmethod
    def normalise_timezone(cls, v: datetime) -> datetime:
        return as_utc(v)


class BookingCancelRequest(BaseModel):
    """Schema for canceling a booking."""

    reason: str | None = Field(None, max_length=500)


class BookingActionRequest(BaseModel):
    """Schema for check-in/check-out."""

    access_code: str | None = Field(None, pattern=r"^\d{6}$")


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_number: str
    user_id: UUID
    unit_id: UUID

    start_time: datetime
    end_time: datetime

    total_price: Decimal
    currency: str

    status: str
    access_code: str

    check_in_time: datetime | None
    check_out_time: datetime | None
    cancellation_reason: str | None
    notes: str | None

    confirmed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class BookingListResponse(BaseModel):
    """Schema for paginated booking list."""

    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int
