"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stowage.database import Base, UTCDateTime
from stowage.domain.booking_state import BookingStatus
from stowage.utils.time import utc_now

if TYPE_CHECKING:
    from stowage.models.unit import Unit
    from stowage.models.user import User


class Booking(Base):
    """Booking model."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_unit_status_interval", "unit_id", "status", "start_time", "end_time"),
        CheckConstraint("end_time > start_time", name="ck_bookings_interval"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_number: Mapped[str] = mapped_column(
        String(30), unique=True, nullable=False, index=True
    )  # SB-XXXXXXXX-XXXXXX
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("units.id"), nullable=False, index=True
    )

    # Interval
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)

    # Pricing
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=BookingStatus.PENDING.value, index=True
    )  # PENDING, CONFIRMED, ACTIVE, COMPLETED, CANCELLED

    # Access
    access_code: Mapped[str] = mapped_column(String(6), nullable=False)

    # Occupancy
    check_in_time: Mapped[datetime | None] = mapped_column(UTCDateTime)
    check_out_time: Mapped[datetime | None] = mapped_column(UTCDateTime)

    # Cancellation
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    notes: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    unit: Mapped["Unit"] = relationship("Unit", back_populates="bookings")
    user: Mapped["User"] = relationship("User", back_populates="bookings")
    extensions: Mapped[list["BookingExtension"]] = relationship(
        "BookingExtension", back_populates="booking", cascade="all, delete-orphan"
    )

    @property
    def duration_hours(self) -> float:
        """Booked duration in hours."""
        return (self.end_time - self.start_time).total_seconds() / 3600


class BookingExtension(Base):
    """History of booking extensions."""

    __tablename__ = "booking_extensions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    original_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    new_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    additional_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="extensions")
