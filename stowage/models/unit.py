"""Storage location and unit models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stowage.database import Base, UTCDateTime
from stowage.utils.time import utc_now

if TYPE_CHECKING:
    from stowage.models.booking import Booking


class UnitSize(str, Enum):
    """Unit size classes."""

    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"
    XL = "XL"


class UnitStatus(str, Enum):
    """Unit operational status."""

    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    MAINTENANCE = "MAINTENANCE"


class Location(Base):
    """Storage location owning a set of units."""

    __tablename__ = "locations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    # Relationships
    units: Mapped[list["Unit"]] = relationship("Unit", back_populates="location")


class Unit(Base):
    """Bookable storage unit."""

    __tablename__ = "units"
    __table_args__ = (UniqueConstraint("location_id", "unit_number", name="uq_units_location_number"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    unit_number: Mapped[str] = mapped_column(String(20), nullable=False)
    size: Mapped[str] = mapped_column(String(10), nullable=False)  # UnitSize

    # Pricing
    base_price_hourly: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    base_price_daily: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    base_price_monthly: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=UnitStatus.AVAILABLE.value, index=True
    )  # UnitStatus
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    location: Mapped["Location"] = relationship("Location", back_populates="units")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="unit")

    @property
    def monthly_rate(self) -> Decimal:
        """Monthly price, falling back to 30 daily rates."""
        if self.base_price_monthly is not None:
            return self.base_price_monthly
        return self.base_price_daily * 30
