"""User and loyalty ledger models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stowage.database import Base, UTCDateTime
from stowage.utils.time import utc_now

if TYPE_CHECKING:
    from stowage.models.booking import Booking


class User(Base):
    """Customer account; only the loyalty balance is managed here."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    loyalty_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="customer", nullable=False)  # customer, staff
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    # Relationships
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="user")
    loyalty_transactions: Mapped[list["LoyaltyTransaction"]] = relationship(
        "LoyaltyTransaction", back_populates="user"
    )


class LoyaltyTransaction(Base):
    """Append-only loyalty points ledger."""

    __tablename__ = "loyalty_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # EARNED, REDEEMED
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # BOOKING
    reference_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="loyalty_transactions")
