"""Payment transaction model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stowage.database import Base, UTCDateTime
from stowage.domain.payment_state import TransactionStatus
from stowage.utils.time import utc_now


class Transaction(Base):
    """Payment or refund against a booking.

    PAYMENT rows are unique per gateway payment intent and REFUND rows per
    gateway refund id, so repeated webhook deliveries cannot duplicate them.
    """

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )

    # Amount
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    type: Mapped[str] = mapped_column(String(10), nullable=False)  # PAYMENT, REFUND
    status: Mapped[str] = mapped_column(
        String(20), default=TransactionStatus.PENDING.value, index=True
    )  # PENDING, COMPLETED, FAILED, REFUNDED

    # Gateway
    gateway: Mapped[str | None] = mapped_column(String(30))  # stripe, manual
    gateway_payment_intent_id: Mapped[str | None] = mapped_column(String(100), unique=True)
    gateway_charge_id: Mapped[str | None] = mapped_column(String(100), index=True)
    gateway_refund_id: Mapped[str | None] = mapped_column(String(100), unique=True)
    gateway_response: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    failure_reason: Mapped[str | None] = mapped_column(Text)

    # Refunds point at the payment they reverse
    original_transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("transactions.id")
    )

    # Timestamps
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, onupdate=utc_now)
