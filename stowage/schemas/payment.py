"""Payment-related Pydantic schemas."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentIntentCreate(BaseModel):
    """Schema for starting payment of a booking."""

    booking_id: UUID


class PaymentIntentResponse(BaseModel):
    """Schema for payment intent response."""

    client_secret: str | None
    payment_intent_id: str
    amount: Decimal
    currency: str


class RefundCreate(BaseModel):
    """Schema for requesting a refund."""

    booking_id: UUID
    amount: Decimal | None = Field(None, gt=0)


class RefundQuoteResponse(BaseModel):
    """Refund the policy would grant right now."""

    refund_amount: Decimal
    percentage: Decimal
    reason: str


class RefundResponse(BaseModel):
    """Schema for executed refund."""

    booking_id: UUID
    booking_status: str
    transaction_id: UUID | None
    refund_id: str | None
    amount: Decimal
    percentage: Decimal
    reason: str
    status: str | None
