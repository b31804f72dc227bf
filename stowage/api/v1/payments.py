"""Payment endpoints."""

from fastapi import APIRouter

from stowage.api.deps import CurrentStaffId, CurrentUserId, Payments
from stowage.schemas.booking import BookingResponse
from stowage.schemas.payment import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    RefundCreate,
    RefundResponse,
)

router = APIRouter()


@router.post("/intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: PaymentIntentCreate,
    user_id: CurrentUserId,
    payments: Payments,
) -> PaymentIntentResponse:
    """Create (or reuse) a payment intent for a pending booking."""
    return await payments.create_payment_intent(request.booking_id, user_id)


@router.post("/refund", response_model=RefundResponse)
async def request_refund(
    request: RefundCreate,
    user_id: CurrentUserId,
    payments: Payments,
) -> RefundResponse:
    """Cancel a paid booking and refund it according to the refund policy."""
    outcome = await payments.request_refund(request.booking_id, user_id, request.amount)
    transaction = outcome.transaction
    return RefundResponse(
        booking_id=outcome.booking.id,
        booking_status=outcome.booking.status,
        transaction_id=transaction.id if transaction else None,
        refund_id=transaction.gateway_refund_id if transaction else None,
        amount=outcome.quote.refund_amount,
        percentage=outcome.quote.percentage,
        reason=outcome.quote.reason,
        status=transaction.status if transaction else None,
    )


@router.post("/{payment_intent_id}/settle", response_model=BookingResponse)
async def settle_manual_payment(
    payment_intent_id: str,
    staff_id: CurrentStaffId,
    payments: Payments,
) -> BookingResponse:
    """Mark a front-desk payment as received and confirm its booking (staff only)."""
    booking = await payments.settle_manual_payment(payment_intent_id)
    return BookingResponse.model_validate(booking)
