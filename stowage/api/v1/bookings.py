"""Booking endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from stowage.api.deps import Bookings, CurrentUserId, Payments
from stowage.domain.booking_state import BookingStatus
from stowage.schemas.booking import (
    BookingActionRequest,
    BookingCancelRequest,
    BookingCreate,
    BookingExtendRequest,
    BookingListResponse,
    BookingResponse,
)
from stowage.schemas.payment import RefundQuoteResponse

router = APIRouter()


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreate,
    user_id: CurrentUserId,
    bookings: Bookings,
) -> BookingResponse:
    """Create a pending booking for a unit."""
    booking = await bookings.create_booking(
        user_id, request.unit_id, request.start_time, request.end_time, request.notes
    )
    return BookingResponse.model_validate(booking)


@router.get("", response_model=BookingListResponse)
async def list_my_bookings(
    user_id: CurrentUserId,
    bookings: Bookings,
    status_filter: BookingStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> BookingListResponse:
    """List the caller's bookings."""
    items, total = await bookings.list_user_bookings(user_id, status_filter, page, page_size)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: UUID, user_id: CurrentUserId, bookings: Bookings) -> BookingResponse:
    booking = await bookings.get_booking(booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/check-in", response_model=BookingResponse)
async def check_in(
    booking_id: UUID,
    user_id: CurrentUserId,
    bookings: Bookings,
    request: BookingActionRequest | None = None,
) -> BookingResponse:
    """Start occupancy; the access code is verified when supplied."""
    access_code = request.access_code if request else None
    booking = await bookings.check_in(booking_id, user_id, access_code)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/check-out", response_model=BookingResponse)
async def check_out(booking_id: UUID, user_id: CurrentUserId, bookings: Bookings) -> BookingResponse:
    booking = await bookings.check_out(booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/extend", response_model=BookingResponse)
async def extend_booking(
    booking_id: UUID,
    request: BookingExtendRequest,
    user_id: CurrentUserId,
    bookings: Bookings,
) -> BookingResponse:
    """Extend a confirmed or active booking to a later end time."""
    booking = await bookings.extend_booking(booking_id, user_id, request.new_end_time)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    user_id: CurrentUserId,
    bookings: Bookings,
    request: BookingCancelRequest | None = None,
) -> BookingResponse:
    """Cancel without a refund; use /payments/refund for paid bookings."""
    reason = request.reason if request else None
    booking = await bookings.cancel_booking(booking_id, user_id, reason)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/access-code", response_model=BookingResponse)
async def regenerate_access_code(
    booking_id: UUID, user_id: CurrentUserId, bookings: Bookings
) -> BookingResponse:
    booking = await bookings.regenerate_access_code(booking_id, user_id)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/refund-quote", response_model=RefundQuoteResponse)
async def get_refund_quote(
    booking_id: UUID, user_id: CurrentUserId, payments: Payments
) -> RefundQuoteResponse:
    """Refund the policy would grant if the booking were cancelled now."""
    quote = await payments.calculate_refund(booking_id, user_id)
    return RefundQuoteResponse(
        refund_amount=quote.refund_amount,
        percentage=quote.percentage,
        reason=quote.reason,
    )
