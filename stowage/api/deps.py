"""API dependencies for caller identity and service lookup."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, Request

from stowage.core.exceptions import AuthenticationError, AuthorizationError
from stowage.models.user import User
from stowage.services.availability_service import AvailabilityService
from stowage.services.booking_service import BookingService
from stowage.services.payment_service import PaymentService
from stowage.services.pricing_service import PricingService

STAFF_ROLE = "staff"


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> UUID:
    """Resolve the caller from the X-User-Id header set by the gateway in front of us."""
    if not x_user_id:
        raise AuthenticationError("Missing X-User-Id header")
    try:
        return UUID(x_user_id)
    except ValueError:
        raise AuthenticationError("Invalid X-User-Id header")


async def get_current_staff_id(
    request: Request,
    user_id: Annotated[UUID, Depends(get_current_user_id)],
) -> UUID:
    """Get the caller and verify they are front-desk staff."""
    async with request.app.state.session_factory() as db:
        user = await db.get(User, user_id)
    if not user or user.role != STAFF_ROLE:
        raise AuthorizationError("Staff access required")
    return user_id


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability_service


def get_pricing_service(request: Request) -> PricingService:
    return request.app.state.pricing_service


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentStaffId = Annotated[UUID, Depends(get_current_staff_id)]
Availability = Annotated[AvailabilityService, Depends(get_availability_service)]
Pricing = Annotated[PricingService, Depends(get_pricing_service)]
Bookings = Annotated[BookingService, Depends(get_booking_service)]
Payments = Annotated[PaymentService, Depends(get_payment_service)]
