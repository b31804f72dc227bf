"""Pydantic schemas for API validation."""

from stowage.schemas.booking import (
    BookingActionRequest,
    BookingCancelRequest,
    BookingCreate,
    BookingExtendRequest,
    BookingListResponse,
    BookingResponse,
)
from stowage.schemas.payment import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    RefundCreate,
    RefundQuoteResponse,
    RefundResponse,
)
from stowage.schemas.pricing import (
    EstimatedPrices,
    PriceAdjustmentResponse,
    PriceCalculation,
    PricingRuleCreate,
    PricingRuleResponse,
)
from stowage.schemas.unit import AvailabilityConflict, AvailabilityResult, UnitResponse

__all__ = [
    # Booking
    "BookingCreate",
    "BookingExtendRequest",
    "BookingCancelRequest",
    "BookingActionRequest",
    "BookingResponse",
    "BookingListResponse",
    # Pricing
    "PriceAdjustmentResponse",
    "PriceCalculation",
    "EstimatedPrices",
    "PricingRuleCreate",
    "PricingRuleResponse",
    # Availability
    "AvailabilityConflict",
    "AvailabilityResult",
    "UnitResponse",
    # Payment
    "PaymentIntentCreate",
    "PaymentIntentResponse",
    "RefundCreate",
    "RefundQuoteResponse",
    "RefundResponse",
]
