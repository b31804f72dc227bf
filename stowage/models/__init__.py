"""Database models."""

from stowage.models.booking import Booking, BookingExtension
from stowage.models.payment import Transaction
from stowage.models.pricing import PricingRule
from stowage.models.unit import Location, Unit, UnitSize, UnitStatus
from stowage.models.user import LoyaltyTransaction, User

__all__ = [
    # Inventory
    "Location",
    "Unit",
    "UnitSize",
    "UnitStatus",
    # Booking
    "Booking",
    "BookingExtension",
    # Pricing
    "PricingRule",
    # Payment
    "Transaction",
    # Loyalty
    "User",
    "LoyaltyTransaction",
]
