"""Booking state machine."""

from enum import Enum

from stowage.core.exceptions import InvalidBookingStatus


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.ACTIVE, BookingStatus.CANCELLED},
    BookingStatus.ACTIVE: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

# Statuses that hold the unit for their interval
BLOCKING_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ACTIVE}
)

EXTENDABLE_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.ACTIVE})
ACCESS_CODE_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.ACTIVE})
REFUNDABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def assert_booking_transition(
    current: str | BookingStatus,
    target: BookingStatus,
    action: str | None = None,
) -> None:
    current = BookingStatus(current)
    allowed = BOOKING_TRANSITIONS.get(current, set())
    if target not in allowed:
        if action:
            raise InvalidBookingStatus(
                f"Cannot {action} booking with status: {current.value}"
            )
        raise InvalidBookingStatus(
            f"Invalid booking transition: {current.value} → {target.value}"
        )


def assert_booking_status(
    current: str | BookingStatus,
    allowed: frozenset[BookingStatus],
    action: str,
) -> None:
    """Guard for operations that keep the status but require one of `allowed`."""
    current = BookingStatus(current)
    if current not in allowed:
        raise InvalidBookingStatus(
            f"Cannot {action} booking with status: {current.value}"
        )
