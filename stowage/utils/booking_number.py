"""Booking number and access code generation utilities."""

import logging
import secrets
import string
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stowage.core.exceptions import GenerationExhaustedError

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits)) or "0"


def make_booking_number() -> str:
    """Booking number like 'SB-M3K2P1QZ-4F9A1C' (timestamp + random suffix)."""
    timestamp = _to_base36(int(datetime.now(UTC).timestamp() * 1000))
    random_part = secrets.token_hex(3).upper()
    return f"SB-{timestamp}-{random_part}"


def make_access_code() -> str:
    """Random 6-digit access code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


async def generate_booking_number(
    db: AsyncSession,
    max_attempts: int = 10,
    factory: Callable[[], str] = make_booking_number,
) -> str:
    """Generate a booking number not yet used by any booking.

    Args:
        db: Database session for uniqueness check
        max_attempts: Retry budget on collision
        factory: Candidate generator

    Returns:
        str: Unique booking number

    Raises:
        GenerationExhaustedError: Every candidate collided
    """
    from stowage.models.booking import Booking

    for attempt in range(1, max_attempts + 1):
        booking_number = factory()
        result = await db.execute(
            select(Booking.id).where(Booking.booking_number == booking_number)
        )
        if result.scalar_one_or_none() is None:
            return booking_number
        logger.warning(f"Booking number collision on attempt {attempt}: {booking_number}")

    raise GenerationExhaustedError("booking number", max_attempts)


def generate_access_code(
    previous: str | None = None,
    max_attempts: int = 10,
    factory: Callable[[], str] = make_access_code,
) -> str:
    """Generate an access code different from `previous`."""
    for _ in range(max_attempts):
        code = factory()
        if code != previous:
            return code

    raise GenerationExhaustedError("access code", max_attempts)
