"""Time helpers."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current aware UTC time; the default clock for services."""
    return datetime.now(UTC)


def as_utc(moment: datetime) -> datetime:
    """Normalise to aware UTC; naive values are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)
