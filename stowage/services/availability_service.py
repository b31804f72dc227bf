"""Unit availability checking.

A unit is available for an interval when it is active, not under
maintenance, and no booking in a blocking status overlaps the interval.
Overlap is ``existing.start <= requested_end AND existing.end >= requested_start``.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stowage.core.exceptions import NotFoundError, ValidationError
from stowage.database import async_session_maker
from stowage.domain.booking_state import BLOCKING_STATUSES
from stowage.models.booking import Booking
from stowage.models.unit import Location, Unit, UnitSize, UnitStatus
from stowage.schemas.unit import AvailabilityConflict, AvailabilityResult
from stowage.utils.time import as_utc

BLOCKING_STATUS_VALUES = [status.value for status in BLOCKING_STATUSES]


async def load_unit(db: AsyncSession, unit_id: UUID, *, for_update: bool = False) -> Unit:
    """Fetch a unit or raise NotFoundError; optionally row-lock it."""
    query = select(Unit).where(Unit.id == unit_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    unit = result.scalar_one_or_none()
    if not unit:
        raise NotFoundError("Storage unit", str(unit_id))
    return unit


def _overlap_clause(start: datetime, end: datetime):
    return (Booking.start_time <= end) & (Booking.end_time >= start)


def is_bookable(unit: Unit) -> bool:
    """Administrative state allows new reservations."""
    return unit.is_active and unit.status != UnitStatus.MAINTENANCE.value


class AvailabilityService:
    """Interval-overlap checks over a unit's bookings."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session_maker

    async def check_availability(
        self,
        unit_id: UUID,
        start: datetime,
        end: datetime,
        exclude_booking_id: UUID | None = None,
    ) -> AvailabilityResult:
        """Check whether a unit can be booked for [start, end].

        This is advisory: writers repeat the check inside their own
        transaction before committing.
        """
        start, end = as_utc(start), as_utc(end)
        if end <= start:
            raise ValidationError("End time must be after start time")

        async with self._session_factory() as db:
            unit = await load_unit(db, unit_id)
            return await self.evaluate(db, unit, start, end, exclude_booking_id)

    async def evaluate(
        self,
        db: AsyncSession,
        unit: Unit,
        start: datetime,
        end: datetime,
        exclude_booking_id: UUID | None = None,
    ) -> AvailabilityResult:
        """Availability of an already-loaded unit within the caller's session."""
        if not is_bookable(unit):
            return AvailabilityResult(available=False, conflicts=[])

        conflicts = await self.find_conflicts(db, unit.id, start, end, exclude_booking_id)
        return AvailabilityResult(
            available=not conflicts,
            conflicts=[
                AvailabilityConflict(
                    booking_id=booking.id,
                    start_time=booking.start_time,
                    end_time=booking.end_time,
                )
                for booking in conflicts
            ],
        )

    async def find_conflicts(
        self,
        db: AsyncSession,
        unit_id: UUID,
        start: datetime,
        end: datetime,
        exclude_booking_id: UUID | None = None,
    ) -> list[Booking]:
        """Blocking bookings on the unit overlapping [start, end]."""
        query = select(Booking).where(
            Booking.unit_id == unit_id,
            Booking.status.in_(BLOCKING_STATUS_VALUES),
            _overlap_clause(start, end),
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)

        result = await db.execute(query.order_by(Booking.start_time))
        return list(result.scalars().all())

    async def get_available_units(
        self,
        location_id: UUID,
        start: datetime,
        end: datetime,
        size: UnitSize | None = None,
    ) -> list[Unit]:
        """Bookable units at a location with no conflicts for [start, end]."""
        start, end = as_utc(start), as_utc(end)
        if end <= start:
            raise ValidationError("End time must be after start time")

        async with self._session_factory() as db:
            location = await db.get(Location, location_id)
            if not location:
                raise NotFoundError("Location", str(location_id))

            blocking = exists().where(
                Booking.unit_id == Unit.id,
                Booking.status.in_(BLOCKING_STATUS_VALUES),
                _overlap_clause(start, end),
            )
            query = select(Unit).where(
                Unit.location_id == location_id,
                Unit.is_active.is_(True),
                Unit.status != UnitStatus.MAINTENANCE.value,
                ~blocking,
            )
            if size is not None:
                query = query.where(Unit.size == UnitSize(size).value)

            result = await db.execute(query.order_by(Unit.unit_number))
            return list(result.scalars().all())
