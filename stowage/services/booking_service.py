"""Booking lifecycle service.

Every write that touches a unit runs inside ``unit_transaction``: the
per-unit lock is held and the unit row is locked for the whole transaction,
so the overlap re-check and the commit cannot interleave with another writer.
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stowage.config import Settings, settings
from stowage.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    UnitNotAvailable,
    ValidationError,
)
from stowage.core.locks import KeyedLock
from stowage.database import async_session_maker, transactional_session
from stowage.domain.booking_state import (
    ACCESS_CODE_STATUSES,
    EXTENDABLE_STATUSES,
    BookingStatus,
    assert_booking_status,
    assert_booking_transition,
)
from stowage.models.booking import Booking, BookingExtension
from stowage.models.unit import UnitStatus
from stowage.services.availability_service import AvailabilityService, load_unit
from stowage.services.loyalty_service import LoyaltyService
from stowage.services.pricing_service import PricingService
from stowage.utils.booking_number import (
    generate_access_code,
    generate_booking_number,
    make_access_code,
    make_booking_number,
)
from stowage.utils.time import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)


class BookingService:
    """Service for creating bookings and driving their state machine."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        availability: AvailabilityService | None = None,
        pricing: PricingService | None = None,
        loyalty: LoyaltyService | None = None,
        clock: Clock = utc_now,
        locks: KeyedLock | None = None,
        booking_number_factory: Callable[[], str] = make_booking_number,
        access_code_factory: Callable[[], str] = make_access_code,
        config: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_maker
        self._settings = config or settings
        self._clock = clock
        self.availability = availability or AvailabilityService(self._session_factory)
        self.pricing = pricing or PricingService(self._session_factory, clock, self._settings)
        self.loyalty = loyalty or LoyaltyService()
        self.locks = locks or KeyedLock()
        self._booking_number_factory = booking_number_factory
        self._access_code_factory = access_code_factory

    @asynccontextmanager
    async def unit_transaction(self, unit_id: UUID) -> AsyncIterator[AsyncSession]:
        """Hold the unit's lock and run one transaction with its row locked."""
        async with self.locks.hold(unit_id):
            async with transactional_session(self._session_factory) as db:
                await load_unit(db, unit_id, for_update=True)
                yield db

    async def _load_booking(
        self, db: AsyncSession, booking_id: UUID, *, for_update: bool = False
    ) -> Booking:
        query = select(Booking).where(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    @staticmethod
    def _assert_owner(booking: Booking, user_id: UUID | None) -> None:
        if user_id is not None and booking.user_id != user_id:
            raise AuthorizationError("You can only access your own bookings")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: UUID, user_id: UUID | None = None) -> Booking:
        """Fetch a booking, enforcing ownership when a user is given."""
        async with self._session_factory() as db:
            booking = await self._load_booking(db, booking_id)
        self._assert_owner(booking, user_id)
        return booking

    async def get_booking_by_number(self, booking_number: str) -> Booking:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking).where(Booking.booking_number == booking_number)
            )
            booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", booking_number)
        return booking

    async def list_user_bookings(
        self,
        user_id: UUID,
        status: BookingStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Booking], int]:
        """List a user's bookings, newest start first.

        Returns:
            tuple: (bookings on the requested page, total matching)
        """
        query = select(Booking).where(Booking.user_id == user_id)
        if status is not None:
            query = query.where(Booking.status == BookingStatus(status).value)

        async with self._session_factory() as db:
            total = await db.scalar(select(func.count()).select_from(query.subquery()))
            result = await db.execute(
                query.order_by(Booking.start_time.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            return list(result.scalars().all()), total or 0

    async def get_upcoming_bookings(self, hours_ahead: int = 24) -> list[Booking]:
        """Confirmed bookings starting within the next `hours_ahead` hours."""
        now = self._clock()
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking)
                .where(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.start_time >= now,
                    Booking.start_time <= now + timedelta(hours=hours_ahead),
                )
                .order_by(Booking.start_time)
            )
            return list(result.scalars().all())

    async def get_expiring_bookings(self, hours_ahead: int = 2) -> list[Booking]:
        """Active bookings ending within the next `hours_ahead` hours."""
        now = self._clock()
        async with self._session_factory() as db:
            result = await db.execute(
                select(Booking)
                .where(
                    Booking.status == BookingStatus.ACTIVE.value,
                    Booking.end_time >= now,
                    Booking.end_time <= now + timedelta(hours=hours_ahead),
                )
                .order_by(Booking.end_time)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _validate_new_interval(self, start: datetime, end: datetime, now: datetime) -> None:
        if end <= start:
            raise ValidationError("End time must be after start time")
        if start < now:
            raise ValidationError("Start time cannot be in the past")
        min_minutes = self._settings.min_booking_minutes
        if end - start < timedelta(minutes=min_minutes):
            raise ValidationError(f"Minimum booking duration is {min_minutes} minutes")

    async def create_booking(
        self,
        user_id: UUID,
        unit_id: UUID,
        start: datetime,
        end: datetime,
        notes: str | None = None,
    ) -> Booking:
        """Create a PENDING booking for a unit.

        Args:
            user_id: Booking owner
            unit_id: Unit to reserve
            start: Rental start
            end: Rental end
            notes: Free-form customer notes

        Returns:
            Booking: Created booking with its price and access code

        Raises:
            ValidationError: Interval invalid, in the past or too short
            NotFoundError: Unit does not exist
            UnitNotAvailable: Unit is inactive, in maintenance or overlapping
        """
        start, end = as_utc(start), as_utc(end)
        self._validate_new_interval(start, end, self._clock())

        advisory = await self.availability.check_availability(unit_id, start, end)
        if not advisory.available:
            logger.info(f"Booking rejected: unit {unit_id} unavailable for {start} - {end}")
            raise UnitNotAvailable()

        async with self.unit_transaction(unit_id) as db:
            unit = await load_unit(db, unit_id)
            result = await self.availability.evaluate(db, unit, start, end)
            if not result.available:
                logger.info(f"Booking rejected on re-check: unit {unit_id} unavailable for {start} - {end}")
                raise UnitNotAvailable()

            price = await self.pricing.price_unit(db, unit, start, end)
            booking_number = await generate_booking_number(
                db,
                max_attempts=self._settings.booking_number_max_attempts,
                factory=self._booking_number_factory,
            )
            booking = Booking(
                booking_number=booking_number,
                user_id=user_id,
                unit_id=unit_id,
                start_time=start,
                end_time=end,
                total_price=price.total,
                currency=price.currency,
                status=BookingStatus.PENDING.value,
                access_code=generate_access_code(
                    max_attempts=self._settings.access_code_max_attempts,
                    factory=self._access_code_factory,
                ),
                notes=notes,
            )
            db.add(booking)
            await db.flush()

        logger.info(f"Created booking {booking.booking_number} for unit {unit_id} total={booking.total_price}")
        return booking

    async def apply_confirmation(
        self, db: AsyncSession, booking_id: UUID, *, reserve_unit: bool = False
    ) -> Booking:
        """Confirm a PENDING booking inside a ``unit_transaction``.

        Args:
            db: Session from ``unit_transaction`` for the booking's unit
            booking_id: Booking to confirm
            reserve_unit: Also mark an AVAILABLE unit as RESERVED

        Returns:
            Booking: Confirmed booking
        """
        booking = await self._load_booking(db, booking_id, for_update=True)
        assert_booking_transition(booking.status, BookingStatus.CONFIRMED, "confirm")

        conflicts = await self.availability.find_conflicts(
            db, booking.unit_id, booking.start_time, booking.end_time, exclude_booking_id=booking.id
        )
        if conflicts:
            logger.warning(
                f"Booking {booking.id} cannot be confirmed: overlaps {[str(c.id) for c in conflicts]}"
            )
            raise UnitNotAvailable("Unit is no longer available for this time period")

        booking.status = BookingStatus.CONFIRMED.value
        booking.confirmed_at = self._clock()

        if reserve_unit:
            unit = await load_unit(db, booking.unit_id)
            if unit.status == UnitStatus.AVAILABLE.value:
                unit.status = UnitStatus.RESERVED.value

        logger.info(f"Booking {booking.booking_number} confirmed")
        return booking

    async def confirm_booking(self, booking_id: UUID) -> Booking:
        """Confirm a PENDING booking after re-checking for overlaps."""
        booking = await self.get_booking(booking_id)
        async with self.unit_transaction(booking.unit_id) as db:
            return await self.apply_confirmation(db, booking_id)

    async def check_in(
        self, booking_id: UUID, user_id: UUID, access_code: str | None = None
    ) -> Booking:
        """Start occupancy of a CONFIRMED booking.

        Check-in opens ``check_in_window_minutes`` before the booking starts.
        """
        booking = await self.get_booking(booking_id, user_id)
        async with self.unit_transaction(booking.unit_id) as db:
            booking = await self._load_booking(db, booking_id, for_update=True)
            assert_booking_transition(booking.status, BookingStatus.ACTIVE, "check in to")

            if access_code is not None and access_code != booking.access_code:
                raise ValidationError("Invalid access code")

            now = self._clock()
            window = timedelta(minutes=self._settings.check_in_window_minutes)
            if now < booking.start_time - window:
                raise ValidationError(
                    f"Check-in opens {self._settings.check_in_window_minutes} minutes before the booking starts"
                )

            booking.status = BookingStatus.ACTIVE.value
            booking.check_in_time = now
            unit = await load_unit(db, booking.unit_id)
            unit.status = UnitStatus.OCCUPIED.value

        logger.info(f"Booking {booking.booking_number} checked in")
        return booking

    async def check_out(self, booking_id: UUID, user_id: UUID) -> Booking:
        """Complete an ACTIVE booking, free the unit and award loyalty points."""
        booking = await self.get_booking(booking_id, user_id)
        async with self.unit_transaction(booking.unit_id) as db:
            booking = await self._load_booking(db, booking_id, for_update=True)
            assert_booking_transition(booking.status, BookingStatus.COMPLETED, "check out from")

            booking.status = BookingStatus.COMPLETED.value
            booking.check_out_time = self._clock()
            unit = await load_unit(db, booking.unit_id)
            unit.status = UnitStatus.AVAILABLE.value

            await self.loyalty.award_booking_points(db, booking.user_id, booking)

        logger.info(f"Booking {booking.booking_number} checked out")
        return booking

    async def extend_booking(self, booking_id: UUID, user_id: UUID, new_end: datetime) -> Booking:
        """Move a booking's end later and charge for the added interval.

        Args:
            booking_id: Booking to extend
            user_id: Requesting user (must own the booking)
            new_end: New end time, after both the current end and now

        Returns:
            Booking: Booking with the new end time and increased total
        """
        new_end = as_utc(new_end)
        booking = await self.get_booking(booking_id, user_id)
        async with self.unit_transaction(booking.unit_id) as db:
            booking = await self._load_booking(db, booking_id, for_update=True)
            assert_booking_status(booking.status, EXTENDABLE_STATUSES, "extend")

            if new_end <= booking.end_time:
                raise ValidationError("New end time must be after current end time")
            if new_end <= self._clock():
                raise ValidationError("New end time must be in the future")

            unit = await load_unit(db, booking.unit_id)
            result = await self.availability.evaluate(
                db, unit, booking.end_time, new_end, exclude_booking_id=booking.id
            )
            if not result.available:
                raise UnitNotAvailable("Unit is not available for the extended period")

            extension_price = await self.pricing.price_unit(db, unit, booking.end_time, new_end)
            db.add(
                BookingExtension(
                    booking_id=booking.id,
                    original_end=booking.end_time,
                    new_end=new_end,
                    additional_amount=extension_price.total,
                )
            )
            booking.total_price = booking.total_price + extension_price.total
            booking.end_time = new_end

        logger.info(
            f"Booking {booking.booking_number} extended to {new_end} (+{extension_price.total})"
        )
        return booking

    async def apply_cancellation(
        self, db: AsyncSession, booking_id: UUID, reason: str | None = None
    ) -> Booking:
        """Cancel a booking inside a ``unit_transaction``; releases a RESERVED unit."""
        booking = await self._load_booking(db, booking_id, for_update=True)
        assert_booking_transition(booking.status, BookingStatus.CANCELLED, "cancel")

        booking.status = BookingStatus.CANCELLED.value
        booking.cancellation_reason = reason
        booking.cancelled_at = self._clock()

        unit = await load_unit(db, booking.unit_id)
        if unit.status == UnitStatus.RESERVED.value:
            unit.status = UnitStatus.AVAILABLE.value

        logger.info(f"Booking {booking.booking_number} cancelled")
        return booking

    async def cancel_booking(
        self, booking_id: UUID, user_id: UUID, reason: str | None = None
    ) -> Booking:
        """Cancel a PENDING or CONFIRMED booking owned by the user."""
        booking = await self.get_booking(booking_id, user_id)
        async with self.unit_transaction(booking.unit_id) as db:
            return await self.apply_cancellation(db, booking_id, reason)

    async def regenerate_access_code(self, booking_id: UUID, user_id: UUID) -> Booking:
        """Issue a fresh access code for a CONFIRMED or ACTIVE booking."""
        async with transactional_session(self._session_factory) as db:
            booking = await self._load_booking(db, booking_id, for_update=True)
            self._assert_owner(booking, user_id)
            assert_booking_status(booking.status, ACCESS_CODE_STATUSES, "regenerate access code for")

            booking.access_code = generate_access_code(
                previous=booking.access_code,
                max_attempts=self._settings.access_code_max_attempts,
                factory=self._access_code_factory,
            )

        logger.info(f"Access code regenerated for booking {booking.booking_number}")
        return booking
