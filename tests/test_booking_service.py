"""
Tests for BookingService: creation, every lifecycle transition and its side effects.
"""

import asyncio
import re
import uuid
from contextlib import contextmanager
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event, select
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import MONDAY_8AM, make_booking, make_unit
from stowage.core.exceptions import (
    AuthorizationError,
    GenerationExhaustedError,
    InvalidBookingStatus,
    NotFoundError,
    TransientStorageError,
    UnitNotAvailable,
    ValidationError,
)
from stowage.domain.booking_state import BookingStatus
from stowage.models.booking import Booking, BookingExtension
from stowage.models.unit import Unit, UnitStatus
from stowage.models.user import LoyaltyTransaction, User
from stowage.database import transactional_session
from stowage.services.booking_service import BookingService
from stowage.services.loyalty_service import LoyaltyService

START = MONDAY_8AM + timedelta(hours=1)
END = START + timedelta(hours=2)


async def reload(session_factory, model, id_):
    async with session_factory() as db:
        return await db.get(model, id_)


async def set_unit_status(session_factory, unit, status: UnitStatus):
    async with session_factory() as db:
        stored = await db.get(Unit, unit.id)
        stored.status = status.value
        await db.commit()


class TestCreateBooking:
    async def test_creates_pending_booking(self, booking_service, unit, user):
        booking = await booking_service.create_booking(user.id, unit.id, START, END, notes="Boxes only")

        assert booking.status == BookingStatus.PENDING.value
        assert booking.total_price == Decimal("5.50")
        assert booking.currency == "USD"
        assert booking.notes == "Boxes only"
        assert re.fullmatch(r"SB-[0-9A-Z]+-[0-9A-F]{6}", booking.booking_number)
        assert re.fullmatch(r"\d{6}", booking.access_code)
        assert 100000 <= int(booking.access_code) <= 999999

    async def test_start_in_past_rejected(self, booking_service, unit, user):
        with pytest.raises(ValidationError, match="past"):
            await booking_service.create_booking(user.id, unit.id, MONDAY_8AM - timedelta(minutes=1), END)

    async def test_minimum_duration(self, booking_service, unit, user):
        with pytest.raises(ValidationError, match="Minimum booking duration"):
            await booking_service.create_booking(user.id, unit.id, START, START + timedelta(minutes=59))

    async def test_end_before_start_rejected(self, booking_service, unit, user):
        with pytest.raises(ValidationError):
            await booking_service.create_booking(user.id, unit.id, END, START)

    async def test_overlapping_booking_rejected(self, booking_service, session_factory, unit, user):
        await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)
        with pytest.raises(UnitNotAvailable):
            await booking_service.create_booking(user.id, unit.id, START + timedelta(hours=1), END + timedelta(hours=1))

    async def test_maintenance_unit_rejected(self, booking_service, session_factory, unit, user):
        await set_unit_status(session_factory, unit, UnitStatus.MAINTENANCE)
        with pytest.raises(UnitNotAvailable):
            await booking_service.create_booking(user.id, unit.id, START, END)

    async def test_concurrent_overlapping_creates_one_wins(self, booking_service, session_factory, unit, user):
        attempts = [
            booking_service.create_booking(user.id, unit.id, START + timedelta(minutes=10 * i), END)
            for i in range(5)
        ]
        results = await asyncio.gather(*attempts, return_exceptions=True)

        created = [r for r in results if isinstance(r, Booking)]
        rejected = [r for r in results if isinstance(r, UnitNotAvailable)]
        assert len(created) == 1
        assert len(rejected) == 4

        async with session_factory() as db:
            rows = (await db.execute(select(Booking).where(Booking.unit_id == unit.id))).scalars().all()
        assert len(rows) == 1
        assert len(booking_service.locks) == 0

    async def test_booking_number_collision_retries(self, session_factory, clock, test_settings, unit, user):
        numbers = iter(["SB-FIXED-000001", "SB-FIXED-000001", "SB-FIXED-000002"])
        service = BookingService(
            session_factory, clock=clock, config=test_settings, booking_number_factory=lambda: next(numbers)
        )
        first = await service.create_booking(user.id, unit.id, START, END)
        second = await service.create_booking(user.id, unit.id, END + timedelta(hours=1), END + timedelta(hours=3))

        assert first.booking_number == "SB-FIXED-000001"
        assert second.booking_number == "SB-FIXED-000002"

    async def test_booking_number_retry_budget(self, session_factory, clock, test_settings, unit, user):
        service = BookingService(
            session_factory, clock=clock, config=test_settings, booking_number_factory=lambda: "SB-SAME-000001"
        )
        await service.create_booking(user.id, unit.id, START, END)

        with pytest.raises(GenerationExhaustedError):
            await service.create_booking(user.id, unit.id, END + timedelta(hours=1), END + timedelta(hours=3))


class TestConfirm:
    async def test_confirm_pending(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END)

        confirmed = await booking_service.confirm_booking(booking.id)

        assert confirmed.status == BookingStatus.CONFIRMED.value
        assert confirmed.confirmed_at == MONDAY_8AM
        stored_unit = await reload(session_factory, Unit, unit.id)
        assert stored_unit.status == UnitStatus.AVAILABLE.value

    @pytest.mark.parametrize(
        "status",
        [BookingStatus.CONFIRMED, BookingStatus.ACTIVE, BookingStatus.COMPLETED, BookingStatus.CANCELLED],
    )
    async def test_confirm_rejects_non_pending(self, booking_service, session_factory, unit, user, status):
        booking = await make_booking(session_factory, user, unit, START, END, status)
        with pytest.raises(InvalidBookingStatus, match=f"status: {status.value}"):
            await booking_service.confirm_booking(booking.id)

    async def test_confirm_rechecks_other_bookings(self, booking_service, session_factory, unit, user, other_user):
        booking = await make_booking(session_factory, user, unit, START, END)
        await make_booking(session_factory, other_user, unit, START, END, BookingStatus.CONFIRMED)

        with pytest.raises(UnitNotAvailable):
            await booking_service.confirm_booking(booking.id)
        stored = await reload(session_factory, Booking, booking.id)
        assert stored.status == BookingStatus.PENDING.value

    async def test_confirm_unknown_booking(self, booking_service):
        with pytest.raises(NotFoundError):
            await booking_service.confirm_booking(uuid.uuid4())


class TestCheckIn:
    async def test_check_in_confirmed(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)

        active = await booking_service.check_in(booking.id, user.id, access_code="123456")

        assert active.status == BookingStatus.ACTIVE.value
        assert active.check_in_time == MONDAY_8AM
        stored_unit = await reload(session_factory, Unit, unit.id)
        assert stored_unit.status == UnitStatus.OCCUPIED.value

    @pytest.mark.parametrize(
        "status",
        [BookingStatus.PENDING, BookingStatus.ACTIVE, BookingStatus.COMPLETED, BookingStatus.CANCELLED],
    )
    async def test_check_in_rejects_other_statuses(self, booking_service, session_factory, unit, user, status):
        booking = await make_booking(session_factory, user, unit, START, END, status)
        with pytest.raises(InvalidBookingStatus) as exc_info:
            await booking_service.check_in(booking.id, user.id)
        assert exc_info.value.detail == f"Cannot check in to booking with status: {status.value}"

    async def test_wrong_access_code(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)
        with pytest.raises(ValidationError, match="access code"):
            await booking_service.check_in(booking.id, user.id, access_code="654321")

    async def test_too_early(self, booking_service, session_factory, unit, user):
        start = MONDAY_8AM + timedelta(hours=1, minutes=1)
        booking = await make_booking(session_factory, user, unit, start, start + timedelta(hours=2), BookingStatus.CONFIRMED)
        with pytest.raises(ValidationError, match="Check-in opens"):
            await booking_service.check_in(booking.id, user.id)

    async def test_not_owner(self, booking_service, session_factory, unit, user, other_user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)
        with pytest.raises(AuthorizationError):
            await booking_service.check_in(booking.id, other_user.id)


class TestCheckOut:
    async def test_check_out_active(self, booking_service, session_factory, unit, user):
        await set_unit_status(session_factory, unit, UnitStatus.OCCUPIED)
        booking = await make_booking(
            session_factory, user, unit, START, END, BookingStatus.ACTIVE, total_price=Decimal("39.60")
        )

        completed = await booking_service.check_out(booking.id, user.id)

        assert completed.status == BookingStatus.COMPLETED.value
        assert completed.check_out_time == MONDAY_8AM
        stored_unit = await reload(session_factory, Unit, unit.id)
        assert stored_unit.status == UnitStatus.AVAILABLE.value

        stored_user = await reload(session_factory, User, user.id)
        assert stored_user.loyalty_points == 39
        async with session_factory() as db:
            ledger = (await db.execute(select(LoyaltyTransaction))).scalars().all()
        assert len(ledger) == 1
        assert ledger[0].points == 39
        assert ledger[0].reference_id == booking.id
        assert ledger[0].type == "EARNED"

    async def test_points_accumulate(self, booking_service, session_factory, unit, user):
        first = await make_booking(session_factory, user, unit, START, END, BookingStatus.ACTIVE)
        second = await make_booking(
            session_factory, user, unit, END + timedelta(hours=1), END + timedelta(hours=2), BookingStatus.ACTIVE
        )
        await booking_service.check_out(first.id, user.id)
        await booking_service.check_out(second.id, user.id)

        stored_user = await reload(session_factory, User, user.id)
        assert stored_user.loyalty_points == 10

    async def test_no_points_under_one_unit(self, booking_service, session_factory, unit, user):
        booking = await make_booking(
            session_factory, user, unit, START, END, BookingStatus.ACTIVE, total_price=Decimal("0.99")
        )
        await booking_service.check_out(booking.id, user.id)
        stored_user = await reload(session_factory, User, user.id)
        assert stored_user.loyalty_points == 0

    @pytest.mark.parametrize(
        "status",
        [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED],
    )
    async def test_check_out_rejects_other_statuses(self, booking_service, session_factory, unit, user, status):
        booking = await make_booking(session_factory, user, unit, START, END, status)
        with pytest.raises(InvalidBookingStatus, match=f"Cannot check out from booking with status: {status.value}"):
            await booking_service.check_out(booking.id, user.id)


class TestExtend:
    async def test_extend_adds_priced_delta(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)

        extended = await booking_service.extend_booking(booking.id, user.id, END + timedelta(hours=2))

        assert extended.end_time == END + timedelta(hours=2)
        # 2 extra hours: 5.00 + 0.50 tax
        assert extended.total_price == Decimal("11.00")
        async with session_factory() as db:
            extensions = (await db.execute(select(BookingExtension))).scalars().all()
        assert len(extensions) == 1
        assert extensions[0].original_end == END
        assert extensions[0].additional_amount == Decimal("5.50")

    async def test_repeated_extensions_never_decrease_total(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.ACTIVE)
        total = booking.total_price
        new_end = END
        for hours in (1, 3, 30, 200):
            new_end = new_end + timedelta(hours=hours)
            booking = await booking_service.extend_booking(booking.id, user.id, new_end)
            assert booking.total_price >= total
            total = booking.total_price

    async def test_extension_conflict(self, booking_service, session_factory, unit, user, other_user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)
        await make_booking(
            session_factory, other_user, unit, END + timedelta(hours=1), END + timedelta(hours=3), BookingStatus.PENDING
        )

        with pytest.raises(UnitNotAvailable):
            await booking_service.extend_booking(booking.id, user.id, END + timedelta(hours=2))
        stored = await reload(session_factory, Booking, booking.id)
        assert stored.end_time == END
        assert stored.total_price == Decimal("5.50")

    async def test_new_end_must_be_later(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)
        with pytest.raises(ValidationError, match="after current end time"):
            await booking_service.extend_booking(booking.id, user.id, END)

    async def test_new_end_must_be_in_future(self, booking_service, session_factory, unit, user, clock):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.ACTIVE)
        clock.advance(hours=10)
        with pytest.raises(ValidationError, match="future"):
            await booking_service.extend_booking(booking.id, user.id, END + timedelta(hours=1))

    @pytest.mark.parametrize(
        "status", [BookingStatus.PENDING, BookingStatus.COMPLETED, BookingStatus.CANCELLED]
    )
    async def test_extend_rejects_other_statuses(self, booking_service, session_factory, unit, user, status):
        booking = await make_booking(session_factory, user, unit, START, END, status)
        with pytest.raises(InvalidBookingStatus, match=status.value):
            await booking_service.extend_booking(booking.id, user.id, END + timedelta(hours=1))


class TestCancel:
    async def test_cancel_pending(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END)

        cancelled = await booking_service.cancel_booking(booking.id, user.id, "Plans changed")

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "Plans changed"
        assert cancelled.cancelled_at == MONDAY_8AM

    async def test_cancel_releases_reserved_unit(self, booking_service, session_factory, unit, user):
        await set_unit_status(session_factory, unit, UnitStatus.RESERVED)
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)

        await booking_service.cancel_booking(booking.id, user.id)

        stored_unit = await reload(session_factory, Unit, unit.id)
        assert stored_unit.status == UnitStatus.AVAILABLE.value

    async def test_cancel_leaves_occupied_unit(self, booking_service, session_factory, unit, user):
        await set_unit_status(session_factory, unit, UnitStatus.OCCUPIED)
        booking = await make_booking(session_factory, user, unit, END + timedelta(hours=5), END + timedelta(hours=7))

        await booking_service.cancel_booking(booking.id, user.id)

        stored_unit = await reload(session_factory, Unit, unit.id)
        assert stored_unit.status == UnitStatus.OCCUPIED.value

    async def test_cancel_twice_fails_without_side_effects(self, booking_service, session_factory, unit, user, clock):
        booking = await make_booking(session_factory, user, unit, START, END)
        await booking_service.cancel_booking(booking.id, user.id, "First")
        clock.advance(minutes=5)

        with pytest.raises(InvalidBookingStatus, match="Cannot cancel booking with status: CANCELLED"):
            await booking_service.cancel_booking(booking.id, user.id, "Second")

        stored = await reload(session_factory, Booking, booking.id)
        assert stored.cancellation_reason == "First"
        assert stored.cancelled_at == MONDAY_8AM

    @pytest.mark.parametrize("status", [BookingStatus.ACTIVE, BookingStatus.COMPLETED])
    async def test_cancel_rejects_started_bookings(self, booking_service, session_factory, unit, user, status):
        booking = await make_booking(session_factory, user, unit, START, END, status)
        with pytest.raises(InvalidBookingStatus, match=status.value):
            await booking_service.cancel_booking(booking.id, user.id)

    async def test_cancel_frees_interval(self, booking_service, session_factory, unit, user, other_user):
        booking = await make_booking(session_factory, user, unit, START, END)
        await booking_service.cancel_booking(booking.id, user.id)

        rebooked = await booking_service.create_booking(other_user.id, unit.id, START, END)
        assert rebooked.status == BookingStatus.PENDING.value

    async def test_not_owner(self, booking_service, session_factory, unit, user, other_user):
        booking = await make_booking(session_factory, user, unit, START, END)
        with pytest.raises(AuthorizationError):
            await booking_service.cancel_booking(booking.id, other_user.id)


class TestAccessCode:
    async def test_regenerate_returns_different_code(self, session_factory, clock, test_settings, unit, user):
        codes = iter(["123456", "123456", "777777"])
        service = BookingService(
            session_factory, clock=clock, config=test_settings, access_code_factory=lambda: next(codes)
        )
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)

        updated = await service.regenerate_access_code(booking.id, user.id)

        assert updated.access_code == "777777"
        stored = await reload(session_factory, Booking, booking.id)
        assert stored.access_code == "777777"

    @pytest.mark.parametrize(
        "status", [BookingStatus.PENDING, BookingStatus.COMPLETED, BookingStatus.CANCELLED]
    )
    async def test_regenerate_rejects_other_statuses(self, booking_service, session_factory, unit, user, status):
        booking = await make_booking(session_factory, user, unit, START, END, status)
        with pytest.raises(InvalidBookingStatus, match=status.value):
            await booking_service.regenerate_access_code(booking.id, user.id)

    async def test_regenerate_exhausted(self, session_factory, clock, test_settings, unit, user):
        service = BookingService(
            session_factory, clock=clock, config=test_settings, access_code_factory=lambda: "123456"
        )
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.ACTIVE)
        with pytest.raises(GenerationExhaustedError):
            await service.regenerate_access_code(booking.id, user.id)


class TestQueries:
    async def test_get_booking_checks_owner(self, booking_service, session_factory, unit, user, other_user):
        booking = await make_booking(session_factory, user, unit, START, END)
        assert (await booking_service.get_booking(booking.id, user.id)).id == booking.id
        assert (await booking_service.get_booking(booking.id)).id == booking.id
        with pytest.raises(AuthorizationError):
            await booking_service.get_booking(booking.id, other_user.id)

    async def test_get_booking_by_number(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END)
        found = await booking_service.get_booking_by_number(booking.booking_number)
        assert found.id == booking.id
        with pytest.raises(NotFoundError):
            await booking_service.get_booking_by_number("SB-NOPE-000000")

    async def test_list_user_bookings_paginates(self, booking_service, session_factory, location, user, other_user):
        unit = await make_unit(session_factory, location)
        for day in range(3):
            start = START + timedelta(days=day)
            await make_booking(session_factory, user, unit, start, start + timedelta(hours=1))
        await make_booking(
            session_factory, user, unit, START + timedelta(days=5), START + timedelta(days=5, hours=1),
            BookingStatus.CANCELLED,
        )
        await make_booking(session_factory, other_user, unit, START + timedelta(days=9), START + timedelta(days=9, hours=1))

        page, total = await booking_service.list_user_bookings(user.id, page=1, page_size=2)
        assert total == 4
        assert len(page) == 2
        assert page[0].start_time == START + timedelta(days=5)

        cancelled, total = await booking_service.list_user_bookings(user.id, status=BookingStatus.CANCELLED)
        assert total == 1
        assert cancelled[0].status == BookingStatus.CANCELLED.value

    async def test_upcoming_and_expiring(self, booking_service, session_factory, location, user):
        unit = await make_unit(session_factory, location)
        soon = await make_booking(
            session_factory, user, unit, MONDAY_8AM + timedelta(hours=3), MONDAY_8AM + timedelta(hours=4),
            BookingStatus.CONFIRMED,
        )
        await make_booking(
            session_factory, user, unit, MONDAY_8AM + timedelta(days=3), MONDAY_8AM + timedelta(days=3, hours=1),
            BookingStatus.CONFIRMED,
        )
        ending = await make_booking(
            session_factory, user, unit, MONDAY_8AM - timedelta(hours=3), MONDAY_8AM + timedelta(hours=1),
            BookingStatus.ACTIVE,
        )

        upcoming = await booking_service.get_upcoming_bookings()
        assert [b.id for b in upcoming] == [soon.id]
        expiring = await booking_service.get_expiring_bookings()
        assert [b.id for b in expiring] == [ending.id]


class FailingLoyaltyService(LoyaltyService):
    async def award_booking_points(self, db, user_id, booking):
        raise NotFoundError("User", str(user_id))


@contextmanager
def failing_unit_writes():
    """Make every flushed UPDATE of a unit row fail as a dropped connection would."""

    def fail(mapper, connection, target):
        raise OperationalError("UPDATE units", None, Exception("server closed the connection"))

    event.listen(Unit, "before_update", fail)
    try:
        yield
    finally:
        event.remove(Unit, "before_update", fail)


class TestAtomicity:
    async def test_check_out_rolled_back_when_loyalty_fails(
        self, session_factory, clock, test_settings, unit, user
    ):
        service = BookingService(
            session_factory, loyalty=FailingLoyaltyService(), clock=clock, config=test_settings
        )
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.ACTIVE)
        await set_unit_status(session_factory, unit, UnitStatus.OCCUPIED)

        with pytest.raises(NotFoundError):
            await service.check_out(booking.id, user.id)

        stored = await reload(session_factory, Booking, booking.id)
        assert stored.status == BookingStatus.ACTIVE.value
        assert stored.check_out_time is None
        stored_unit = await reload(session_factory, Unit, unit.id)
        assert stored_unit.status == UnitStatus.OCCUPIED.value
        async with session_factory() as db:
            assert (await db.execute(select(LoyaltyTransaction))).scalars().all() == []

    async def test_check_in_rolled_back_on_storage_failure(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)

        with failing_unit_writes(), pytest.raises(TransientStorageError) as exc_info:
            await booking_service.check_in(booking.id, user.id)

        assert exc_info.value.status_code == 503
        assert exc_info.value.headers == {"Retry-After": "1"}
        stored = await reload(session_factory, Booking, booking.id)
        assert stored.status == BookingStatus.CONFIRMED.value
        assert stored.check_in_time is None
        stored_unit = await reload(session_factory, Unit, unit.id)
        assert stored_unit.status == UnitStatus.AVAILABLE.value

    async def test_cancel_rolled_back_on_storage_failure(self, booking_service, session_factory, unit, user):
        booking = await make_booking(session_factory, user, unit, START, END, BookingStatus.CONFIRMED)
        await set_unit_status(session_factory, unit, UnitStatus.RESERVED)

        with failing_unit_writes(), pytest.raises(TransientStorageError):
            await booking_service.cancel_booking(booking.id, user.id)

        stored = await reload(session_factory, Booking, booking.id)
        assert stored.status == BookingStatus.CONFIRMED.value
        assert stored.cancelled_at is None
        stored_unit = await reload(session_factory, Unit, unit.id)
        assert stored_unit.status == UnitStatus.RESERVED.value

    async def test_transactional_session_maps_operational_error(self, session_factory, user):
        with pytest.raises(TransientStorageError):
            async with transactional_session(session_factory) as db:
                stored = await db.get(User, user.id)
                stored.loyalty_points = 500
                raise OperationalError("UPDATE users", None, Exception("deadlock detected"))

        stored = await reload(session_factory, User, user.id)
        assert stored.loyalty_points == 0


class TestIntervalConstraint:
    async def test_database_rejects_inverted_interval(self, session_factory, unit, user):
        with pytest.raises(IntegrityError):
            await make_booking(session_factory, user, unit, END, START)
