"""
Shared pytest fixtures: a temp-file SQLite database, a frozen clock,
seeded units and a fake payment gateway.
"""

import itertools
import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from stowage.config import Settings
from stowage.database import init_db
from stowage.domain.booking_state import BookingStatus
from stowage.gateways.base import GatewayType, PaymentGateway, PaymentResult, RefundResult
from stowage.main import create_application
from stowage.models.booking import Booking
from stowage.models.pricing import PricingRule
from stowage.models.unit import Location, Unit, UnitSize, UnitStatus
from stowage.models.user import User
from stowage.services.availability_service import AvailabilityService
from stowage.services.booking_service import BookingService
from stowage.services.gateway_service import GatewayService
from stowage.services.payment_service import PaymentService
from stowage.services.pricing_service import PricingService

# Monday 2 March 2026, 08:00 UTC
MONDAY_8AM = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)

_booking_seq = itertools.count(1)


class FrozenClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGateway(PaymentGateway):
    """In-memory gateway; webhooks verify when the signature is 'valid'."""

    def __init__(self, configured: bool = True, refund_success: bool = True):
        self.configured = configured
        self.refund_success = refund_success
        self.payments: list[dict] = []
        self.refunds: list[dict] = []

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def create_payment(self, amount, currency, reference_id, description, metadata=None):
        intent_id = f"pi_{len(self.payments) + 1}"
        self.payments.append({"id": intent_id, "amount": amount, "currency": currency, "metadata": metadata})
        return PaymentResult(
            success=True,
            transaction_id=intent_id,
            client_secret=f"{intent_id}_secret",
            raw_response={"id": intent_id},
        )

    async def verify_payment(self, transaction_id):
        return PaymentResult(
            success=False,
            transaction_id=transaction_id,
            client_secret=f"{transaction_id}_secret",
        )

    async def process_refund(self, transaction_id, amount, reason):
        self.refunds.append({"payment_intent": transaction_id, "amount": amount, "reason": reason})
        if not self.refund_success:
            return RefundResult(success=False, error_message="card_declined")
        return RefundResult(success=True, refund_id=f"re_{len(self.refunds)}", raw_response={"status": "succeeded"})

    def verify_webhook(self, payload, signature):
        if signature != "valid":
            return None
        return json.loads(payload)


@pytest.fixture
def clock():
    return FrozenClock(MONDAY_8AM)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        environment="test",
        tax_rate=Decimal("0.10"),
        pricing_timezone="UTC",
        payment_gateway="manual",
        log_level="WARNING",
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stowage.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def location(session_factory):
    async with session_factory() as db:
        location = Location(name="Downtown Storage", city="Austin")
        db.add(location)
        await db.commit()
        return location


async def make_unit(session_factory, location, **overrides) -> Unit:
    values = {
        "location_id": location.id,
        "unit_number": f"U-{next(_booking_seq)}",
        "size": UnitSize.MEDIUM.value,
        "base_price_hourly": Decimal("2.50"),
        "base_price_daily": Decimal("15.00"),
        "currency": "USD",
        "status": UnitStatus.AVAILABLE.value,
        "is_active": True,
    }
    values.update(overrides)
    async with session_factory() as db:
        unit = Unit(**values)
        db.add(unit)
        await db.commit()
        return unit


@pytest.fixture
async def unit(session_factory, location):
    return await make_unit(session_factory, location, unit_number="A-101")


async def make_user(session_factory, email: str, role: str = "customer") -> User:
    async with session_factory() as db:
        user = User(email=email, role=role)
        db.add(user)
        await db.commit()
        return user


@pytest.fixture
async def user(session_factory):
    return await make_user(session_factory, "renter@example.com")


@pytest.fixture
async def other_user(session_factory):
    return await make_user(session_factory, "someone-else@example.com")


async def make_booking(
    session_factory,
    user,
    unit,
    start: datetime,
    end: datetime,
    status: BookingStatus = BookingStatus.PENDING,
    total_price: Decimal = Decimal("5.50"),
    access_code: str = "123456",
) -> Booking:
    """Insert a booking directly, bypassing the service checks."""
    async with session_factory() as db:
        booking = Booking(
            booking_number=f"SB-TEST-{next(_booking_seq):06d}",
            user_id=user.id,
            unit_id=unit.id,
            start_time=start,
            end_time=end,
            total_price=total_price,
            currency="USD",
            status=status.value,
            access_code=access_code,
        )
        db.add(booking)
        await db.commit()
        return booking


async def make_rule(
    session_factory,
    name: str,
    conditions: dict,
    multiplier: str,
    priority: int = 0,
    **overrides,
) -> PricingRule:
    values = {"rule_type": "custom", "is_active": True}
    values.update(overrides)
    async with session_factory() as db:
        rule = PricingRule(
            name=name,
            conditions=conditions,
            multiplier=Decimal(multiplier),
            priority=priority,
            **values,
        )
        db.add(rule)
        await db.commit()
        return rule


@pytest.fixture
async def weekend_surcharge(session_factory):
    return await make_rule(session_factory, "Weekend Surcharge", {"dayOfWeek": [0, 6]}, "1.2", rule_type="time")


@pytest.fixture
def availability_service(session_factory):
    return AvailabilityService(session_factory)


@pytest.fixture
def pricing_service(session_factory, clock, test_settings):
    return PricingService(session_factory, clock, test_settings)


@pytest.fixture
def booking_service(session_factory, clock, test_settings):
    return BookingService(session_factory, clock=clock, config=test_settings)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def gateway_service(test_settings, gateway):
    return GatewayService(test_settings, gateways={GatewayType.MANUAL: gateway})


@pytest.fixture
def payment_service(booking_service, gateway_service, session_factory, clock):
    return PaymentService(booking_service, gateway_service, session_factory, clock)


@pytest.fixture
async def client(session_factory, clock, gateway_service, test_settings):
    app = create_application(
        session_factory=session_factory,
        clock=clock,
        gateways=gateway_service,
        config=test_settings,
        use_lifespan=False,
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
