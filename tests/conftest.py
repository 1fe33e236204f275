"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are created as-is:
enums are stored as their string values and the JSON pricing table maps
onto SQLite's JSON type.
"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hailing.domain.entities import Location, TransitionPayload, TripDetails
from hailing.domain.enums import (
    ActorRole,
    ApprovalStatus,
    BookingStatus,
    PaymentMethod,
    TripType,
    VehicleBookingStatus,
    VehicleCategory,
)
from hailing.infrastructure.database import Base
from hailing.infrastructure.models import DriverModel, RiderModel, VehicleModel
from hailing.services.booking_machine import BookingStateMachine
from hailing.services.refunds import CancellationRefundWorkflow

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

CAR_TIERS = {"one-way": {"50km": 20, "100km": 18}}


# ── Engine / sessions ─────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Sample data ───────────────────────────────────────────────────────


def make_trip(distance_km=10.0, trip_type=TripType.ONE_WAY, passengers=1):
    return TripDetails(
        pickup=Location(18.5286, 73.8743, "Pune Railway Station"),
        destination=Location(18.5204, 73.8567, "Shivajinagar"),
        date="2026-11-02",
        time="09:30",
        trip_type=trip_type,
        distance_km=distance_km,
        duration_min=25,
        passengers=passengers,
    )


async def add_vehicle(session, driver, registration_number, **overrides):
    values = dict(
        driver_id=driver.id,
        registration_number=registration_number,
        brand="Bajaj",
        seating_capacity=3,
        category=VehicleCategory.AUTO,
        auto_rate_one_way=15,
        auto_rate_return=13,
        booking_status=VehicleBookingStatus.AVAILABLE,
        is_available=True,
        booked=False,
        is_active=True,
        is_verified=True,
        approval_status=ApprovalStatus.APPROVED,
    )
    values.update(overrides)
    vehicle = VehicleModel(**values)
    session.add(vehicle)
    await session.commit()
    return vehicle


@pytest_asyncio.fixture
async def rider(db_session):
    model = RiderModel(name="Priya Patel", phone="9800000002")
    db_session.add(model)
    await db_session.commit()
    return model


@pytest_asyncio.fixture
async def driver(db_session):
    model = DriverModel(name="Karan Joshi", phone="9900000002", wallet_balance=0)
    db_session.add(model)
    await db_session.commit()
    return model


@pytest_asyncio.fixture
async def other_driver(db_session):
    model = DriverModel(name="Meera Nair", phone="9900000003", wallet_balance=0)
    db_session.add(model)
    await db_session.commit()
    return model


@pytest_asyncio.fixture
async def auto_vehicle(db_session, driver):
    """Approved auto: 15/km one-way, 13/km return."""
    return await add_vehicle(db_session, driver, "MH12AB1001")


@pytest_asyncio.fixture
async def car_vehicle(db_session, driver):
    """Approved car on the 50 / 100 km one-way tiers."""
    return await add_vehicle(
        db_session,
        driver,
        "MH12CD2001",
        brand="Maruti Dzire",
        seating_capacity=4,
        category=VehicleCategory.CAR,
        auto_rate_one_way=None,
        auto_rate_return=None,
        distance_pricing=CAR_TIERS,
    )


@pytest_asyncio.fixture
async def pending_booking(db_session, rider, auto_vehicle):
    """10 km one-way on the auto: fare 150."""
    return await BookingStateMachine(db_session).open_booking(
        rider.id, auto_vehicle.id, make_trip(10.0), PaymentMethod.CASH
    )


@pytest.fixture
def trip_factory():
    return make_trip


@pytest.fixture
def vehicle_factory(db_session):
    async def _make(owner, registration_number, session=None, **overrides):
        return await add_vehicle(
            session or db_session, owner, registration_number, **overrides
        )

    return _make


@pytest.fixture
def gateway():
    """Payment gateway double; every refund is issued as ``rfnd_0001``."""
    mock = AsyncMock()
    mock.refund.return_value = "rfnd_0001"
    return mock


@pytest_asyncio.fixture
async def paid_cancelled(db_session, pending_booking):
    """Booking number of a paid (150) booking the rider then cancelled."""
    number = pending_booking.booking_number
    await CancellationRefundWorkflow(db_session).record_payment(number, "pay_123")
    await BookingStateMachine(db_session).transition(
        number, BookingStatus.CANCELLED, pending_booking.rider_id, ActorRole.RIDER,
        TransitionPayload(reason="Flight rescheduled"),
    )
    return number
