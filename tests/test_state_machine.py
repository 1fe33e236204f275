"""
Booking state machine against a real (SQLite) database.

Covers creation, each transition's side effects on vehicle / ledger /
history, ownership, and the all-or-nothing rollback on failure.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from hailing.domain.entities import TransitionPayload
from hailing.domain.enums import (
    ActorRole,
    ApprovalStatus,
    BookingStatus,
    PaymentMethod,
    RefundStatus,
    TransactionType,
    TripType,
    VehicleBookingStatus,
)
from hailing.domain.errors import (
    InsufficientBalance,
    InvalidTransition,
    InvalidTripDetails,
    NotFound,
    PricingUnavailable,
    VehicleUnavailable,
)
from hailing.domain.fare import round_fare
from hailing.infrastructure.models import BookingModel
from hailing.infrastructure.repositories import (
    BookingRepository,
    DriverRepository,
    VehicleRepository,
)
from hailing.services.booking_machine import BookingStateMachine, generate_booking_number
from hailing.services.ledger import EarningsLedger

S = BookingStatus


async def _advance(machine, booking_number, driver_id, *statuses, payload=None):
    booking = None
    for status in statuses:
        booking = await machine.transition(
            booking_number, status, driver_id, ActorRole.DRIVER, payload
        )
    return booking


# ── Creation ──────────────────────────────────────────────────────────


class TestOpenBooking:
    def test_booking_number_format(self):
        number = generate_booking_number()
        assert number.startswith("CS")
        assert len(number) == 14
        assert number[2:10].isdigit()
        assert number[10:].isalnum() and number[10:].upper() == number[10:]

    @pytest.mark.asyncio
    async def test_snapshots_fare_and_opens_history(self, pending_booking, rider, auto_vehicle):
        assert pending_booking.status == S.PENDING
        assert pending_booking.fare == 150
        assert pending_booking.driver_id == auto_vehicle.driver_id
        assert pending_booking.refund_status == RefundStatus.NONE
        assert [h.status for h in pending_booking.history] == [S.PENDING]
        assert pending_booking.history[0].actor_id == rider.id
        assert pending_booking.history[0].actor_role == ActorRole.RIDER

    @pytest.mark.asyncio
    async def test_tiered_vehicle_fare(self, db_session, rider, car_vehicle, trip_factory):
        booking = await BookingStateMachine(db_session).open_booking(
            rider.id, car_vehicle.id, trip_factory(80), PaymentMethod.UPI
        )
        assert booking.fare == 1440

    @pytest.mark.asyncio
    async def test_distance_defaults_to_great_circle(
        self, db_session, rider, auto_vehicle, trip_factory
    ):
        booking = await BookingStateMachine(db_session).open_booking(
            rider.id, auto_vehicle.id, trip_factory(None), PaymentMethod.CASH
        )
        assert 1.0 < booking.distance_km < 3.0
        assert booking.fare == round_fare(15 * booking.distance_km)

    @pytest.mark.asyncio
    async def test_zero_distance_rejected(self, db_session, rider, auto_vehicle, trip_factory):
        rider_id, vehicle_id = rider.id, auto_vehicle.id
        with pytest.raises(InvalidTripDetails):
            await BookingStateMachine(db_session).open_booking(
                rider_id, vehicle_id, trip_factory(0), PaymentMethod.CASH
            )

    @pytest.mark.asyncio
    async def test_too_many_passengers_rejected(
        self, db_session, rider, auto_vehicle, trip_factory
    ):
        rider_id, vehicle_id = rider.id, auto_vehicle.id
        with pytest.raises(InvalidTripDetails):
            await BookingStateMachine(db_session).open_booking(
                rider_id, vehicle_id, trip_factory(10, passengers=5), PaymentMethod.CASH
            )

    @pytest.mark.asyncio
    async def test_unapproved_vehicle_is_unavailable(
        self, db_session, rider, driver, vehicle_factory, trip_factory
    ):
        vehicle = await vehicle_factory(
            driver, "MH12ZZ0001", approval_status=ApprovalStatus.PENDING, is_verified=False
        )
        rider_id, vehicle_id = rider.id, vehicle.id
        with pytest.raises(VehicleUnavailable):
            await BookingStateMachine(db_session).open_booking(
                rider_id, vehicle_id, trip_factory(10), PaymentMethod.CASH
            )

    @pytest.mark.asyncio
    async def test_unknown_vehicle(self, db_session, rider, trip_factory):
        rider_id = rider.id
        with pytest.raises(NotFound):
            await BookingStateMachine(db_session).open_booking(
                rider_id, 999, trip_factory(10), PaymentMethod.CASH
            )

    @pytest.mark.asyncio
    async def test_unpriced_trip_type_creates_nothing(
        self, db_session, rider, driver, vehicle_factory, trip_factory
    ):
        vehicle = await vehicle_factory(driver, "MH12ZZ0002", auto_rate_return=None)
        rider_id, vehicle_id = rider.id, vehicle.id
        with pytest.raises(PricingUnavailable):
            await BookingStateMachine(db_session).open_booking(
                rider_id, vehicle_id, trip_factory(10, TripType.RETURN), PaymentMethod.CASH
            )
        count = await db_session.scalar(
            select(func.count()).select_from(BookingModel).where(
                BookingModel.vehicle_id == vehicle_id
            )
        )
        assert count == 0


# ── Happy path ────────────────────────────────────────────────────────


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_accept_reserves_vehicle(self, db_session, pending_booking, driver):
        machine = BookingStateMachine(db_session)
        booking = await machine.transition(
            pending_booking.booking_number, S.ACCEPTED, driver.id, ActorRole.DRIVER
        )
        assert booking.status == S.ACCEPTED

        vehicle = await VehicleRepository(db_session).get_by_id(booking.vehicle_id)
        assert vehicle.booking_status == VehicleBookingStatus.BOOKED
        assert vehicle.booked is True
        assert vehicle.current_booking_id == booking.id

    @pytest.mark.asyncio
    async def test_start_marks_vehicle_in_trip(self, db_session, pending_booking, driver):
        machine = BookingStateMachine(db_session)
        booking = await _advance(
            machine, pending_booking.booking_number, driver.id, S.ACCEPTED, S.STARTED
        )
        assert booking.trip_start_time is not None

        vehicle = await VehicleRepository(db_session).get_by_id(booking.vehicle_id)
        assert vehicle.booking_status == VehicleBookingStatus.IN_TRIP
        assert vehicle.current_booking_id == booking.id

    @pytest.mark.asyncio
    async def test_complete_credits_once_and_releases_vehicle(
        self, db_session, pending_booking, driver
    ):
        machine = BookingStateMachine(db_session)
        booking = await _advance(
            machine,
            pending_booking.booking_number,
            driver.id,
            S.ACCEPTED,
            S.STARTED,
            S.COMPLETED,
        )

        assert booking.status == S.COMPLETED
        assert booking.trip_end_time is not None
        assert booking.actual_distance_km == booking.distance_km
        assert booking.actual_duration_min == booking.duration_min
        assert booking.actual_fare == 150

        ledger = EarningsLedger(db_session)
        transactions = await ledger.transactions(driver.id)
        assert len(transactions) == 1
        assert transactions[0].type == TransactionType.CREDIT
        assert transactions[0].amount == 150
        assert transactions[0].booking_id == booking.id
        assert await ledger.balance(driver.id) == 150

        vehicle = await VehicleRepository(db_session).get_by_id(booking.vehicle_id)
        assert vehicle.booking_status == VehicleBookingStatus.AVAILABLE
        assert vehicle.current_booking_id is None
        assert vehicle.booked is False
        assert vehicle.total_trips == 1
        assert vehicle.total_distance_km == pytest.approx(10.0)
        assert vehicle.total_earnings == 150

    @pytest.mark.asyncio
    async def test_history_tracks_every_status(self, db_session, pending_booking, driver):
        machine = BookingStateMachine(db_session)
        number = pending_booking.booking_number
        await _advance(machine, number, driver.id, S.ACCEPTED, S.STARTED, S.COMPLETED)

        booking = await BookingRepository(db_session).get_by_number(number)
        assert [h.status for h in booking.history] == [
            S.PENDING, S.ACCEPTED, S.STARTED, S.COMPLETED,
        ]
        assert [h.seq for h in booking.history] == [1, 2, 3, 4]
        assert booking.history[-1].status == booking.status

    @pytest.mark.asyncio
    async def test_supplied_final_fare_overrides_snapshot(
        self, db_session, pending_booking, driver
    ):
        machine = BookingStateMachine(db_session)
        number = pending_booking.booking_number
        await _advance(machine, number, driver.id, S.ACCEPTED, S.STARTED)
        booking = await machine.transition(
            number, S.COMPLETED, driver.id, ActorRole.DRIVER,
            TransitionPayload(actual_fare=200, notes="Toll paid"),
        )
        assert booking.actual_fare == 200
        assert booking.driver_notes == "Toll paid"
        assert await EarningsLedger(db_session).balance(driver.id) == 200

    @pytest.mark.asyncio
    async def test_material_distance_change_recomputes_fare(
        self, db_session, pending_booking, driver
    ):
        machine = BookingStateMachine(db_session)
        number = pending_booking.booking_number
        await _advance(machine, number, driver.id, S.ACCEPTED, S.STARTED)
        booking = await machine.transition(
            number, S.COMPLETED, driver.id, ActorRole.DRIVER,
            TransitionPayload(actual_distance_km=20.0, actual_duration_min=50),
        )
        assert booking.fare == 150
        assert booking.actual_fare == 300
        assert booking.actual_duration_min == 50

    @pytest.mark.asyncio
    async def test_small_distance_change_keeps_snapshot(
        self, db_session, pending_booking, driver
    ):
        machine = BookingStateMachine(db_session)
        number = pending_booking.booking_number
        await _advance(machine, number, driver.id, S.ACCEPTED, S.STARTED)
        booking = await machine.transition(
            number, S.COMPLETED, driver.id, ActorRole.DRIVER,
            TransitionPayload(actual_distance_km=10.5),
        )
        assert booking.actual_fare == 150

    @pytest.mark.asyncio
    async def test_notifier_called_after_commit(self, db_session, pending_booking, driver):
        notifier = AsyncMock()
        machine = BookingStateMachine(db_session, notifier)
        await machine.transition(
            pending_booking.booking_number, S.ACCEPTED, driver.id, ActorRole.DRIVER
        )
        notifier.booking_status_changed.assert_awaited_once_with(
            pending_booking.booking_number, S.PENDING, S.ACCEPTED, ActorRole.DRIVER
        )


# ── Rejections leave everything unchanged ─────────────────────────────


class TestRejections:
    @pytest.mark.asyncio
    async def test_cancel_after_start_is_rejected(self, db_session, pending_booking, driver):
        machine = BookingStateMachine(db_session)
        number, rider_id, driver_id = (
            pending_booking.booking_number, pending_booking.rider_id, driver.id,
        )
        await _advance(machine, number, driver_id, S.ACCEPTED, S.STARTED)

        with pytest.raises(InvalidTransition) as exc:
            await machine.transition(number, S.CANCELLED, rider_id, ActorRole.RIDER)
        assert exc.value.current_status == "started"

        booking = await BookingRepository(db_session).get_by_number(number)
        assert booking.status == S.STARTED
        assert len(booking.history) == 3

    @pytest.mark.asyncio
    async def test_rider_cannot_accept(self, db_session, pending_booking):
        number, rider_id = pending_booking.booking_number, pending_booking.rider_id
        with pytest.raises(InvalidTransition):
            await BookingStateMachine(db_session).transition(
                number, S.ACCEPTED, rider_id, ActorRole.RIDER
            )

    @pytest.mark.asyncio
    async def test_other_driver_sees_not_found(self, db_session, pending_booking, other_driver):
        number, other_id = pending_booking.booking_number, other_driver.id
        with pytest.raises(NotFound):
            await BookingStateMachine(db_session).transition(
                number, S.ACCEPTED, other_id, ActorRole.DRIVER
            )

    @pytest.mark.asyncio
    async def test_other_rider_cannot_read(self, db_session, pending_booking):
        machine = BookingStateMachine(db_session)
        number, rider_id = pending_booking.booking_number, pending_booking.rider_id
        with pytest.raises(NotFound):
            await machine.get_booking(number, rider_id + 1, ActorRole.RIDER)
        assert (await machine.get_booking(number, 77, ActorRole.ADMIN)).booking_number == number

    @pytest.mark.asyncio
    async def test_unknown_booking(self, db_session, driver):
        driver_id = driver.id
        with pytest.raises(NotFound):
            await BookingStateMachine(db_session).transition(
                "CS00000000XXXX", S.ACCEPTED, driver_id, ActorRole.DRIVER
            )

    @pytest.mark.asyncio
    async def test_busy_vehicle_leaves_booking_pending(
        self, db_session, rider, driver, auto_vehicle, trip_factory
    ):
        machine = BookingStateMachine(db_session)
        first = await machine.open_booking(
            rider.id, auto_vehicle.id, trip_factory(10), PaymentMethod.CASH
        )
        second = await machine.open_booking(
            rider.id, auto_vehicle.id, trip_factory(12), PaymentMethod.CASH
        )
        first_id, second_number, driver_id = first.id, second.booking_number, driver.id
        await machine.transition(first.booking_number, S.ACCEPTED, driver_id, ActorRole.DRIVER)

        with pytest.raises(VehicleUnavailable) as exc:
            await machine.transition(second_number, S.ACCEPTED, driver_id, ActorRole.DRIVER)

        assert exc.value.current_status == "pending"
        booking = await BookingRepository(db_session).get_by_number(second_number)
        assert booking.status == S.PENDING
        assert len(booking.history) == 1
        vehicle = await VehicleRepository(db_session).get_by_id(booking.vehicle_id)
        assert vehicle.current_booking_id == first_id

    @pytest.mark.asyncio
    async def test_failed_completion_rolls_back_everything(
        self, db_session, pending_booking, driver
    ):
        machine = BookingStateMachine(db_session)
        number, driver_id, vehicle_id = (
            pending_booking.booking_number, driver.id, pending_booking.vehicle_id,
        )
        await _advance(machine, number, driver_id, S.ACCEPTED, S.STARTED)

        # Pricing removed mid-trip: the recompute fails inside the transition.
        vehicles = VehicleRepository(db_session)
        await vehicles.conditional_update(vehicle_id, [], {"auto_rate_one_way": None})
        await db_session.commit()

        with pytest.raises(PricingUnavailable) as exc:
            await machine.transition(
                number, S.COMPLETED, driver_id, ActorRole.DRIVER,
                TransitionPayload(actual_distance_km=30.0),
            )
        assert exc.value.current_status == "started"

        booking = await BookingRepository(db_session).get_by_number(number)
        assert booking.status == S.STARTED
        assert booking.trip_end_time is None
        assert booking.actual_fare is None
        vehicle = await vehicles.get_by_id(vehicle_id)
        assert vehicle.booking_status == VehicleBookingStatus.IN_TRIP
        assert vehicle.total_trips == 0
        assert await DriverRepository(db_session).get_transactions(driver_id) == []


# ── Cancellation ──────────────────────────────────────────────────────


class TestCancellation:
    @pytest.mark.asyncio
    async def test_unpaid_pending_cancel_completes_refund_at_zero(
        self, db_session, pending_booking
    ):
        number, rider_id = pending_booking.booking_number, pending_booking.rider_id
        booking = await BookingStateMachine(db_session).transition(
            number, S.CANCELLED, rider_id, ActorRole.RIDER,
            TransitionPayload(reason="Plans changed"),
        )
        assert booking.status == S.CANCELLED
        assert booking.cancelled_by_id == rider_id
        assert booking.cancelled_by_role == ActorRole.RIDER
        assert booking.cancel_reason == "Plans changed"
        assert booking.cancelled_at is not None
        assert booking.refund_amount == 0
        assert booking.refund_status == RefundStatus.COMPLETED
        assert booking.refund_completed_at is not None
        assert booking.history[-1].reason == "Plans changed"

    @pytest.mark.asyncio
    async def test_cancel_after_accept_releases_vehicle(
        self, db_session, pending_booking, driver
    ):
        machine = BookingStateMachine(db_session)
        number, rider_id = pending_booking.booking_number, pending_booking.rider_id
        await machine.transition(number, S.ACCEPTED, driver.id, ActorRole.DRIVER)
        booking = await machine.transition(number, S.CANCELLED, rider_id, ActorRole.RIDER)

        vehicle = await VehicleRepository(db_session).get_by_id(booking.vehicle_id)
        assert vehicle.booking_status == VehicleBookingStatus.AVAILABLE
        assert vehicle.current_booking_id is None

    @pytest.mark.asyncio
    async def test_cancelling_pending_booking_leaves_other_reservation(
        self, db_session, rider, driver, auto_vehicle, trip_factory
    ):
        machine = BookingStateMachine(db_session)
        held = await machine.open_booking(
            rider.id, auto_vehicle.id, trip_factory(10), PaymentMethod.CASH
        )
        waiting = await machine.open_booking(
            rider.id, auto_vehicle.id, trip_factory(10), PaymentMethod.CASH
        )
        await machine.transition(held.booking_number, S.ACCEPTED, driver.id, ActorRole.DRIVER)
        await machine.transition(waiting.booking_number, S.CANCELLED, rider.id, ActorRole.RIDER)

        vehicle = await VehicleRepository(db_session).get_by_id(auto_vehicle.id)
        assert vehicle.booking_status == VehicleBookingStatus.BOOKED
        assert vehicle.current_booking_id == held.id

    @pytest.mark.asyncio
    async def test_driver_cancel_after_accept_posts_penalty(
        self, db_session, pending_booking, driver
    ):
        machine = BookingStateMachine(db_session)
        number, driver_id = pending_booking.booking_number, driver.id
        ledger = EarningsLedger(db_session)
        await ledger.credit(driver_id, 100, "Opening balance")
        await db_session.commit()

        await machine.transition(number, S.ACCEPTED, driver_id, ActorRole.DRIVER)
        await machine.transition(
            number, S.CANCELLED, driver_id, ActorRole.DRIVER,
            TransitionPayload(reason="Vehicle breakdown", penalty_amount=40),
        )

        assert await ledger.balance(driver_id) == 60
        penalties = await DriverRepository(db_session).get_penalties(driver_id)
        assert len(penalties) == 1
        assert penalties[0].amount == 40
        assert penalties[0].type.value == "cancellation_after_acceptance"

    @pytest.mark.asyncio
    async def test_unaffordable_penalty_aborts_cancel(self, db_session, pending_booking, driver):
        machine = BookingStateMachine(db_session)
        number, driver_id, vehicle_id = (
            pending_booking.booking_number, driver.id, pending_booking.vehicle_id,
        )
        await machine.transition(number, S.ACCEPTED, driver_id, ActorRole.DRIVER)

        with pytest.raises(InsufficientBalance) as exc:
            await machine.transition(
                number, S.CANCELLED, driver_id, ActorRole.DRIVER,
                TransitionPayload(penalty_amount=40),
            )
        assert exc.value.current_status == "accepted"

        booking = await BookingRepository(db_session).get_by_number(number)
        assert booking.status == S.ACCEPTED
        assert booking.refund_status == RefundStatus.NONE
        assert booking.cancelled_at is None
        vehicle = await VehicleRepository(db_session).get_by_id(vehicle_id)
        assert vehicle.booking_status == VehicleBookingStatus.BOOKED

    @pytest.mark.asyncio
    async def test_driver_cancel_while_pending_has_no_penalty(
        self, db_session, pending_booking, driver
    ):
        number, driver_id = pending_booking.booking_number, driver.id
        await BookingStateMachine(db_session).transition(
            number, S.CANCELLED, driver_id, ActorRole.DRIVER,
            TransitionPayload(penalty_amount=40),
        )
        assert await DriverRepository(db_session).get_penalties(driver_id) == []
