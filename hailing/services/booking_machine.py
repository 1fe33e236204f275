"""
Booking State Machine
=====================

The only writer of ``bookings.status``.  Every request goes through
``transition``::

    pending ──► accepted ──► started ──► completed
       │            │
       └────────────┴──► cancelled

Algorithm per transition
------------------------
1. Load the booking; ``NotFound`` if missing or not owned by the rider /
   driver asking.
2. Check the move against ``BOOKING_TRANSITIONS`` (single table, actor
   role included).
3. Run the side effects for the target status: vehicle reservation,
   trip record, fare finalisation, ledger credit, cancellation record.
4. Compare-and-set the status from the value loaded in step 1 and
   append the history entry.
5. Commit.  Any exception in 3-5 rolls the whole unit back.

Concurrency safety
------------------
* The vehicle reservation is a conditional UPDATE, so two ``accept``
  requests for the same vehicle cannot both win.
* The status write is a conditional UPDATE on the previously-read
  status, so a ``cancel`` racing a ``start`` resolves to whichever
  commits first; the loser sees ``InvalidTransition`` with the status it
  lost to.
"""

from __future__ import annotations

import logging
import math
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hailing.config import settings
from hailing.domain.distance import planned_distance_km
from hailing.domain.entities import TransitionPayload, TripDetails, check_transition
from hailing.domain.enums import (
    ActorRole,
    ApprovalStatus,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
)
from hailing.domain.errors import (
    DomainError,
    InvalidTransition,
    InvalidTripDetails,
    NotFound,
    VehicleUnavailable,
)
from hailing.domain.fare import compute_fare, needs_recompute
from hailing.infrastructure.models import BookingModel, BookingStatusHistoryModel
from hailing.infrastructure.notifications import StatusNotifier
from hailing.infrastructure.repositories import (
    BookingRepository,
    RiderRepository,
    VehicleRepository,
)
from hailing.services.ledger import EarningsLedger
from hailing.services.pricing import profile_for
from hailing.services.refunds import CancellationRefundWorkflow
from hailing.services.vehicle_tracker import VehicleResourceTracker

logger = logging.getLogger(__name__)

_BOOKING_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_booking_number() -> str:
    """``CS`` + last 8 digits of epoch millis + 4 random alphanumerics."""
    millis = str(int(time.time() * 1000))[-8:]
    suffix = "".join(secrets.choice(_BOOKING_SUFFIX_ALPHABET) for _ in range(4))
    return f"CS{millis}{suffix}"


class BookingStateMachine:
    def __init__(
        self, session: AsyncSession, notifier: Optional[StatusNotifier] = None
    ):
        self.session = session
        self.notifier = notifier
        self.bookings = BookingRepository(session)
        self.vehicles = VehicleRepository(session)
        self.tracker = VehicleResourceTracker(session)
        self.ledger = EarningsLedger(session)
        self.refunds = CancellationRefundWorkflow(session)

    # ── Creation & lookup ─────────────────────────────────────────────

    async def open_booking(
        self,
        rider_id: int,
        vehicle_id: int,
        trip: TripDetails,
        payment_method: PaymentMethod,
        special_requests: str = "",
    ) -> BookingModel:
        try:
            if not await RiderRepository(self.session).get_by_id(rider_id):
                raise NotFound(f"Rider {rider_id} not found")
            vehicle = await self.vehicles.get_by_id(vehicle_id)
            if not vehicle:
                raise NotFound(f"Vehicle {vehicle_id} not found")
            if not vehicle.is_active or vehicle.approval_status != ApprovalStatus.APPROVED:
                raise VehicleUnavailable(f"Vehicle {vehicle_id} is not bookable")

            distance = trip.distance_km
            if distance is None:
                distance = planned_distance_km(trip.pickup, trip.destination)
            if not math.isfinite(distance) or distance <= 0:
                raise InvalidTripDetails("Trip distance must be greater than zero")
            if trip.passengers > vehicle.seating_capacity:
                raise InvalidTripDetails(
                    f"Vehicle seats {vehicle.seating_capacity}, "
                    f"{trip.passengers} passengers requested"
                )

            fare = compute_fare(profile_for(vehicle), distance, trip.trip_type)
            now = _now()
            booking = BookingModel(
                booking_number=generate_booking_number(),
                rider_id=rider_id,
                driver_id=vehicle.driver_id,
                vehicle_id=vehicle.id,
                pickup_lat=trip.pickup.latitude,
                pickup_lng=trip.pickup.longitude,
                pickup_address=trip.pickup.address,
                destination_lat=trip.destination.latitude,
                destination_lng=trip.destination.longitude,
                destination_address=trip.destination.address,
                trip_date=trip.date,
                trip_time=trip.time,
                return_date=trip.return_date,
                passengers=trip.passengers,
                distance_km=distance,
                duration_min=trip.duration_min,
                trip_type=trip.trip_type,
                fare=fare,
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING,
                status=BookingStatus.PENDING,
                special_requests=special_requests,
                history=[
                    BookingStatusHistoryModel(
                        seq=1,
                        status=BookingStatus.PENDING,
                        timestamp=now,
                        actor_id=rider_id,
                        actor_role=ActorRole.RIDER,
                        reason="Booking created",
                    )
                ],
            )
            await self.bookings.create(booking)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Booking %s opened by rider %s on vehicle %s (fare %d)",
            booking.booking_number, rider_id, vehicle_id, fare,
        )
        return booking

    async def get_booking(
        self, booking_number: str, actor_id: int, actor_role: ActorRole
    ) -> BookingModel:
        return await self._load_owned(booking_number, actor_id, actor_role)

    # ── Transitions ───────────────────────────────────────────────────

    async def transition(
        self,
        booking_number: str,
        target: BookingStatus,
        actor_id: int,
        actor_role: ActorRole,
        payload: Optional[TransitionPayload] = None,
    ) -> BookingModel:
        payload = payload or TransitionPayload()
        previous = None
        try:
            booking = await self._load_owned(booking_number, actor_id, actor_role)
            previous = booking.status
            check_transition(previous, target, actor_role)

            guards = []
            if target == BookingStatus.ACCEPTED:
                await self.tracker.reserve(booking.vehicle_id, booking.id)
            elif target == BookingStatus.STARTED:
                booking.trip_start_time = _now()
                await self.tracker.mark_in_trip(booking.vehicle_id, booking.id)
            elif target == BookingStatus.COMPLETED:
                await self._complete(booking, payload)
            elif target == BookingStatus.CANCELLED:
                await self._cancel(booking, previous, actor_id, actor_role, payload)
                # a payment captured mid-flight must not be cancelled as unpaid
                guards.append(BookingModel.payment_status == booking.payment_status)

            if not await self.bookings.compare_and_set_status(booking, target, *guards):
                current = await self.bookings.current_status(booking.id)
                raise InvalidTransition(current.value, target.value)

            booking.history.append(
                BookingStatusHistoryModel(
                    seq=len(booking.history) + 1,
                    status=target,
                    timestamp=_now(),
                    actor_id=actor_id,
                    actor_role=actor_role,
                    reason=payload.reason,
                    notes=payload.notes,
                )
            )
            await self.session.commit()
        except DomainError as exc:
            await self.session.rollback()
            # nothing was applied, so the loaded status is still current
            if exc.current_status is None and previous is not None:
                exc.current_status = previous.value
            raise
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Booking %s: %s -> %s by %s %s",
            booking_number, previous.value, target.value, actor_role.value, actor_id,
        )
        if self.notifier is not None:
            await self.notifier.booking_status_changed(
                booking_number, previous, target, actor_role
            )
        return booking

    async def _complete(self, booking: BookingModel, payload: TransitionPayload) -> None:
        actual_km = payload.actual_distance_km
        if actual_km is None:
            actual_km = booking.distance_km
        booking.trip_end_time = _now()
        booking.actual_distance_km = actual_km
        booking.actual_duration_min = (
            payload.actual_duration_min
            if payload.actual_duration_min is not None
            else booking.duration_min
        )
        if payload.notes:
            booking.driver_notes = payload.notes

        fare = await self._finalize_fare(booking, actual_km, payload.actual_fare)
        booking.actual_fare = fare

        await self.tracker.release(booking.vehicle_id, booking.id)
        await self.ledger.credit(
            booking.driver_id,
            fare,
            f"Trip earnings for booking {booking.booking_number}",
            booking.id,
        )
        await self.vehicles.add_trip_statistics(booking.vehicle_id, actual_km, fare)

    async def _finalize_fare(
        self, booking: BookingModel, actual_km: float, override: Optional[int]
    ) -> int:
        if override is not None:
            if override < 0:
                raise InvalidTripDetails("Final fare cannot be negative")
            return override
        if not needs_recompute(
            booking.distance_km, actual_km, settings.fare_recompute_threshold
        ):
            return booking.fare
        vehicle = await self.vehicles.get_by_id(booking.vehicle_id)
        fare = compute_fare(profile_for(vehicle), actual_km, booking.trip_type)
        logger.info(
            "Booking %s fare recomputed %d -> %d (%.1f km driven, %.1f planned)",
            booking.booking_number, booking.fare, fare, actual_km, booking.distance_km,
        )
        return fare

    async def _cancel(
        self,
        booking: BookingModel,
        previous: BookingStatus,
        actor_id: int,
        actor_role: ActorRole,
        payload: TransitionPayload,
    ) -> None:
        self.refunds.open_refund(booking, actor_id, actor_role, payload.reason)
        # No-op unless the vehicle is still held for this booking.
        await self.tracker.release(booking.vehicle_id, booking.id)

        if actor_role == ActorRole.DRIVER and previous == BookingStatus.ACCEPTED:
            amount = payload.penalty_amount
            if amount is None:
                amount = settings.driver_cancellation_penalty
            if amount > 0:
                await self.refunds.post_driver_penalty(booking, booking.driver_id, amount)

    async def _load_owned(
        self, booking_number: str, actor_id: int, actor_role: ActorRole
    ) -> BookingModel:
        booking = await self.bookings.get_by_number(booking_number)
        if (
            booking is None
            or (actor_role == ActorRole.RIDER and booking.rider_id != actor_id)
            or (actor_role == ActorRole.DRIVER and booking.driver_id != actor_id)
        ):
            raise NotFound(f"Booking {booking_number} not found")
        return booking


def _now() -> datetime:
    return datetime.now(timezone.utc)
