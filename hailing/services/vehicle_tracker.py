"""
Vehicle Resource Tracker
========================

Owns a vehicle's availability fields (``booking_status``, ``booked``,
``is_available``, ``current_booking_id``).  Nothing else writes them.

Concurrency safety
------------------
Every state change is one conditional ``UPDATE`` against the vehicle row.
``reserve`` is ``SET booked WHERE booking_status = 'available' AND
approved``: of two concurrent ``accept`` requests for the same vehicle,
exactly one sees ``rowcount == 1``; the other gets ``VehicleUnavailable``.
No in-process lock is involved, so this holds across server instances.

Methods here do not commit; the caller owns the unit of work.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hailing.domain.enums import (
    BUSY_VEHICLE_STATUSES,
    ActorRole,
    ApprovalStatus,
    VehicleBookingStatus,
    VehicleCategory,
)
from hailing.domain.errors import (
    NotFound,
    VehicleAlreadyRegistered,
    VehicleBusy,
    VehicleUnavailable,
)
from hailing.infrastructure.models import VehicleModel
from hailing.infrastructure.repositories import DriverRepository, VehicleRepository

logger = logging.getLogger(__name__)

_AVAILABLE_VALUES = {
    "booking_status": VehicleBookingStatus.AVAILABLE,
    "booked": False,
    "is_available": True,
    "current_booking_id": None,
}


class VehicleResourceTracker:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.vehicles = VehicleRepository(session)

    # ── Booking-driven primitives ─────────────────────────────────────

    async def reserve(self, vehicle_id: int, booking_id: int) -> None:
        won = await self.vehicles.conditional_update(
            vehicle_id,
            [
                VehicleModel.booking_status == VehicleBookingStatus.AVAILABLE,
                VehicleModel.is_active.is_(True),
                VehicleModel.is_verified.is_(True),
                VehicleModel.approval_status == ApprovalStatus.APPROVED,
            ],
            {
                "booking_status": VehicleBookingStatus.BOOKED,
                "booked": True,
                "is_available": False,
                "current_booking_id": booking_id,
            },
        )
        if not won:
            await self._require(vehicle_id)
            logger.info(
                "Reservation of vehicle %s for booking %s lost", vehicle_id, booking_id
            )
            raise VehicleUnavailable(f"Vehicle {vehicle_id} is not available")

    async def release(self, vehicle_id: int, booking_id: Optional[int] = None) -> bool:
        """Back to ``available``.  Idempotent.

        With *booking_id* the release only applies while the vehicle is
        still held for that booking.  Returns whether anything changed.
        """
        where = [
            or_(
                VehicleModel.booking_status != VehicleBookingStatus.AVAILABLE,
                VehicleModel.current_booking_id.is_not(None),
            )
        ]
        if booking_id is not None:
            where.append(VehicleModel.current_booking_id == booking_id)
        return await self.vehicles.conditional_update(
            vehicle_id, where, dict(_AVAILABLE_VALUES)
        )

    # ── Availability overrides ────────────────────────────────────────

    async def mark_in_trip(self, vehicle_id: int, booking_id: int) -> None:
        await self._override(
            vehicle_id,
            booking_id,
            {
                "booking_status": VehicleBookingStatus.IN_TRIP,
                "booked": True,
                "is_available": False,
                "current_booking_id": booking_id,
            },
        )

    async def mark_offline(
        self, vehicle_id: int, initiating_booking_id: Optional[int] = None
    ) -> None:
        await self._override(
            vehicle_id,
            initiating_booking_id,
            {
                "booking_status": VehicleBookingStatus.OFFLINE,
                "is_available": False,
                "booked": False,
                "current_booking_id": None,
            },
        )

    async def mark_under_maintenance(
        self,
        vehicle_id: int,
        reason: str = "",
        initiating_booking_id: Optional[int] = None,
    ) -> None:
        await self._override(
            vehicle_id,
            initiating_booking_id,
            {
                "booking_status": VehicleBookingStatus.MAINTENANCE,
                "is_available": False,
                "booked": False,
                "current_booking_id": None,
                "maintenance_reason": reason,
            },
        )

    async def mark_online(self, vehicle_id: int) -> None:
        await self._override(
            vehicle_id, None, {**_AVAILABLE_VALUES, "maintenance_reason": None}
        )

    async def set_availability(
        self,
        vehicle_id: int,
        state: VehicleBookingStatus,
        actor_id: int,
        actor_role: ActorRole,
        reason: str = "",
    ) -> VehicleModel:
        """Driver / admin toggle between online, offline and maintenance."""
        vehicle = await self._require(vehicle_id)
        if actor_role == ActorRole.DRIVER and vehicle.driver_id != actor_id:
            raise NotFound(f"Vehicle {vehicle_id} not found")
        if actor_role == ActorRole.RIDER:
            raise NotFound(f"Vehicle {vehicle_id} not found")

        if state == VehicleBookingStatus.AVAILABLE:
            await self.mark_online(vehicle_id)
        elif state == VehicleBookingStatus.OFFLINE:
            await self.mark_offline(vehicle_id)
        elif state == VehicleBookingStatus.MAINTENANCE:
            await self.mark_under_maintenance(vehicle_id, reason)
        else:
            raise VehicleBusy(f"{state.value} can only be set by a booking transition")
        return await self._require(vehicle_id)

    async def _override(
        self, vehicle_id: int, initiating_booking_id: Optional[int], values: dict
    ) -> None:
        guard = VehicleModel.booking_status.not_in(list(BUSY_VEHICLE_STATUSES))
        if initiating_booking_id is not None:
            guard = or_(guard, VehicleModel.current_booking_id == initiating_booking_id)
        if not await self.vehicles.conditional_update(vehicle_id, [guard], values):
            vehicle = await self._require(vehicle_id)
            raise VehicleBusy(
                f"Vehicle {vehicle_id} is {vehicle.booking_status.value} "
                f"for booking {vehicle.current_booking_id}"
            )

    # ── Registration & approval ───────────────────────────────────────

    async def register_vehicle(
        self,
        *,
        driver_id: int,
        registration_number: str,
        category: VehicleCategory,
        brand: str = "",
        seating_capacity: int = 4,
        auto_rate_one_way: Optional[float] = None,
        auto_rate_return: Optional[float] = None,
        distance_pricing: Optional[dict] = None,
    ) -> VehicleModel:
        if not await DriverRepository(self.session).get_by_id(driver_id):
            raise NotFound(f"Driver {driver_id} not found")
        registration_number = registration_number.strip().upper()
        if await self.vehicles.get_by_registration(registration_number):
            raise VehicleAlreadyRegistered(
                f"Vehicle {registration_number} is already registered"
            )
        vehicle = VehicleModel(
            driver_id=driver_id,
            registration_number=registration_number,
            category=category,
            brand=brand,
            seating_capacity=seating_capacity,
            auto_rate_one_way=auto_rate_one_way,
            auto_rate_return=auto_rate_return,
            distance_pricing=distance_pricing,
            booking_status=VehicleBookingStatus.AVAILABLE,
            is_available=True,
            booked=False,
            approval_status=ApprovalStatus.PENDING,
        )
        try:
            return await self.vehicles.create(vehicle)
        except IntegrityError as exc:
            raise VehicleAlreadyRegistered(
                f"Vehicle {registration_number} is already registered"
            ) from exc

    async def set_approval(
        self,
        vehicle_id: int,
        approved: bool,
        admin_id: int,
        notes: str = "",
        reason: str = "",
    ) -> VehicleModel:
        vehicle = await self._require(vehicle_id)
        vehicle.approval_status = (
            ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        )
        vehicle.is_verified = approved
        vehicle.admin_notes = notes
        vehicle.rejection_reason = None if approved else reason
        vehicle.approved_by = admin_id
        vehicle.approved_at = datetime.now(timezone.utc)
        await self.session.flush()
        logger.info(
            "Vehicle %s %s by admin %s",
            vehicle.registration_number,
            vehicle.approval_status.value,
            admin_id,
        )
        return vehicle

    async def _require(self, vehicle_id: int) -> VehicleModel:
        vehicle = await self.vehicles.get_by_id(vehicle_id)
        if not vehicle:
            raise NotFound(f"Vehicle {vehicle_id} not found")
        return vehicle
