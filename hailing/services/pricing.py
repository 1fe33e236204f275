"""Fare quotes for stored vehicles."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from hailing.domain.enums import TripType
from hailing.domain.errors import NotFound
from hailing.domain.fare import PricingProfile, compute_fare
from hailing.infrastructure.models import VehicleModel
from hailing.infrastructure.repositories import VehicleRepository


def profile_for(vehicle: VehicleModel) -> PricingProfile:
    return PricingProfile.from_storage(
        vehicle.category,
        vehicle.auto_rate_one_way,
        vehicle.auto_rate_return,
        vehicle.distance_pricing,
    )


async def quote_fare(
    session: AsyncSession, vehicle_id: int, distance_km: float, trip_type: TripType
) -> int:
    vehicle = await VehicleRepository(session).get_by_id(vehicle_id)
    if not vehicle:
        raise NotFound(f"Vehicle {vehicle_id} not found")
    return compute_fare(profile_for(vehicle), distance_km, trip_type)
