"""
Vehicle endpoints
=================

POST  /api/v1/vehicles                         -- driver registers a vehicle
GET   /api/v1/vehicles/{vehicle_id}            -- availability and statistics
PATCH /api/v1/vehicles/{vehicle_id}/availability -- online / offline / maintenance
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hailing.api.dependencies import Actor, get_db, require_role
from hailing.api.middleware import limiter
from hailing.api.schemas import (
    AvailabilityRequest,
    ErrorResponse,
    VehicleRegisterRequest,
    VehicleResponse,
)
from hailing.config import settings
from hailing.domain.enums import ActorRole
from hailing.domain.errors import NotFound
from hailing.infrastructure.repositories import VehicleRepository
from hailing.services.vehicle_tracker import VehicleResourceTracker

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post(
    "",
    status_code=201,
    response_model=VehicleResponse,
    summary="Register a vehicle (pending admin approval)",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def register_vehicle(
    request: Request,
    body: VehicleRegisterRequest,
    actor: Actor = Depends(require_role(ActorRole.DRIVER)),
    db: AsyncSession = Depends(get_db),
):
    data = body.model_dump(mode="json")
    return await VehicleResourceTracker(db).register_vehicle(
        driver_id=actor.id,
        registration_number=data["registration_number"],
        category=body.category,
        brand=data["brand"],
        seating_capacity=data["seating_capacity"],
        auto_rate_one_way=data["auto_rate_one_way"],
        auto_rate_return=data["auto_rate_return"],
        distance_pricing=data["distance_pricing"],
    )


@router.get(
    "/{vehicle_id}",
    response_model=VehicleResponse,
    summary="Get a vehicle",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_vehicle(
    request: Request,
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
):
    vehicle = await VehicleRepository(db).get_by_id(vehicle_id)
    if not vehicle:
        raise NotFound(f"Vehicle {vehicle_id} not found")
    return vehicle


@router.patch(
    "/{vehicle_id}/availability",
    response_model=VehicleResponse,
    summary="Toggle a vehicle online, offline or under maintenance",
    description="Rejected with vehicle_busy while the vehicle serves a booking.",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def set_availability(
    request: Request,
    vehicle_id: int,
    body: AvailabilityRequest,
    actor: Actor = Depends(require_role(ActorRole.DRIVER, ActorRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await VehicleResourceTracker(db).set_availability(
        vehicle_id, body.state, actor.id, actor.role, body.reason
    )
