"""
Booking endpoints
=================

POST /api/v1/bookings                            -- rider opens a booking
GET  /api/v1/bookings/{booking_number}           -- booking with its status history
POST /api/v1/bookings/{booking_number}/transitions -- move the booking to a new status
POST /api/v1/bookings/{booking_number}/payment   -- record a captured payment (admin)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hailing.api.dependencies import (
    Actor,
    get_actor,
    get_db,
    get_notifier,
    require_role,
)
from hailing.api.middleware import limiter
from hailing.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    ErrorResponse,
    PaymentRecordRequest,
    TransitionRequest,
)
from hailing.config import settings
from hailing.domain.entities import Location, TransitionPayload, TripDetails
from hailing.domain.enums import ActorRole
from hailing.infrastructure.notifications import StatusNotifier
from hailing.services.booking_machine import BookingStateMachine
from hailing.services.refunds import CancellationRefundWorkflow

router = APIRouter(prefix="/bookings", tags=["bookings"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Open a booking",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    actor: Actor = Depends(require_role(ActorRole.RIDER)),
    db: AsyncSession = Depends(get_db),
    notifier: Optional[StatusNotifier] = Depends(get_notifier),
):
    trip = TripDetails(
        pickup=Location(**body.pickup.model_dump()),
        destination=Location(**body.destination.model_dump()),
        date=body.trip_date,
        time=body.trip_time,
        trip_type=body.trip_type,
        distance_km=body.distance_km,
        duration_min=body.duration_min,
        passengers=body.passengers,
        return_date=body.return_date,
    )
    return await BookingStateMachine(db, notifier).open_booking(
        actor.id,
        body.vehicle_id,
        trip,
        body.payment_method,
        special_requests=body.special_requests,
    )


@router.get(
    "/{booking_number}",
    response_model=BookingResponse,
    summary="Get a booking and its status history",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_number: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await BookingStateMachine(db).get_booking(booking_number, actor.id, actor.role)


@router.post(
    "/{booking_number}/transitions",
    response_model=BookingResponse,
    summary="Move a booking to a new status",
    description=(
        "Drivers accept, start and complete; riders, drivers and admins may "
        "cancel a pending or accepted booking.  A rejected move returns the "
        "error kind and the booking's unchanged status."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def transition_booking(
    request: Request,
    booking_number: str,
    body: TransitionRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    notifier: Optional[StatusNotifier] = Depends(get_notifier),
):
    payload = TransitionPayload(**body.model_dump(exclude={"status"}))
    return await BookingStateMachine(db, notifier).transition(
        booking_number, body.status, actor.id, actor.role, payload
    )


@router.post(
    "/{booking_number}/payment",
    response_model=BookingResponse,
    summary="Record a captured payment",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def record_payment(
    request: Request,
    booking_number: str,
    body: PaymentRecordRequest,
    actor: Actor = Depends(require_role(ActorRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await CancellationRefundWorkflow(db).record_payment(
        booking_number, body.transaction_id, body.amount
    )
