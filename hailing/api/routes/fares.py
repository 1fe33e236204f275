"""
Fare endpoints
==============

POST /api/v1/fares/quote -- price a trip on a given vehicle
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hailing.api.dependencies import get_db
from hailing.api.middleware import limiter
from hailing.api.schemas import ErrorResponse, FareQuoteRequest, FareQuoteResponse
from hailing.config import settings
from hailing.services.pricing import quote_fare

router = APIRouter(prefix="/fares", tags=["fares"])


@router.post(
    "/quote",
    response_model=FareQuoteResponse,
    summary="Quote a fare",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def quote(
    request: Request,
    body: FareQuoteRequest,
    db: AsyncSession = Depends(get_db),
):
    fare = await quote_fare(db, body.vehicle_id, body.distance_km, body.trip_type)
    return FareQuoteResponse(
        vehicle_id=body.vehicle_id,
        distance_km=body.distance_km,
        trip_type=body.trip_type,
        fare=fare,
    )
