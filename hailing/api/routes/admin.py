"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/health                                   -- simple health check
POST /api/v1/admin/vehicles/{vehicle_id}/approval           -- approve / reject a vehicle
POST /api/v1/admin/bookings/{booking_number}/refund/adjust   -- partial penalty on a pending refund
POST /api/v1/admin/bookings/{booking_number}/refund/initiate -- pending -> initiated (gateway | manual)
POST /api/v1/admin/bookings/{booking_number}/refund/complete -- initiated -> completed
POST /api/v1/admin/drivers/{driver_id}/penalties            -- debit an SLA penalty
GET  /api/v1/admin/drivers/{driver_id}/wallet-audit          -- cached balance vs. transaction sum
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hailing.api.dependencies import Actor, get_db, get_payment_gateway, require_role
from hailing.api.middleware import limiter
from hailing.api.schemas import (
    BookingResponse,
    ErrorResponse,
    HealthResponse,
    PenaltyRequest,
    PenaltyResponse,
    RefundAdjustRequest,
    RefundCompleteRequest,
    RefundInitiateRequest,
    VehicleApprovalRequest,
    VehicleResponse,
    WalletAuditResponse,
)
from hailing.config import settings
from hailing.domain.enums import ActorRole
from hailing.domain.errors import AlreadyRefunded, NotFound
from hailing.infrastructure.payment_gateway import PaymentGateway
from hailing.infrastructure.repositories import BookingRepository
from hailing.services.ledger import EarningsLedger
from hailing.services.refunds import CancellationRefundWorkflow
from hailing.services.vehicle_tracker import VehicleResourceTracker

router = APIRouter(prefix="/admin", tags=["admin"])

_admin = require_role(ActorRole.ADMIN)
_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()


@router.post(
    "/vehicles/{vehicle_id}/approval",
    response_model=VehicleResponse,
    summary="Approve or reject a registered vehicle",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def set_vehicle_approval(
    request: Request,
    vehicle_id: int,
    body: VehicleApprovalRequest,
    actor: Actor = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await VehicleResourceTracker(db).set_approval(
        vehicle_id, body.approved, actor.id, notes=body.notes, reason=body.reason
    )


# ── Refunds ───────────────────────────────────────────────────────────


@router.post(
    "/bookings/{booking_number}/refund/adjust",
    response_model=BookingResponse,
    summary="Reduce a pending refund",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def adjust_refund(
    request: Request,
    booking_number: str,
    body: RefundAdjustRequest,
    actor: Actor = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await CancellationRefundWorkflow(db).adjust_refund(
        booking_number, body.deduction, body.reason
    )


@router.post(
    "/bookings/{booking_number}/refund/initiate",
    response_model=BookingResponse,
    summary="Initiate a pending refund",
    description=(
        "Gateway refunds are issued after the status is committed; if the "
        "gateway call fails the refund stays initiated and the reconciler "
        "retries it."
    ),
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def initiate_refund(
    request: Request,
    booking_number: str,
    body: RefundInitiateRequest,
    actor: Actor = Depends(_admin),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return await CancellationRefundWorkflow(db, gateway).initiate_refund(
        booking_number, body.method
    )


@router.post(
    "/bookings/{booking_number}/refund/complete",
    response_model=BookingResponse,
    summary="Mark an initiated refund completed",
    description="Completing an already-completed refund is a no-op.",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def complete_refund(
    request: Request,
    booking_number: str,
    body: RefundCompleteRequest,
    actor: Actor = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CancellationRefundWorkflow(db).complete_refund(
            booking_number, body.reference
        )
    except AlreadyRefunded:
        return await BookingRepository(db).get_by_number(booking_number)


# ── Driver wallets ────────────────────────────────────────────────────


@router.post(
    "/drivers/{driver_id}/penalties",
    status_code=201,
    response_model=PenaltyResponse,
    summary="Debit a penalty from a driver's wallet",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def apply_penalty(
    request: Request,
    driver_id: int,
    body: PenaltyRequest,
    actor: Actor = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    booking_id = None
    if body.booking_number:
        booking = await BookingRepository(db).get_by_number(body.booking_number)
        if not booking or booking.driver_id != driver_id:
            raise NotFound(f"Booking {body.booking_number} not found")
        booking_id = booking.id
    return await EarningsLedger(db).apply_penalty(
        driver_id,
        body.penalty_type,
        amount=body.amount,
        reason=body.reason,
        booking_id=booking_id,
        applied_by=actor.id,
    )


@router.get(
    "/drivers/{driver_id}/wallet-audit",
    response_model=WalletAuditResponse,
    summary="Compare a driver's cached balance with the transaction log",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def wallet_audit(
    request: Request,
    driver_id: int,
    actor: Actor = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    balance, total = await EarningsLedger(db).audit(driver_id)
    return WalletAuditResponse(
        driver_id=driver_id,
        balance=balance,
        transaction_sum=total,
        consistent=balance == total,
    )
