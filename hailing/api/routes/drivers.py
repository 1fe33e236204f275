"""
Driver wallet endpoints
=======================

GET  /api/v1/drivers/me/wallet       -- balance and transaction log
POST /api/v1/drivers/me/withdrawals  -- request a withdrawal (debited immediately)
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hailing.api.dependencies import Actor, get_db, require_role
from hailing.api.middleware import limiter
from hailing.api.schemas import (
    ErrorResponse,
    WalletResponse,
    WalletTransactionResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)
from hailing.config import settings
from hailing.domain.enums import ActorRole
from hailing.services.ledger import EarningsLedger

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get(
    "/me/wallet",
    response_model=WalletResponse,
    summary="Wallet balance and transactions",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_wallet(
    request: Request,
    actor: Actor = Depends(require_role(ActorRole.DRIVER)),
    db: AsyncSession = Depends(get_db),
):
    ledger = EarningsLedger(db)
    transactions = await ledger.transactions(actor.id)
    return WalletResponse(
        driver_id=actor.id,
        balance=await ledger.balance(actor.id),
        transactions=[WalletTransactionResponse.model_validate(t) for t in transactions],
    )


@router.post(
    "/me/withdrawals",
    status_code=201,
    response_model=WithdrawalResponse,
    summary="Request a withdrawal",
    description="The amount is debited now and queued for admin approval.",
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def request_withdrawal(
    request: Request,
    body: WithdrawalRequest,
    actor: Actor = Depends(require_role(ActorRole.DRIVER)),
    db: AsyncSession = Depends(get_db),
):
    return await EarningsLedger(db).request_withdrawal(
        actor.id, body.amount, body.bank_reference
    )
