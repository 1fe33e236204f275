"""
Earnings Ledger
===============

Per-driver wallet: an append-only ``wallet_transactions`` log plus a
cached ``drivers.wallet_balance``.  Both are written together inside the
caller's unit of work, so the cached balance always equals the signed
sum of the log.

The only check ``debit`` makes is the balance guard, and it is done in
the database (``UPDATE ... WHERE wallet_balance >= amount``) so two
concurrent debits can never overdraw the wallet.

Methods here do not commit; the caller owns the unit of work.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hailing.config import settings
from hailing.domain.enums import ActorRole, TransactionType, WithdrawalStatus
from hailing.domain.errors import InsufficientBalance, NotFound, WithdrawalBelowMinimum
from hailing.domain.penalties import PenaltyStatus, PenaltyType, default_amount
from hailing.infrastructure.models import (
    DriverModel,
    PenaltyModel,
    WalletTransactionModel,
    WithdrawalModel,
)
from hailing.infrastructure.repositories import DriverRepository

logger = logging.getLogger(__name__)


class EarningsLedger:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.drivers = DriverRepository(session)

    async def credit(
        self,
        driver_id: int,
        amount: int,
        description: str,
        booking_id: Optional[int] = None,
    ) -> WalletTransactionModel:
        if not await self.drivers.increment_balance(driver_id, amount):
            raise NotFound(f"Driver {driver_id} not found")
        return await self._append(
            driver_id, TransactionType.CREDIT, amount, description, booking_id
        )

    async def debit(
        self,
        driver_id: int,
        amount: int,
        description: str,
        booking_id: Optional[int] = None,
    ) -> WalletTransactionModel:
        if not await self.drivers.decrement_balance_if_sufficient(driver_id, amount):
            driver = await self._require(driver_id)
            logger.info(
                "Debit of %d rejected for driver %s (balance %d)",
                amount, driver_id, driver.wallet_balance,
            )
            raise InsufficientBalance(
                f"Insufficient wallet balance: {driver.wallet_balance} < {amount}"
            )
        return await self._append(
            driver_id, TransactionType.DEBIT, amount, description, booking_id
        )

    async def balance(self, driver_id: int) -> int:
        return (await self._require(driver_id)).wallet_balance

    async def transactions(self, driver_id: int) -> list[WalletTransactionModel]:
        await self._require(driver_id)
        return await self.drivers.get_transactions(driver_id)

    async def audit(self, driver_id: int) -> tuple[int, int]:
        """``(cached balance, signed transaction sum)`` -- equal when healthy."""
        balance = await self.balance(driver_id)
        return balance, await self.drivers.transaction_sum(driver_id)

    async def request_withdrawal(
        self, driver_id: int, amount: int, bank_reference: Optional[str] = None
    ) -> WithdrawalModel:
        """Debit now, queue for admin approval.

        Funds are escrowed at request time: approval (out of scope here)
        never touches the balance again.
        """
        driver = await self._require(driver_id)
        if amount > driver.wallet_balance:
            raise InsufficientBalance(
                f"Insufficient wallet balance: {driver.wallet_balance} < {amount}"
            )
        if amount < settings.min_withdrawal_amount:
            raise WithdrawalBelowMinimum(
                f"Minimum withdrawal amount is {settings.min_withdrawal_amount}"
            )

        tx = await self.debit(driver_id, amount, "Withdrawal request")
        withdrawal = await self.drivers.add_withdrawal(
            WithdrawalModel(
                driver_id=driver_id,
                amount=amount,
                bank_reference=bank_reference,
                status=WithdrawalStatus.PENDING,
                transaction_id=tx.id,
                requested_at=_now(),
            )
        )
        logger.info("Withdrawal of %d queued for driver %s", amount, driver_id)
        return withdrawal

    async def apply_penalty(
        self,
        driver_id: int,
        penalty_type: PenaltyType,
        *,
        amount: Optional[int] = None,
        reason: str = "",
        booking_id: Optional[int] = None,
        applied_by: Optional[int] = None,
        applied_by_role: ActorRole = ActorRole.ADMIN,
    ) -> PenaltyModel:
        if amount is None:
            amount = default_amount(penalty_type)
        reason = reason or penalty_type.value.replace("_", " ")
        tx = await self.debit(driver_id, amount, f"Penalty: {reason}", booking_id)
        penalty = await self.drivers.add_penalty(
            PenaltyModel(
                driver_id=driver_id,
                booking_id=booking_id,
                type=penalty_type,
                amount=amount,
                reason=reason,
                status=PenaltyStatus.PAID,
                applied_by=applied_by,
                applied_by_role=applied_by_role,
                transaction_id=tx.id,
                created_at=_now(),
            )
        )
        logger.info("Penalty %s of %d posted to driver %s", penalty_type.value, amount, driver_id)
        return penalty

    async def _append(
        self,
        driver_id: int,
        tx_type: TransactionType,
        amount: int,
        description: str,
        booking_id: Optional[int],
    ) -> WalletTransactionModel:
        return await self.drivers.add_transaction(
            WalletTransactionModel(
                driver_id=driver_id,
                type=tx_type,
                amount=amount,
                description=description,
                booking_id=booking_id,
                created_at=_now(),
            )
        )

    async def _require(self, driver_id: int) -> DriverModel:
        driver = await self.drivers.get_by_id(driver_id)
        if not driver:
            raise NotFound(f"Driver {driver_id} not found")
        return driver


def _now() -> datetime:
    return datetime.now(timezone.utc)
