"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.

Reads use ``populate_existing`` so an object already in the identity map
is refreshed from the database instead of served stale.  Writes that
guard an invariant are single conditional ``UPDATE`` statements
(compare-and-set); the affected ``rowcount`` tells the caller whether it
won.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from .models import (
    BookingModel,
    DriverModel,
    PenaltyModel,
    RiderModel,
    VehicleModel,
    WalletTransactionModel,
    WithdrawalModel,
)
from hailing.domain.enums import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    RefundMethod,
    RefundStatus,
    TransactionType,
)


async def _cas(session: AsyncSession, model, where: list, values: dict[str, Any]) -> bool:
    result = await session.execute(
        update(model)
        .where(*where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _cas_object(session: AsyncSession, obj, where: list, values: dict[str, Any]) -> bool:
    """Conditional UPDATE of one loaded row; on success mirror *values* onto *obj*."""
    model = type(obj)
    won = await _cas(session, model, [model.id == obj.id, *where], values)
    if won:
        for key, value in values.items():
            set_committed_value(obj, key, value)
    return won


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_number(self, booking_number: str) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.booking_number == booking_number)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(
            BookingModel, booking_id, populate_existing=True
        )

    async def compare_and_set_status(
        self, booking: BookingModel, target: BookingStatus, *guards
    ) -> bool:
        """``SET status = target WHERE status = <status booking was loaded with>``."""
        return await _cas_object(
            self.session,
            booking,
            [BookingModel.status == booking.status, *guards],
            {"status": target, "updated_at": _now()},
        )

    async def compare_and_set_refund(
        self,
        booking: BookingModel,
        expected: RefundStatus,
        target: RefundStatus,
        **values: Any,
    ) -> bool:
        return await _cas_object(
            self.session,
            booking,
            [BookingModel.refund_status == expected],
            {"refund_status": target, **values},
        )

    async def conditional_update(
        self, booking: BookingModel, where: list, values: dict[str, Any]
    ) -> bool:
        return await _cas_object(self.session, booking, where, values)

    async def current_status(self, booking_id: int) -> Optional[BookingStatus]:
        result = await self.session.execute(
            select(BookingModel.status).where(BookingModel.id == booking_id)
        )
        return result.scalar_one_or_none()

    async def active_for_vehicle(self, vehicle_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(
                BookingModel.vehicle_id == vehicle_id,
                BookingModel.status.in_(list(ACTIVE_BOOKING_STATUSES)),
            )
        )
        return list(result.scalars().all())

    async def get_initiated_refunds(
        self, method: RefundMethod = RefundMethod.GATEWAY
    ) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.refund_status == RefundStatus.INITIATED,
                BookingModel.refund_method == method,
            )
            .order_by(BookingModel.refund_initiated_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, vehicle: VehicleModel) -> VehicleModel:
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def get_by_id(self, vehicle_id: int) -> Optional[VehicleModel]:
        return await self.session.get(
            VehicleModel, vehicle_id, populate_existing=True
        )

    async def get_by_registration(self, registration_number: str) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).where(
                VehicleModel.registration_number == registration_number
            )
        )
        return result.scalar_one_or_none()

    async def conditional_update(
        self, vehicle_id: int, where: list, values: dict[str, Any]
    ) -> bool:
        return await _cas(
            self.session,
            VehicleModel,
            [VehicleModel.id == vehicle_id, *where],
            {**values, "last_status_update": _now()},
        )

    async def add_trip_statistics(
        self, vehicle_id: int, distance_km: float, earnings: int
    ) -> None:
        await self.session.execute(
            update(VehicleModel)
            .where(VehicleModel.id == vehicle_id)
            .values(
                total_trips=VehicleModel.total_trips + 1,
                total_distance_km=VehicleModel.total_distance_km + distance_km,
                total_earnings=VehicleModel.total_earnings + earnings,
            )
            .execution_options(synchronize_session=False)
        )


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id, populate_existing=True)

    async def increment_balance(self, driver_id: int, amount: int) -> bool:
        return await _cas(
            self.session,
            DriverModel,
            [DriverModel.id == driver_id],
            {"wallet_balance": DriverModel.wallet_balance + amount},
        )

    async def decrement_balance_if_sufficient(self, driver_id: int, amount: int) -> bool:
        """``SET balance = balance - amount WHERE balance >= amount``."""
        return await _cas(
            self.session,
            DriverModel,
            [DriverModel.id == driver_id, DriverModel.wallet_balance >= amount],
            {"wallet_balance": DriverModel.wallet_balance - amount},
        )

    async def add_transaction(self, tx: WalletTransactionModel) -> WalletTransactionModel:
        self.session.add(tx)
        await self.session.flush()
        return tx

    async def get_transactions(self, driver_id: int) -> list[WalletTransactionModel]:
        result = await self.session.execute(
            select(WalletTransactionModel)
            .where(WalletTransactionModel.driver_id == driver_id)
            .order_by(WalletTransactionModel.id)
        )
        return list(result.scalars().all())

    async def transaction_sum(self, driver_id: int) -> int:
        signed = case(
            (
                WalletTransactionModel.type == TransactionType.CREDIT,
                WalletTransactionModel.amount,
            ),
            else_=-WalletTransactionModel.amount,
        )
        result = await self.session.execute(
            select(func.coalesce(func.sum(signed), 0)).where(
                WalletTransactionModel.driver_id == driver_id
            )
        )
        return int(result.scalar() or 0)

    async def add_withdrawal(self, withdrawal: WithdrawalModel) -> WithdrawalModel:
        self.session.add(withdrawal)
        await self.session.flush()
        return withdrawal

    async def get_withdrawals(self, driver_id: int) -> list[WithdrawalModel]:
        result = await self.session.execute(
            select(WithdrawalModel)
            .where(WithdrawalModel.driver_id == driver_id)
            .order_by(WithdrawalModel.id)
        )
        return list(result.scalars().all())

    async def add_penalty(self, penalty: PenaltyModel) -> PenaltyModel:
        self.session.add(penalty)
        await self.session.flush()
        return penalty

    async def get_penalties(self, driver_id: int) -> list[PenaltyModel]:
        result = await self.session.execute(
            select(PenaltyModel)
            .where(PenaltyModel.driver_id == driver_id)
            .order_by(PenaltyModel.id)
        )
        return list(result.scalars().all())


class RiderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, rider_id: int) -> Optional[RiderModel]:
        return await self.session.get(RiderModel, rider_id)
