"""
Cancellation & Refund Workflow
==============================

Refund sub-state machine on the booking's cancellation record::

    none ──► pending ──► initiated ──► completed
      └─────────────────────────────────┘   (nothing was paid)

Every step is a compare-and-set on ``refund_status``; a step that loses
the race (or was already taken) never half-applies.

Patterns used
-------------
- **Two-phase external call**: ``initiate_refund`` commits
  ``initiated`` *before* calling the gateway, and ``complete_refund`` is
  a separate idempotent step.  A crash between the two leaves a row the
  refund reconciler picks up again.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hailing.domain.entities import check_refund_step
from hailing.domain.enums import (
    ActorRole,
    BookingStatus,
    PaymentStatus,
    RefundMethod,
    RefundStatus,
)
from hailing.domain.errors import AlreadyRefunded, InvalidTransition, NotFound
from hailing.domain.penalties import PenaltyType
from hailing.infrastructure.database import atomic
from hailing.infrastructure.models import BookingModel, PenaltyModel
from hailing.infrastructure.payment_gateway import PaymentGateway, PaymentGatewayError
from hailing.infrastructure.repositories import BookingRepository
from hailing.services.ledger import EarningsLedger

logger = logging.getLogger(__name__)


class CancellationRefundWorkflow:
    def __init__(self, session: AsyncSession, gateway: Optional[PaymentGateway] = None):
        self.session = session
        self.gateway = gateway
        self.bookings = BookingRepository(session)

    # ── Inside the cancel transition (caller commits) ─────────────────

    def open_refund(
        self,
        booking: BookingModel,
        actor_id: int,
        actor_role: ActorRole,
        reason: Optional[str],
    ) -> None:
        """Record the cancellation and size the refund.

        Runs inside the cancel transition, whose status compare-and-set
        guards these writes.
        """
        now = _now()
        booking.cancelled_by_id = actor_id
        booking.cancelled_by_role = actor_role
        booking.cancelled_at = now
        booking.cancel_reason = reason or ""

        if booking.payment_status != PaymentStatus.COMPLETED:
            check_refund_step(booking.refund_status, RefundStatus.COMPLETED)
            booking.refund_amount = 0
            booking.refund_status = RefundStatus.COMPLETED
            booking.refund_completed_at = now
            return

        check_refund_step(booking.refund_status, RefundStatus.PENDING)
        booking.refund_amount = (
            booking.payment_amount if booking.payment_amount is not None else booking.fare
        )
        booking.refund_status = RefundStatus.PENDING

    async def post_driver_penalty(
        self, booking: BookingModel, driver_id: int, amount: int
    ) -> PenaltyModel:
        """Driver cancelled after accepting; the rider's refund is unaffected."""
        return await EarningsLedger(self.session).apply_penalty(
            driver_id,
            PenaltyType.CANCELLATION_AFTER_ACCEPTANCE,
            amount=amount,
            reason=f"Cancelled booking {booking.booking_number} after acceptance",
            booking_id=booking.id,
            applied_by=driver_id,
            applied_by_role=ActorRole.DRIVER,
        )

    # ── Standalone operations (each commits) ──────────────────────────

    async def record_payment(
        self,
        booking_number: str,
        transaction_id: str,
        amount: Optional[int] = None,
    ) -> BookingModel:
        async with atomic(self.session):
            booking = await self._require(booking_number)
            if booking.payment_status == PaymentStatus.COMPLETED:
                return booking
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidTransition(
                    booking.status.value, PaymentStatus.COMPLETED.value, subject="payment"
                )
            captured = await self.bookings.conditional_update(
                booking,
                [
                    BookingModel.payment_status != PaymentStatus.COMPLETED,
                    BookingModel.status != BookingStatus.CANCELLED,
                ],
                {
                    "payment_status": PaymentStatus.COMPLETED,
                    "payment_reference": transaction_id,
                    "payment_amount": amount if amount is not None else booking.fare,
                    "payment_completed_at": _now(),
                },
            )
            if not captured:
                booking = await self._require(booking_number)
                if booking.payment_status != PaymentStatus.COMPLETED:
                    raise InvalidTransition(
                        booking.status.value,
                        PaymentStatus.COMPLETED.value,
                        subject="payment",
                    )
        logger.info("Payment %s recorded for booking %s", transaction_id, booking_number)
        return booking

    async def adjust_refund(
        self, booking_number: str, deduction: int, reason: str = ""
    ) -> BookingModel:
        """Admin partial penalty on a pending refund; floors at zero."""
        async with atomic(self.session):
            booking = await self._require(booking_number)
            _expect_refund(booking.refund_status, RefundStatus.PENDING, RefundStatus.PENDING)
            adjusted = max(0, booking.refund_amount - deduction)
            notes = f"Deducted {deduction}: {reason}" if reason else f"Deducted {deduction}"
            if not await self.bookings.compare_and_set_refund(
                booking,
                RefundStatus.PENDING,
                RefundStatus.PENDING,
                refund_amount=adjusted,
                refund_notes=notes,
            ):
                await self._lost(booking, RefundStatus.PENDING, RefundStatus.PENDING)
        logger.info("Refund for %s adjusted to %d", booking_number, adjusted)
        return booking

    async def initiate_refund(
        self, booking_number: str, method: RefundMethod
    ) -> BookingModel:
        async with atomic(self.session):
            booking = await self._require(booking_number)
            _expect_refund(booking.refund_status, RefundStatus.PENDING, RefundStatus.INITIATED)
            if not await self.bookings.compare_and_set_refund(
                booking,
                RefundStatus.PENDING,
                RefundStatus.INITIATED,
                refund_method=method,
                refund_initiated_at=_now(),
            ):
                await self._lost(booking, RefundStatus.PENDING, RefundStatus.INITIATED)
        logger.info("Refund for %s initiated (%s)", booking_number, method.value)

        if method == RefundMethod.GATEWAY:
            await self.issue_gateway_refund(booking)
        return booking

    async def issue_gateway_refund(self, booking: BookingModel) -> Optional[str]:
        """Ask the gateway to pay out; store its reference.

        A failure is logged and the refund stays ``initiated``.
        """
        if self.gateway is None or not booking.payment_reference:
            logger.warning(
                "No gateway or payment reference for %s; refund left initiated",
                booking.booking_number,
            )
            return None
        try:
            reference = await self.gateway.refund(
                booking.payment_reference,
                booking.refund_amount,
                receipt=booking.booking_number,
            )
        except PaymentGatewayError:
            logger.exception("Gateway refund for %s failed", booking.booking_number)
            return None

        async with atomic(self.session):
            await self.bookings.conditional_update(
                booking,
                [
                    BookingModel.refund_status == RefundStatus.INITIATED,
                    BookingModel.refund_reference.is_(None),
                ],
                {"refund_reference": reference},
            )
        return reference

    async def complete_refund(
        self, booking_number: str, reference: Optional[str] = None
    ) -> BookingModel:
        async with atomic(self.session):
            booking = await self._require(booking_number)
            _expect_refund(booking.refund_status, RefundStatus.INITIATED, RefundStatus.COMPLETED)
            values = {"refund_completed_at": _now()}
            if reference:
                values["refund_reference"] = reference
            if not await self.bookings.compare_and_set_refund(
                booking, RefundStatus.INITIATED, RefundStatus.COMPLETED, **values
            ):
                await self._lost(booking, RefundStatus.INITIATED, RefundStatus.COMPLETED)
        logger.info("Refund for %s completed", booking_number)
        return booking

    # ── Helpers ───────────────────────────────────────────────────────

    async def _require(self, booking_number: str) -> BookingModel:
        booking = await self.bookings.get_by_number(booking_number)
        if not booking:
            raise NotFound(f"Booking {booking_number} not found")
        return booking

    async def _lost(
        self, booking: BookingModel, expected: RefundStatus, target: RefundStatus
    ) -> None:
        """Raise for a compare-and-set beaten by a concurrent writer."""
        fresh = await self._require(booking.booking_number)
        _expect_refund(fresh.refund_status, expected, target)
        raise InvalidTransition(fresh.refund_status.value, target.value, subject="refund")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _expect_refund(
    current: RefundStatus, expected: RefundStatus, target: RefundStatus
) -> None:
    if current == RefundStatus.COMPLETED:
        raise AlreadyRefunded("Refund has already been completed")
    if current != expected:
        raise InvalidTransition(current.value, target.value, subject="refund")
