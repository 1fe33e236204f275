"""
Background Refund Reconciler
============================

Runs every ``REFUND_RECONCILE_INTERVAL_SECONDS`` (default 30 s).

``initiate_refund`` commits ``initiated`` before it calls the payment
gateway, so a refund can be left half-way by a crash or a gateway
outage.  This loop drives such refunds to ``completed``.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance polls the gateway
  per cycle across multiple API processes.
* ``complete_refund`` is a compare-and-set, so a refund completed by an
  admin in the meantime surfaces as ``AlreadyRefunded`` and is skipped.

Algorithm per cycle
-------------------
1. Fetch bookings whose refund is ``initiated`` via the gateway.
2. No gateway reference yet: re-issue the refund (the booking number is
   the idempotency key, so the gateway never pays twice).
3. Reference present: poll its status and complete the refund once the
   gateway reports it processed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from hailing.config import settings
from hailing.domain.errors import AlreadyRefunded
from hailing.infrastructure.database import async_session_factory
from hailing.infrastructure.locks import DistributedLock
from hailing.infrastructure.payment_gateway import (
    REFUND_PROCESSED,
    HttpPaymentGateway,
    PaymentGateway,
    PaymentGatewayError,
)
from hailing.infrastructure.redis_client import get_redis
from hailing.infrastructure.repositories import BookingRepository
from hailing.services.refunds import CancellationRefundWorkflow

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_reconcile_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Refund reconciler started (interval=%ds)",
        settings.refund_reconcile_interval_seconds,
    )


async def stop_reconcile_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Refund reconciler stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    assert _stop_event is not None
    gateway = HttpPaymentGateway()
    try:
        while not _stop_event.is_set():
            try:
                await run_reconcile_cycle(gateway)
            except Exception:
                logger.exception("Unhandled error in refund reconcile cycle")
            try:
                await asyncio.wait_for(
                    _stop_event.wait(),
                    timeout=settings.refund_reconcile_interval_seconds,
                )
                break
            except asyncio.TimeoutError:
                pass
    finally:
        await gateway.aclose()


async def run_reconcile_cycle(
    gateway: PaymentGateway, session_factory=async_session_factory
) -> int:
    """Execute one cycle.  Returns the number of refunds completed."""
    redis = await get_redis()
    lock = DistributedLock(redis, "refund_reconciler", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping cycle")
        return 0

    completed = 0
    try:
        async with session_factory() as session:
            workflow = CancellationRefundWorkflow(session, gateway)
            stuck = await BookingRepository(session).get_initiated_refunds()
            await session.commit()

            for booking in stuck:
                if not booking.refund_reference:
                    await workflow.issue_gateway_refund(booking)
                    continue

                state = await _poll(gateway, booking.refund_reference)
                if state != REFUND_PROCESSED:
                    continue
                try:
                    await workflow.complete_refund(
                        booking.booking_number, booking.refund_reference
                    )
                    completed += 1
                except AlreadyRefunded:
                    pass

            if completed:
                logger.info("Refund reconcile cycle: %d refunds completed", completed)
    except Exception:
        logger.exception("Error in refund reconcile cycle")
    finally:
        await lock.release()

    return completed


async def _poll(gateway: PaymentGateway, reference: str) -> Optional[str]:
    try:
        return await gateway.refund_status(reference)
    except PaymentGatewayError:
        logger.warning("Could not poll refund %s", reference, exc_info=True)
        return None
