"""FastAPI dependency injection helpers."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from hailing.domain.enums import ActorRole
from hailing.infrastructure.database import async_session_factory
from hailing.infrastructure.notifications import StatusNotifier
from hailing.infrastructure.payment_gateway import HttpPaymentGateway, PaymentGateway
from hailing.infrastructure.redis_client import get_redis


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@dataclass(frozen=True)
class Actor:
    id: int
    role: ActorRole


async def get_actor(
    x_actor_id: int = Header(..., description="Authenticated user id"),
    x_actor_role: ActorRole = Header(..., description="rider | driver | admin"),
) -> Actor:
    """Identity injected by the upstream auth layer."""
    return Actor(id=x_actor_id, role=x_actor_role)


def require_role(*roles: ActorRole):
    async def _check(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(status_code=403, detail="Not allowed for this role")
        return actor

    return _check


async def get_notifier() -> Optional[StatusNotifier]:
    return StatusNotifier(await get_redis())


async def get_payment_gateway() -> PaymentGateway:  # type: ignore[misc]
    gateway = HttpPaymentGateway()
    try:
        yield gateway
    finally:
        await gateway.aclose()
