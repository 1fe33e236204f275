"""
FastAPI application factory.

* Registers routes for bookings, fares, vehicles, driver wallets and admin.
* Starts / stops the background refund reconciler via lifespan events.
* Renders every ``DomainError`` as ``{"error", "detail", "current_status"}``.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hailing.api.middleware import limiter
from hailing.api.routes import admin, bookings, drivers, fares, vehicles
from hailing.domain.errors import DomainError
from hailing.infrastructure.redis_client import close_redis
from hailing.workers import refund_reconciler as _reconciler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the refund reconciler on startup; stop it and drop Redis connections on shutdown."""
    await _reconciler.start_reconcile_loop()
    yield
    await _reconciler.stop_reconcile_loop()
    await close_redis()


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content={
            "error": exc.kind,
            "detail": exc.message,
            "current_status": exc.current_status,
        },
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Vehicle Hailing Booking API",
        description=(
            "Booking lifecycle and vehicle allocation: riders book trips, "
            "drivers accept, start and complete them, and admins manage "
            "approvals, penalties and refunds.  Vehicle reservation and "
            "every status change are atomic under concurrent requests."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(DomainError, domain_error_handler)

    # Routers
    for module in (bookings, fares, vehicles, drivers, admin):
        app.include_router(module.router, prefix="/api/v1")

    return app
