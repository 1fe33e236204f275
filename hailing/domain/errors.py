"""
Domain error taxonomy.

Every error carries a stable ``kind`` (rendered to API callers) and the
HTTP status the API layer maps it to.  None of them are retried
automatically.
"""

from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    kind = "domain_error"
    http_status = 400

    def __init__(self, message: str, *, current_status: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.current_status = current_status


class NotFound(DomainError):
    """Booking / vehicle / driver missing or not owned by the actor."""

    kind = "not_found"
    http_status = 404


class InvalidTransition(DomainError):
    """Requested status change is not in the transition table."""

    kind = "invalid_transition"
    http_status = 409

    def __init__(self, current: str, requested: str, *, subject: str = "booking"):
        super().__init__(
            f"Cannot move {subject} from {current} to {requested}",
            current_status=current,
        )
        self.current = current
        self.requested = requested


class VehicleUnavailable(DomainError):
    """Lost a reservation race, or the vehicle is not bookable at all."""

    kind = "vehicle_unavailable"
    http_status = 409


class VehicleBusy(DomainError):
    """Availability override refused while the vehicle serves a booking."""

    kind = "vehicle_busy"
    http_status = 409


class VehicleAlreadyRegistered(DomainError):
    kind = "vehicle_already_registered"
    http_status = 409


class PricingUnavailable(DomainError):
    """No rate configured for the trip type / distance tier."""

    kind = "pricing_unavailable"
    http_status = 422


class InsufficientBalance(DomainError):
    kind = "insufficient_balance"
    http_status = 409


class WithdrawalBelowMinimum(DomainError):
    kind = "withdrawal_below_minimum"
    http_status = 422


class AlreadyRefunded(DomainError):
    kind = "already_refunded"
    http_status = 409


class InvalidTripDetails(DomainError):
    kind = "invalid_trip_details"
    http_status = 422
