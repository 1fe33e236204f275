"""
Domain value objects and lifecycle rules.

Patterns used
-------------
- **State Pattern** on bookings: ``check_transition`` is the single place
  the transition table (``BOOKING_TRANSITIONS``) is enforced, including
  which actor role may request each move.
- The refund sub-state machine (none -> pending -> initiated -> completed)
  is enforced the same way by ``check_refund_step``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import (
    BOOKING_TRANSITIONS,
    REFUND_TRANSITIONS,
    ActorRole,
    BookingStatus,
    RefundStatus,
    TripType,
)
from .errors import AlreadyRefunded, InvalidTransition


def check_transition(
    current: BookingStatus, target: BookingStatus, role: ActorRole
) -> None:
    """Raise ``InvalidTransition`` unless *role* may move *current* -> *target*."""
    allowed_roles = BOOKING_TRANSITIONS.get((current, target))
    if not allowed_roles or role not in allowed_roles:
        raise InvalidTransition(current.value, target.value)


def allowed_targets(current: BookingStatus, role: ActorRole) -> set[BookingStatus]:
    return {
        target
        for (source, target), roles in BOOKING_TRANSITIONS.items()
        if source == current and role in roles
    }


def is_terminal(status: BookingStatus) -> bool:
    return not any(source == status for source, _ in BOOKING_TRANSITIONS)


def check_refund_step(current: RefundStatus, target: RefundStatus) -> None:
    """One-directional refund progression; a completed refund is final."""
    if current == RefundStatus.COMPLETED:
        raise AlreadyRefunded("Refund has already been completed")
    if target not in REFUND_TRANSITIONS.get(current, set()):
        raise InvalidTransition(current.value, target.value, subject="refund")


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    address: str = ""


@dataclass(frozen=True)
class TripDetails:
    pickup: Location
    destination: Location
    date: str
    time: str
    trip_type: TripType = TripType.ONE_WAY
    distance_km: Optional[float] = None
    duration_min: int = 0
    passengers: int = 1
    return_date: Optional[str] = None


@dataclass(frozen=True)
class TransitionPayload:
    """Optional data accompanying a transition request."""

    reason: Optional[str] = None
    notes: Optional[str] = None
    actual_distance_km: Optional[float] = None
    actual_duration_min: Optional[int] = None
    actual_fare: Optional[int] = None
    penalty_amount: Optional[int] = None
