"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ActorRole(str, enum.Enum):
    RIDER = "rider"
    DRIVER = "driver"
    ADMIN = "admin"


# State machine: (current, target) -> roles allowed to request the move.
# Anything missing from this table is an invalid transition.
BOOKING_TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[ActorRole]] = {
    (BookingStatus.PENDING, BookingStatus.ACCEPTED): frozenset({ActorRole.DRIVER}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset(
        {ActorRole.RIDER, ActorRole.DRIVER, ActorRole.ADMIN}
    ),
    (BookingStatus.ACCEPTED, BookingStatus.STARTED): frozenset({ActorRole.DRIVER}),
    (BookingStatus.ACCEPTED, BookingStatus.CANCELLED): frozenset(
        {ActorRole.RIDER, ActorRole.DRIVER, ActorRole.ADMIN}
    ),
    (BookingStatus.STARTED, BookingStatus.COMPLETED): frozenset({ActorRole.DRIVER}),
}

ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.ACCEPTED, BookingStatus.STARTED})


class RefundStatus(str, enum.Enum):
    NONE = "none"
    PENDING = "pending"
    INITIATED = "initiated"
    COMPLETED = "completed"


# NONE -> COMPLETED is the "nothing was paid" shortcut taken at cancellation.
REFUND_TRANSITIONS: dict[RefundStatus, set[RefundStatus]] = {
    RefundStatus.NONE: {RefundStatus.PENDING, RefundStatus.COMPLETED},
    RefundStatus.PENDING: {RefundStatus.INITIATED},
    RefundStatus.INITIATED: {RefundStatus.COMPLETED},
    RefundStatus.COMPLETED: set(),
}


class RefundMethod(str, enum.Enum):
    GATEWAY = "gateway"
    MANUAL = "manual"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    UPI = "upi"
    NETBANKING = "netbanking"
    CARD = "card"
    GATEWAY = "gateway"


class TripType(str, enum.Enum):
    ONE_WAY = "one-way"
    RETURN = "return"


class VehicleCategory(str, enum.Enum):
    AUTO = "auto"
    CAR = "car"
    BUS = "bus"


class VehicleBookingStatus(str, enum.Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    IN_TRIP = "in_trip"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"


BUSY_VEHICLE_STATUSES = frozenset(
    {VehicleBookingStatus.BOOKED, VehicleBookingStatus.IN_TRIP}
)


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class WithdrawalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
