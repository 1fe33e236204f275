"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``riders``                  -- passengers requesting trips
* ``drivers``                 -- vehicle owners, with the cached wallet balance
* ``vehicles``                -- availability, approval, pricing profile, statistics
* ``bookings``                -- trip requests with trip / cancellation / refund records
* ``booking_status_history``  -- append-only log, ``seq`` unique per booking
* ``wallet_transactions``     -- append-only driver ledger
* ``withdrawals``             -- pending-approval withdrawal queue (funds already debited)
* ``penalties``               -- driver penalties posted to the ledger

Indexes
-------
* **Unique** on ``bookings.booking_number``, ``vehicles.registration_number``
  and ``(booking_id, seq)`` on the history log.
* **B-Tree** on ``status`` / ``refund_status`` / ``booking_status`` and the
  foreign keys used by the state machine and the refund reconciler.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from hailing.domain.enums import (
    ActorRole,
    ApprovalStatus,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    RefundMethod,
    RefundStatus,
    TransactionType,
    TripType,
    VehicleBookingStatus,
    VehicleCategory,
    WithdrawalStatus,
)
from hailing.domain.penalties import PenaltyStatus, PenaltyType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Store enum *values* (``"in_trip"``), not member names."""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class RiderModel(Base):
    __tablename__ = "riders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(20), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(20), unique=True, nullable=False)
    # Cached; always equals the signed sum of wallet_transactions.
    wallet_balance = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    vehicles = relationship("VehicleModel", back_populates="driver", lazy="raise")


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    registration_number = Column(String(20), unique=True, nullable=False)
    brand = Column(String(60), nullable=False, default="")
    seating_capacity = Column(Integer, default=4, nullable=False)

    # Availability (owned by VehicleResourceTracker)
    is_available = Column(Boolean, default=True, nullable=False)
    booked = Column(Boolean, default=False, nullable=False)
    current_booking_id = Column(Integer, nullable=True)
    booking_status = Column(
        _enum(VehicleBookingStatus, "vehiclebookingstatus"),
        default=VehicleBookingStatus.AVAILABLE,
        nullable=False,
    )
    last_status_update = Column(DateTime(timezone=True), default=_utcnow)
    maintenance_reason = Column(String(255), nullable=True)

    # Approval (admin)
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    approval_status = Column(
        _enum(ApprovalStatus, "approvalstatus"),
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    admin_notes = Column(Text, nullable=True)
    rejection_reason = Column(String(255), nullable=True)

    # Pricing profile
    category = Column(_enum(VehicleCategory, "vehiclecategory"), nullable=False)
    auto_rate_one_way = Column(Float, nullable=True)
    auto_rate_return = Column(Float, nullable=True)
    # {"one-way": {"50km": 20, ...}, "return": {...}}
    distance_pricing = Column(JSON, nullable=True)

    # Statistics
    total_trips = Column(Integer, default=0, nullable=False)
    total_distance_km = Column(Float, default=0.0, nullable=False)
    total_earnings = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)

    driver = relationship("DriverModel", back_populates="vehicles", lazy="raise")

    __table_args__ = (
        Index("idx_vehicles_driver", "driver_id"),
        Index("idx_vehicles_booking_status", "booking_status"),
        # A vehicle holds a booking exactly while booked / in trip.
        CheckConstraint(
            "(current_booking_id IS NOT NULL) = "
            "(booking_status IN ('booked', 'in_trip'))",
            name="ck_vehicles_current_booking",
        ),
    )


# Database-level backstop: one active booking per vehicle.
_ACTIVE_PREDICATE = "status IN ('accepted', 'started')"


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_number = Column(String(20), unique=True, nullable=False)
    rider_id = Column(Integer, ForeignKey("riders.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)

    # Trip details
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_address = Column(String(255), nullable=False, default="")
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)
    destination_address = Column(String(255), nullable=False, default="")
    trip_date = Column(String(10), nullable=False)
    trip_time = Column(String(8), nullable=False)
    return_date = Column(String(10), nullable=True)
    passengers = Column(Integer, default=1, nullable=False)
    distance_km = Column(Float, nullable=False)
    duration_min = Column(Integer, default=0, nullable=False)
    trip_type = Column(_enum(TripType, "triptype"), default=TripType.ONE_WAY, nullable=False)

    # Pricing snapshot -- immutable once set
    fare = Column(Integer, nullable=False)

    # Payment
    payment_method = Column(_enum(PaymentMethod, "paymentmethod"), nullable=False)
    payment_status = Column(
        _enum(PaymentStatus, "paymentstatus"),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    payment_reference = Column(String(64), nullable=True)
    payment_amount = Column(Integer, nullable=True)
    payment_completed_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(
        _enum(BookingStatus, "bookingstatus"),
        default=BookingStatus.PENDING,
        nullable=False,
    )

    # Trip execution record
    trip_start_time = Column(DateTime(timezone=True), nullable=True)
    trip_end_time = Column(DateTime(timezone=True), nullable=True)
    actual_distance_km = Column(Float, nullable=True)
    actual_duration_min = Column(Integer, nullable=True)
    actual_fare = Column(Integer, nullable=True)
    driver_notes = Column(Text, nullable=True)

    # Cancellation record + refund sub-state machine
    cancelled_by_id = Column(Integer, nullable=True)
    cancelled_by_role = Column(_enum(ActorRole, "actorrole"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(String(255), nullable=True)
    refund_amount = Column(Integer, default=0, nullable=False)
    refund_status = Column(
        _enum(RefundStatus, "refundstatus"),
        default=RefundStatus.NONE,
        nullable=False,
    )
    refund_method = Column(_enum(RefundMethod, "refundmethod"), nullable=True)
    refund_reference = Column(String(64), nullable=True)
    refund_notes = Column(Text, nullable=True)
    refund_initiated_at = Column(DateTime(timezone=True), nullable=True)
    refund_completed_at = Column(DateTime(timezone=True), nullable=True)

    special_requests = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    history = relationship(
        "BookingStatusHistoryModel",
        order_by="BookingStatusHistoryModel.seq",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_rider", "rider_id"),
        Index("idx_bookings_driver", "driver_id"),
        Index("idx_bookings_vehicle", "vehicle_id"),
        Index("idx_bookings_refund_status", "refund_status"),
        Index(
            "uq_bookings_active_vehicle",
            "vehicle_id",
            unique=True,
            postgresql_where=text(_ACTIVE_PREDICATE),
            sqlite_where=text(_ACTIVE_PREDICATE),
        ),
    )


class BookingStatusHistoryModel(Base):
    __tablename__ = "booking_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    seq = Column(Integer, nullable=False)
    status = Column(_enum(BookingStatus, "bookingstatus"), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    actor_id = Column(Integer, nullable=True)
    actor_role = Column(_enum(ActorRole, "actorrole"), nullable=True)
    reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("booking_id", "seq", name="uq_history_booking_seq"),
    )


class WalletTransactionModel(Base):
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    type = Column(_enum(TransactionType, "transactiontype"), nullable=False)
    amount = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_wallet_tx_driver", "driver_id"),)


class WithdrawalModel(Base):
    __tablename__ = "withdrawals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    amount = Column(Integer, nullable=False)
    bank_reference = Column(String(120), nullable=True)
    status = Column(
        _enum(WithdrawalStatus, "withdrawalstatus"),
        default=WithdrawalStatus.PENDING,
        nullable=False,
    )
    transaction_id = Column(Integer, ForeignKey("wallet_transactions.id"), nullable=False)
    requested_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_withdrawals_status", "status"),)


class PenaltyModel(Base):
    __tablename__ = "penalties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    type = Column(_enum(PenaltyType, "penaltytype"), nullable=False)
    amount = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    status = Column(
        _enum(PenaltyStatus, "penaltystatus"),
        default=PenaltyStatus.PAID,
        nullable=False,
    )
    applied_by = Column(Integer, nullable=True)
    applied_by_role = Column(_enum(ActorRole, "actorrole"), nullable=True)
    transaction_id = Column(Integer, ForeignKey("wallet_transactions.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_penalties_driver", "driver_id"),)
