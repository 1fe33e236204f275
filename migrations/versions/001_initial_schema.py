"""Initial schema: riders, drivers, vehicles, bookings, history, wallet, penalties.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name, *values):
    return postgresql.ENUM(*values, name=name, create_type=False)


booking_status = _enum(
    "bookingstatus", "pending", "accepted", "started", "completed", "cancelled"
)
actor_role = _enum("actorrole", "rider", "driver", "admin")
refund_status = _enum("refundstatus", "none", "pending", "initiated", "completed")
refund_method = _enum("refundmethod", "gateway", "manual")
payment_status = _enum("paymentstatus", "pending", "completed", "failed")
payment_method = _enum("paymentmethod", "cash", "upi", "netbanking", "card", "gateway")
trip_type = _enum("triptype", "one-way", "return")
vehicle_category = _enum("vehiclecategory", "auto", "car", "bus")
vehicle_booking_status = _enum(
    "vehiclebookingstatus", "available", "booked", "in_trip", "maintenance", "offline"
)
approval_status = _enum("approvalstatus", "pending", "approved", "rejected")
transaction_type = _enum("transactiontype", "credit", "debit")
withdrawal_status = _enum("withdrawalstatus", "pending", "approved", "rejected")
penalty_type = _enum(
    "penaltytype",
    "cancellation_after_acceptance",
    "cancellation_12h_before",
    "cancellation_12h_within",
    "cancellation_3h_within",
    "wrong_car_assigned",
    "wrong_driver_assigned",
    "cng_car_no_carrier",
    "journey_not_completed_in_app",
    "car_not_clean",
    "car_not_good_condition",
    "driver_misbehaved",
)
penalty_status = _enum("penaltystatus", "active", "waived", "paid")

ALL_ENUMS = (
    booking_status,
    actor_role,
    refund_status,
    refund_method,
    payment_status,
    payment_method,
    trip_type,
    vehicle_category,
    vehicle_booking_status,
    approval_status,
    transaction_type,
    withdrawal_status,
    penalty_type,
    penalty_status,
)


def _created_at():
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
    )


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    # ── riders / drivers ──────────────────────────────────────────────
    op.create_table(
        "riders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(20), unique=True, nullable=False),
        _created_at(),
    )
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(20), unique=True, nullable=False),
        sa.Column("wallet_balance", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
    )

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("registration_number", sa.String(20), unique=True, nullable=False),
        sa.Column("brand", sa.String(60), nullable=False, server_default=""),
        sa.Column("seating_capacity", sa.Integer, nullable=False, server_default="4"),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("booked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("current_booking_id", sa.Integer, nullable=True),
        sa.Column(
            "booking_status",
            vehicle_booking_status,
            nullable=False,
            server_default="available",
        ),
        sa.Column(
            "last_status_update",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("maintenance_reason", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "approval_status", approval_status, nullable=False, server_default="pending"
        ),
        sa.Column("approved_by", sa.Integer, nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text, nullable=True),
        sa.Column("rejection_reason", sa.String(255), nullable=True),
        sa.Column("category", vehicle_category, nullable=False),
        sa.Column("auto_rate_one_way", sa.Float, nullable=True),
        sa.Column("auto_rate_return", sa.Float, nullable=True),
        sa.Column("distance_pricing", sa.JSON, nullable=True),
        sa.Column("total_trips", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_distance_km", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_earnings", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
        # A vehicle holds a booking exactly while booked / in trip.
        sa.CheckConstraint(
            "(current_booking_id IS NOT NULL) = "
            "(booking_status IN ('booked', 'in_trip'))",
            name="ck_vehicles_current_booking",
        ),
    )
    op.create_index("idx_vehicles_driver", "vehicles", ["driver_id"])
    op.create_index("idx_vehicles_booking_status", "vehicles", ["booking_status"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_number", sa.String(20), unique=True, nullable=False),
        sa.Column("rider_id", sa.Integer, sa.ForeignKey("riders.id"), nullable=False),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=False, server_default=""),
        sa.Column("destination_lat", sa.Float, nullable=False),
        sa.Column("destination_lng", sa.Float, nullable=False),
        sa.Column("destination_address", sa.String(255), nullable=False, server_default=""),
        sa.Column("trip_date", sa.String(10), nullable=False),
        sa.Column("trip_time", sa.String(8), nullable=False),
        sa.Column("return_date", sa.String(10), nullable=True),
        sa.Column("passengers", sa.Integer, nullable=False, server_default="1"),
        sa.Column("distance_km", sa.Float, nullable=False),
        sa.Column("duration_min", sa.Integer, nullable=False, server_default="0"),
        sa.Column("trip_type", trip_type, nullable=False, server_default="one-way"),
        sa.Column("fare", sa.Integer, nullable=False),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column(
            "payment_status", payment_status, nullable=False, server_default="pending"
        ),
        sa.Column("payment_reference", sa.String(64), nullable=True),
        sa.Column("payment_amount", sa.Integer, nullable=True),
        sa.Column("payment_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", booking_status, nullable=False, server_default="pending"),
        sa.Column("trip_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trip_end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_distance_km", sa.Float, nullable=True),
        sa.Column("actual_duration_min", sa.Integer, nullable=True),
        sa.Column("actual_fare", sa.Integer, nullable=True),
        sa.Column("driver_notes", sa.Text, nullable=True),
        sa.Column("cancelled_by_id", sa.Integer, nullable=True),
        sa.Column("cancelled_by_role", actor_role, nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(255), nullable=True),
        sa.Column("refund_amount", sa.Integer, nullable=False, server_default="0"),
        sa.Column("refund_status", refund_status, nullable=False, server_default="none"),
        sa.Column("refund_method", refund_method, nullable=True),
        sa.Column("refund_reference", sa.String(64), nullable=True),
        sa.Column("refund_notes", sa.Text, nullable=True),
        sa.Column("refund_initiated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("special_requests", sa.Text, nullable=False, server_default=""),
        _created_at(),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_rider", "bookings", ["rider_id"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id"])
    op.create_index("idx_bookings_vehicle", "bookings", ["vehicle_id"])
    op.create_index("idx_bookings_refund_status", "bookings", ["refund_status"])
    # Database-level backstop: one active booking per vehicle.
    op.create_index(
        "uq_bookings_active_vehicle",
        "bookings",
        ["vehicle_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('accepted', 'started')"),
    )

    op.create_table(
        "booking_status_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("status", booking_status, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.Integer, nullable=True),
        sa.Column("actor_role", actor_role, nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.UniqueConstraint("booking_id", "seq", name="uq_history_booking_seq"),
    )

    # ── wallet ────────────────────────────────────────────────────────
    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_wallet_tx_amount"),
    )
    op.create_index("idx_wallet_tx_driver", "wallet_transactions", ["driver_id"])

    op.create_table(
        "withdrawals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("bank_reference", sa.String(120), nullable=True),
        sa.Column("status", withdrawal_status, nullable=False, server_default="pending"),
        sa.Column(
            "transaction_id",
            sa.Integer,
            sa.ForeignKey("wallet_transactions.id"),
            nullable=False,
        ),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_withdrawals_status", "withdrawals", ["status"])

    op.create_table(
        "penalties",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("type", penalty_type, nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("status", penalty_status, nullable=False, server_default="paid"),
        sa.Column("applied_by", sa.Integer, nullable=True),
        sa.Column("applied_by_role", actor_role, nullable=True),
        sa.Column(
            "transaction_id",
            sa.Integer,
            sa.ForeignKey("wallet_transactions.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_penalties_driver", "penalties", ["driver_id"])


def downgrade() -> None:
    op.drop_table("penalties")
    op.drop_table("withdrawals")
    op.drop_table("wallet_transactions")
    op.drop_table("booking_status_history")
    op.drop_table("bookings")
    op.drop_table("vehicles")
    op.drop_table("drivers")
    op.drop_table("riders")
    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
