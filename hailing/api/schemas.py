"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

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


# ── Requests ──────────────────────────────────────────────────────────


class LocationIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str = Field("", max_length=255)


class BookingCreateRequest(BaseModel):
    vehicle_id: int
    pickup: LocationIn
    destination: LocationIn
    trip_date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    trip_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    trip_type: TripType = TripType.ONE_WAY
    return_date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    distance_km: Optional[float] = Field(
        None,
        gt=0,
        description="Road distance from the maps service; great-circle distance if omitted.",
    )
    duration_min: int = Field(0, ge=0)
    passengers: int = Field(1, ge=1, le=60)
    payment_method: PaymentMethod
    special_requests: str = Field("", max_length=500)


class TransitionRequest(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    actual_distance_km: Optional[float] = Field(None, ge=0)
    actual_duration_min: Optional[int] = Field(None, ge=0)
    actual_fare: Optional[int] = Field(None, ge=0)
    penalty_amount: Optional[int] = Field(
        None, ge=0, description="Driver cancellation penalty; server default if omitted."
    )


class PaymentRecordRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1, max_length=64)
    amount: Optional[int] = Field(None, ge=0)


class FareQuoteRequest(BaseModel):
    vehicle_id: int
    distance_km: float = Field(..., ge=0)
    trip_type: TripType = TripType.ONE_WAY


class VehicleRegisterRequest(BaseModel):
    registration_number: str = Field(..., min_length=4, max_length=20)
    category: VehicleCategory
    brand: str = Field("", max_length=60)
    seating_capacity: int = Field(4, ge=1, le=60)
    auto_rate_one_way: Optional[float] = Field(None, gt=0)
    auto_rate_return: Optional[float] = Field(None, gt=0)
    distance_pricing: Optional[dict[TripType, dict[str, float]]] = Field(
        None, description='e.g. {"one-way": {"50km": 20, "100km": 18}}'
    )


class AvailabilityRequest(BaseModel):
    state: VehicleBookingStatus
    reason: str = Field("", max_length=255)


class WithdrawalRequest(BaseModel):
    amount: int = Field(..., gt=0)
    bank_reference: Optional[str] = Field(None, max_length=120)


class VehicleApprovalRequest(BaseModel):
    approved: bool
    notes: str = ""
    reason: str = Field("", max_length=255)


class RefundAdjustRequest(BaseModel):
    deduction: int = Field(..., ge=0)
    reason: str = Field("", max_length=255)


class RefundInitiateRequest(BaseModel):
    method: RefundMethod


class RefundCompleteRequest(BaseModel):
    reference: Optional[str] = Field(None, max_length=64)


class PenaltyRequest(BaseModel):
    penalty_type: PenaltyType
    amount: Optional[int] = Field(None, ge=0)
    reason: str = Field("", max_length=255)
    booking_number: Optional[str] = None


# ── Responses ─────────────────────────────────────────────────────────


class StatusHistoryEntry(BaseModel):
    seq: int
    status: BookingStatus
    timestamp: datetime
    actor_id: Optional[int] = None
    actor_role: Optional[ActorRole] = None
    reason: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    booking_number: str
    rider_id: int
    driver_id: Optional[int] = None
    vehicle_id: int
    status: BookingStatus
    trip_type: TripType
    trip_date: str
    trip_time: str
    distance_km: float
    duration_min: int
    passengers: int
    fare: int
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    trip_start_time: Optional[datetime] = None
    trip_end_time: Optional[datetime] = None
    actual_distance_km: Optional[float] = None
    actual_duration_min: Optional[int] = None
    actual_fare: Optional[int] = None
    cancelled_by_role: Optional[ActorRole] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    refund_amount: int = 0
    refund_status: RefundStatus
    refund_method: Optional[RefundMethod] = None
    refund_reference: Optional[str] = None
    history: list[StatusHistoryEntry] = []
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FareQuoteResponse(BaseModel):
    vehicle_id: int
    distance_km: float
    trip_type: TripType
    fare: int


class VehicleResponse(BaseModel):
    id: int
    driver_id: int
    registration_number: str
    category: VehicleCategory
    brand: str
    seating_capacity: int
    booking_status: VehicleBookingStatus
    is_available: bool
    booked: bool
    current_booking_id: Optional[int] = None
    maintenance_reason: Optional[str] = None
    approval_status: ApprovalStatus
    is_verified: bool
    total_trips: int
    total_distance_km: float
    total_earnings: int

    model_config = {"from_attributes": True}


class WalletTransactionResponse(BaseModel):
    id: int
    type: TransactionType
    amount: int
    description: Optional[str] = None
    booking_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class WalletResponse(BaseModel):
    driver_id: int
    balance: int
    transactions: list[WalletTransactionResponse] = []


class WithdrawalResponse(BaseModel):
    id: int
    driver_id: int
    amount: int
    status: WithdrawalStatus
    bank_reference: Optional[str] = None
    transaction_id: int
    requested_at: datetime

    model_config = {"from_attributes": True}


class PenaltyResponse(BaseModel):
    id: int
    driver_id: int
    booking_id: Optional[int] = None
    type: PenaltyType
    amount: int
    reason: str
    status: PenaltyStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class WalletAuditResponse(BaseModel):
    driver_id: int
    balance: int
    transaction_sum: int
    consistent: bool


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    detail: str
    current_status: Optional[str] = None
