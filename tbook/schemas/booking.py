"""Booking-related Pydantic schemas."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator

from tbook.schemas.common import CamelModel

APPOINTMENT_TYPES = ("consultation", "tutorial", "assessment", "group_session", "workshop")

# Fields that only the state machine may write
STATUS_FIELDS = frozenset({
    "status",
    "payment_status",
    "paymentStatus",
    "confirmed_at",
    "confirmedAt",
    "payment_updated_at",
    "paymentUpdatedAt",
    "access_count",
    "accessCount",
})


def _normalize_appointment_type(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in APPOINTMENT_TYPES:
        raise ValueError(f"appointmentType must be one of: {', '.join(APPOINTMENT_TYPES)}")
    return normalized


def _ensure_aware(value: datetime) -> datetime:
    # Naive timestamps from clients are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class BookingDetailsData(CamelModel):
    """Open appointment details; unknown keys are kept as-is."""

    model_config = ConfigDict(extra="allow")

    subject: str | None = Field(None, max_length=200)
    level: str | None = Field(None, max_length=100)
    duration: int | None = Field(None, ge=1, le=1440)  # minutes
    notes: str | None = Field(None, max_length=2000)


class BookingCreate(CamelModel):
    """Schema for creating a booking."""

    user_name: str = Field(..., min_length=1, max_length=200)
    user_phone: str = Field(..., min_length=1, max_length=32)
    appointment_type: str
    appointment_date: datetime
    details: BookingDetailsData = Field(default_factory=BookingDetailsData, alias="bookingDetails")

    @field_validator("appointment_type")
    @classmethod
    def validate_appointment_type(cls, v: str) -> str:
        return _normalize_appointment_type(v)

    @field_validator("appointment_date")
    @classmethod
    def validate_appointment_date(cls, v: datetime) -> datetime:
        return _ensure_aware(v)


class BookingUpdate(CamelModel):
    """Schema for overwriting non-status booking attributes."""

    model_config = ConfigDict(extra="forbid")

    user_name: str | None = Field(None, min_length=1, max_length=200)
    user_phone: str | None = Field(None, min_length=1, max_length=32)
    appointment_type: str | None = None
    appointment_date: datetime | None = None
    details: BookingDetailsData | None = Field(None, alias="bookingDetails")

    @field_validator("appointment_type")
    @classmethod
    def validate_appointment_type(cls, v: str | None) -> str | None:
        return _normalize_appointment_type(v) if v is not None else v

    @field_validator("appointment_date")
    @classmethod
    def validate_appointment_date(cls, v: datetime | None) -> datetime | None:
        return _ensure_aware(v) if v is not None else v


class PaymentUpdate(CamelModel):
    """Schema for reporting a payment outcome."""

    payment_status: Literal["pending", "processing", "completed", "failed", "refunded"]
    payment_id: str | None = Field(None, min_length=1, max_length=100)
    amount: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    currency: str | None = Field(None, pattern="^[A-Za-z]{3}$")

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v: str | None) -> str | None:
        return v.upper() if v else v


class BookingStatusChange(CamelModel):
    """Optional note sent with confirm/complete/cancel requests."""

    reason: str | None = Field(None, max_length=1000)


class BookingCreateResponse(CamelModel):
    """Schema returned after a booking is created."""

    booking_id: str
    uuid: UUID
    magic_link: str
    status: str
    message: str


class BookingResponse(CamelModel):
    """Schema for the full booking record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: str
    magic_link_id: str

    # Contact
    user_name: str
    user_phone: str

    # Appointment
    appointment_type: str
    appointment_date: datetime
    details: dict[str, Any] = Field(default_factory=dict, alias="bookingDetails")

    # Status
    status: str
    payment_status: str

    # Payment
    payment_id: str | None = None
    payment_amount: float | None = None
    payment_currency: str | None = None

    # Access
    access_count: int

    # Timestamps
    created_at: datetime
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    payment_updated_at: datetime | None = None
    last_accessed_at: datetime | None = None
