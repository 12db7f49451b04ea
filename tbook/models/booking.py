"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Integer, Numeric, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tbook.database import Base
from tbook.models.types import UTCDateTime


class Booking(Base):
    """Appointment booking model."""

    __tablename__ = "bookings"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    booking_id: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )  # BK-YYYYMMDDHHMMSS-XXXXXX
    magic_link_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )

    # Contact
    user_name: Mapped[str] = mapped_column(String(200), nullable=False)
    user_phone: Mapped[str] = mapped_column(String(32), nullable=False)

    # Appointment
    appointment_type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # consultation, tutorial, assessment, group_session, workshop
    appointment_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), default=dict, nullable=False
    )  # subject, level, duration, notes

    # Status
    status: Mapped[str] = mapped_column(
        String(24), default="pending_confirmation", nullable=False, index=True
    )  # pending_confirmation, confirmed, completed, cancelled
    payment_status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False
    )  # pending, processing, completed, failed, refunded

    # Payment (stubbed checkout reports these)
    payment_id: Mapped[str | None] = mapped_column(String(100))
    payment_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    payment_currency: Mapped[str | None] = mapped_column(String(3))

    # Magic link access
    access_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_accessed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    payment_updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), onupdate=func.now()
    )
