"""Pydantic schemas for API validation."""

from tbook.schemas.booking import (
    BookingCreate,
    BookingCreateResponse,
    BookingResponse,
    BookingStatusChange,
    BookingUpdate,
    PaymentUpdate,
)
from tbook.schemas.common import ApiResponse
from tbook.schemas.magic_link import (
    AnalyticsEventCreate,
    AnalyticsEventResponse,
    MagicLinkAnalytics,
    MagicLinkPreview,
    MagicLinkSummary,
)

__all__ = [
    # Envelope
    "ApiResponse",
    # Booking
    "BookingCreate",
    "BookingCreateResponse",
    "BookingResponse",
    "BookingStatusChange",
    "BookingUpdate",
    "PaymentUpdate",
    # Magic link
    "AnalyticsEventCreate",
    "AnalyticsEventResponse",
    "MagicLinkAnalytics",
    "MagicLinkPreview",
    "MagicLinkSummary",
]
