"""Magic link and analytics Pydantic schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, ConfigDict, Field

from tbook.schemas.booking import BookingResponse
from tbook.schemas.common import CamelModel


class MagicLinkPreview(CamelModel):
    """Where a magic link leads, without following it."""

    booking_id: str
    redirect_url: str
    status: str
    booking_details: BookingResponse


class AnalyticsEventCreate(CamelModel):
    """Schema for a client-side tracking call."""

    event: str = Field(..., pattern="^[a-z][a-z0-9_]{0,49}$")
    user_agent: str | None = Field(None, max_length=1000)
    ip_address: str | None = Field(None, max_length=45)
    metadata: dict[str, Any] | None = None


class AnalyticsEventResponse(CamelModel):
    """Schema for a recorded analytics event."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    magic_link_id: str
    event_kind: str
    timestamp: datetime = Field(validation_alias=AliasChoices("occurred_at", "timestamp"))
    user_agent: str | None = None
    source_address: str | None = None
    metadata: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("event_metadata", "metadata")
    )


class MagicLinkSummary(CamelModel):
    """Derived access statistics for one magic link."""

    magic_link_id: str
    booking_id: str
    access_count: int
    first_access: datetime | None = None
    last_access: datetime | None = None
    event_counts: dict[str, int] = Field(default_factory=dict)


class MagicLinkAnalytics(MagicLinkSummary):
    """Summary plus the ordered event log."""

    events: list[AnalyticsEventResponse] = Field(default_factory=list)
