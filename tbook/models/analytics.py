"""Magic link analytics persistence models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tbook.database import Base
from tbook.models.types import UTCDateTime


class MagicLinkEvent(Base):
    """Append-only interaction with a magic link."""

    __tablename__ = "magic_link_events"
    __table_args__ = (
        Index("ix_magic_link_events_link_time", "magic_link_id", "occurred_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Back-references only; events never own booking data
    magic_link_id: Mapped[str] = mapped_column(String(64), nullable=False)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )

    event_kind: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # magic_link_access, page_view, link_click, custom
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    # Client
    user_agent: Mapped[str | None] = mapped_column(Text)
    source_address: Mapped[str | None] = mapped_column(String(45))
    event_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON().with_variant(JSONB(), "postgresql")
    )
