"""Magic link analytics: append-only event log and derived summaries."""

import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from tbook.core.exceptions import NotFoundError, StoreUnavailable
from tbook.models.analytics import MagicLinkEvent
from tbook.models.booking import Booking
from tbook.schemas.magic_link import AnalyticsEventCreate, MagicLinkSummary
from tbook.services.booking_store import BookingStore, validate_input

logger = logging.getLogger(__name__)

ACCESS_EVENT = "magic_link_access"


class AnalyticsRecorder:
    """Records interactions with magic links."""

    def __init__(self, store: BookingStore) -> None:
        self._store = store

    async def record(
        self,
        magic_link_id: str,
        event: AnalyticsEventCreate | Mapping[str, Any],
        occurred_at: datetime | None = None,
    ) -> MagicLinkEvent:
        """Append an event for a magic link.

        Raises:
            NotFoundError: If no booking was issued this magic link
        """
        data: AnalyticsEventCreate = validate_input(AnalyticsEventCreate, event)

        async with self._store.transaction() as db:
            result = await db.execute(
                select(Booking.id).where(Booking.magic_link_id == magic_link_id)
            )
            booking_uuid = result.scalar_one_or_none()
            if booking_uuid is None:
                raise NotFoundError("Magic link", magic_link_id)

            record = MagicLinkEvent(
                id=uuid.uuid4(),
                magic_link_id=magic_link_id,
                booking_id=booking_uuid,
                event_kind=data.event,
                occurred_at=occurred_at or datetime.now(UTC),
                user_agent=data.user_agent,
                source_address=data.ip_address,
                event_metadata=data.metadata,
            )
            db.add(record)
            await db.flush()
        return record

    async def track(
        self, magic_link_id: str, event: AnalyticsEventCreate | Mapping[str, Any]
    ) -> MagicLinkEvent | None:
        """Record telemetry without letting storage failures reach the caller.

        Unknown magic links still raise NotFoundError. Returns None when the
        event could not be stored.
        """
        try:
            return await self.record(magic_link_id, event)
        except NotFoundError:
            raise
        except (StoreUnavailable, SQLAlchemyError) as e:
            logger.warning(f"Failed to track event for magic link {magic_link_id}: {e}")
            return None

    async def list_events(self, magic_link_id: str) -> list[MagicLinkEvent]:
        """Events for a magic link, oldest first."""
        async with self._store.transaction() as db:
            result = await db.execute(
                select(MagicLinkEvent)
                .where(MagicLinkEvent.magic_link_id == magic_link_id)
                .order_by(MagicLinkEvent.occurred_at.asc(), MagicLinkEvent.id.asc())
            )
            return list(result.scalars().all())

    async def summarize(self, magic_link_id: str) -> MagicLinkSummary:
        """Aggregate access statistics; never writes."""
        async with self._store.transaction() as db:
            booking_result = await db.execute(
                select(Booking.booking_id, Booking.access_count).where(
                    Booking.magic_link_id == magic_link_id
                )
            )
            row = booking_result.one_or_none()
            if row is None:
                raise NotFoundError("Magic link", magic_link_id)

            counts_result = await db.execute(
                select(MagicLinkEvent.event_kind, func.count())
                .where(MagicLinkEvent.magic_link_id == magic_link_id)
                .group_by(MagicLinkEvent.event_kind)
            )
            event_counts = {kind: count for kind, count in counts_result.all()}

            access_result = await db.execute(
                select(
                    func.min(MagicLinkEvent.occurred_at),
                    func.max(MagicLinkEvent.occurred_at),
                ).where(
                    MagicLinkEvent.magic_link_id == magic_link_id,
                    MagicLinkEvent.event_kind == ACCESS_EVENT,
                )
            )
            first_access, last_access = access_result.one()

        return MagicLinkSummary(
            magic_link_id=magic_link_id,
            booking_id=row.booking_id,
            access_count=row.access_count,
            first_access=first_access,
            last_access=last_access,
            event_counts=event_counts,
        )
