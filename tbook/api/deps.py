"""API dependencies wiring the booking core into request handlers."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tbook.database import async_session_maker
from tbook.services.analytics_service import AnalyticsRecorder
from tbook.services.booking_store import BookingStore
from tbook.services.magic_link_service import MagicLinkResolver


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory backing the booking store (overridden in tests)."""
    return async_session_maker


def get_booking_store(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> BookingStore:
    return BookingStore(session_factory)


def get_analytics_recorder(
    store: Annotated[BookingStore, Depends(get_booking_store)],
) -> AnalyticsRecorder:
    return AnalyticsRecorder(store)


def get_magic_link_resolver(
    store: Annotated[BookingStore, Depends(get_booking_store)],
    recorder: Annotated[AnalyticsRecorder, Depends(get_analytics_recorder)],
) -> MagicLinkResolver:
    return MagicLinkResolver(store, recorder)
