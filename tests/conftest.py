from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from tbook.api.deps import get_session_factory
from tbook.core.immutability import register_immutability_enforcement
from tbook.database import init_db
from tbook.main import app
from tbook.services.analytics_service import AnalyticsRecorder
from tbook.services.booking_store import BookingStore
from tbook.services.magic_link_service import MagicLinkResolver

FRONTEND = "https://app.example.test"
MAGIC_BASE = "https://go.example.test"


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tbook.db'}")
    await init_db(bind=engine)
    register_immutability_enforcement()
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> BookingStore:
    return BookingStore(session_factory)


@pytest.fixture
def recorder(store: BookingStore) -> AnalyticsRecorder:
    return AnalyticsRecorder(store)


@pytest.fixture
def resolver(store: BookingStore, recorder: AnalyticsRecorder) -> MagicLinkResolver:
    return MagicLinkResolver(
        store, recorder, frontend_base_url=FRONTEND, magic_link_base_url=MAGIC_BASE
    )


@pytest.fixture
def booking_payload() -> dict:
    return {
        "userName": "Jane Doe",
        "userPhone": "+15551234567",
        "appointmentType": "consultation",
        "appointmentDate": "2025-03-01T10:00:00Z",
    }


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncClient]:
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
