from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from tbook.core.exceptions import (
    DuplicateIdentifier,
    InvalidStateTransition,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from tbook.schemas.booking import BookingResponse
from tbook.services.booking_store import BookingStore


def snapshot(booking) -> dict:
    return BookingResponse.model_validate(booking).model_dump()


@pytest.mark.asyncio
async def test_create_starts_pending(store: BookingStore, booking_payload: dict) -> None:
    booking = await store.create(booking_payload)

    assert booking.booking_id.startswith("BK-")
    assert len(booking.magic_link_id) == 21
    assert booking.status == "pending_confirmation"
    assert booking.payment_status == "pending"
    assert booking.access_count == 0
    assert booking.confirmed_at is None
    assert booking.details == {}


@pytest.mark.asyncio
async def test_create_normalizes_input(store: BookingStore, booking_payload: dict) -> None:
    booking_payload["appointmentType"] = "Tutorial"
    booking_payload["bookingDetails"] = {"subject": "Algebra", "duration": 60, "room": "B2"}

    booking = await store.create(booking_payload)

    assert booking.appointment_type == "tutorial"
    assert booking.details == {"subject": "Algebra", "duration": 60, "room": "B2"}


@pytest.mark.asyncio
async def test_create_rejects_missing_fields(store: BookingStore, booking_payload: dict) -> None:
    del booking_payload["userName"]
    with pytest.raises(ValidationError) as exc_info:
        await store.create(booking_payload)
    assert "userName" in exc_info.value.detail or "user_name" in exc_info.value.detail


@pytest.mark.asyncio
async def test_create_rejects_unknown_appointment_type(
    store: BookingStore, booking_payload: dict
) -> None:
    booking_payload["appointmentType"] = "massage"
    with pytest.raises(ValidationError):
        await store.create(booking_payload)


@pytest.mark.asyncio
async def test_lookup_by_uuid_and_booking_id(store: BookingStore, booking_payload: dict) -> None:
    created = await store.create(booking_payload)

    by_uuid = await store.get_by_id(str(created.id))
    by_booking_id = await store.get_by_id(created.booking_id)
    by_token = await store.get_by_magic_link(created.magic_link_id)

    assert by_uuid.id == by_booking_id.id == by_token.id == created.id


@pytest.mark.asyncio
async def test_unknown_booking_raises_not_found(store: BookingStore) -> None:
    with pytest.raises(NotFoundError):
        await store.get_by_id("BK-20250101000000-ZZZZZZ")
    with pytest.raises(NotFoundError):
        await store.confirm("BK-20250101000000-ZZZZZZ")


@pytest.mark.asyncio
async def test_identifier_collision_is_retried(session_factory, booking_payload: dict) -> None:
    first = BookingStore(session_factory, booking_id_factory=lambda: "BK-20250301100000-AAAAAA")
    await first.create(booking_payload)

    ids = iter(["BK-20250301100000-AAAAAA", "BK-20250301100000-BBBBBB"])
    second = BookingStore(session_factory, booking_id_factory=lambda: next(ids))
    booking = await second.create(booking_payload)

    assert booking.booking_id == "BK-20250301100000-BBBBBB"


@pytest.mark.asyncio
async def test_persistent_collision_raises_duplicate(session_factory, booking_payload: dict) -> None:
    store = BookingStore(
        session_factory,
        retry_attempts=3,
        booking_id_factory=lambda: "BK-20250301100000-AAAAAA",
        token_factory=lambda size: "a" * size,
    )
    await store.create(booking_payload)

    with pytest.raises(DuplicateIdentifier) as exc_info:
        await store.create(booking_payload)
    assert exc_info.value.attempts == 3
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_update_overwrites_plain_fields(store: BookingStore, booking_payload: dict) -> None:
    booking = await store.create(booking_payload)

    updated = await store.update(
        booking.booking_id,
        {"userName": "Jane Smith", "bookingDetails": {"notes": "bring calculator"}},
    )

    assert updated.user_name == "Jane Smith"
    assert updated.user_phone == "+15551234567"
    assert updated.details == {"notes": "bring calculator"}
    assert updated.status == "pending_confirmation"


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["status", "paymentStatus", "payment_status", "accessCount"])
async def test_update_rejects_status_fields(
    store: BookingStore, booking_payload: dict, field: str
) -> None:
    booking = await store.create(booking_payload)

    with pytest.raises(ValidationError):
        await store.update(booking.booking_id, {field: "confirmed"})

    assert (await store.get_by_id(booking.booking_id)).status == "pending_confirmation"


@pytest.mark.asyncio
async def test_update_rejects_unknown_and_empty_fields(
    store: BookingStore, booking_payload: dict
) -> None:
    booking = await store.create(booking_payload)

    with pytest.raises(ValidationError):
        await store.update(booking.booking_id, {"favouriteColour": "blue"})
    with pytest.raises(ValidationError):
        await store.update(booking.booking_id, {"userName": None})


@pytest.mark.asyncio
async def test_lifecycle_timestamps(store: BookingStore, booking_payload: dict) -> None:
    booking = await store.create(booking_payload)

    confirmed = await store.confirm(booking.booking_id)
    assert confirmed.status == "confirmed"
    assert confirmed.confirmed_at is not None

    completed = await store.complete(booking.booking_id)
    assert completed.status == "completed"
    assert completed.completed_at is not None
    assert completed.cancelled_at is None


@pytest.mark.asyncio
async def test_illegal_transition_leaves_record_unchanged(
    store: BookingStore, booking_payload: dict
) -> None:
    booking = await store.create(booking_payload)
    await store.confirm(booking.booking_id)
    await store.complete(booking.booking_id)
    before = snapshot(await store.get_by_id(booking.booking_id))

    with pytest.raises(InvalidStateTransition):
        await store.confirm(booking.booking_id)
    with pytest.raises(InvalidStateTransition):
        await store.cancel(booking.booking_id)

    assert snapshot(await store.get_by_id(booking.booking_id)) == before


@pytest.mark.asyncio
async def test_reconfirm_is_idempotent(store: BookingStore, booking_payload: dict) -> None:
    booking = await store.create(booking_payload)
    first = await store.confirm(booking.booking_id)

    second = await store.confirm(booking.booking_id)

    assert second.status == "confirmed"
    assert second.confirmed_at == first.confirmed_at


@pytest.mark.asyncio
async def test_cancel_from_pending(store: BookingStore, booking_payload: dict) -> None:
    booking = await store.create(booking_payload)

    cancelled = await store.cancel(str(booking.id))

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at is not None


@pytest.mark.asyncio
async def test_unknown_status_is_a_validation_error(
    store: BookingStore, booking_payload: dict
) -> None:
    booking = await store.create(booking_payload)
    with pytest.raises(ValidationError):
        await store.transition_status(booking.booking_id, "archived")


@pytest.mark.asyncio
async def test_payment_completed_with_reference_fields(
    store: BookingStore, booking_payload: dict
) -> None:
    booking = await store.create(booking_payload)

    paid = await store.update_payment(
        booking.booking_id,
        {"paymentStatus": "completed", "paymentId": "pi_123", "amount": "100.00", "currency": "usd"},
    )

    assert paid.payment_status == "completed"
    assert paid.payment_id == "pi_123"
    assert Decimal(paid.payment_amount) == Decimal("100.00")
    assert paid.payment_currency == "USD"
    assert paid.payment_updated_at is not None


@pytest.mark.asyncio
async def test_failed_payment_can_be_retried(store: BookingStore, booking_payload: dict) -> None:
    booking = await store.create(booking_payload)

    await store.update_payment(booking.booking_id, {"paymentStatus": "failed"})
    retried = await store.update_payment(booking.booking_id, {"paymentStatus": "pending"})
    assert retried.payment_status == "pending"

    with pytest.raises(InvalidStateTransition):
        await store.update_payment(booking.booking_id, {"paymentStatus": "refunded"})


@pytest.mark.asyncio
async def test_cancelled_booking_only_accepts_refund(
    store: BookingStore, booking_payload: dict
) -> None:
    booking = await store.create(booking_payload)
    await store.update_payment(booking.booking_id, {"paymentStatus": "completed"})
    await store.cancel(booking.booking_id)

    with pytest.raises(InvalidStateTransition):
        await store.update_payment(booking.booking_id, {"paymentStatus": "failed"})

    refunded = await store.update_payment(booking.booking_id, {"paymentStatus": "refunded"})
    assert refunded.payment_status == "refunded"


@pytest.mark.asyncio
async def test_concurrent_payment_outcomes_do_not_tear(
    store: BookingStore, booking_payload: dict
) -> None:
    booking = await store.create(booking_payload)
    await store.update_payment(booking.booking_id, {"paymentStatus": "processing"})

    results = await asyncio.gather(
        store.update_payment(booking.booking_id, {"paymentStatus": "completed", "paymentId": "pi_ok"}),
        store.update_payment(booking.booking_id, {"paymentStatus": "failed", "paymentId": "pi_fail"}),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidStateTransition)

    final = await store.get_by_id(booking.booking_id)
    expected_id = {"completed": "pi_ok", "failed": "pi_fail"}[final.payment_status]
    assert final.payment_id == expected_id


@pytest.mark.asyncio
async def test_unreachable_database_raises_store_unavailable(
    tmp_path: Path, booking_payload: dict
) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'tbook.db'}")
    store = BookingStore(async_sessionmaker(engine, expire_on_commit=False))

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.get_by_id("BK-20250101000000-ZZZZZZ")
    assert exc_info.value.status_code == 503

    await engine.dispose()


@pytest.mark.asyncio
async def test_slow_store_times_out() -> None:
    class SlowSession:
        async def __aenter__(self):
            await asyncio.sleep(1)

        async def __aexit__(self, *exc_info) -> bool:
            return False

    store = BookingStore(lambda: SlowSession(), timeout=0.05)

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.get_by_id("BK-20250101000000-ZZZZZZ")
    assert "timed out" in exc_info.value.detail


@pytest.mark.asyncio
async def test_created_bookings_have_distinct_id_pairs(
    store: BookingStore, booking_payload: dict
) -> None:
    bookings = [await store.create(booking_payload) for _ in range(200)]

    pairs = {(b.booking_id, b.magic_link_id) for b in bookings}
    assert len(pairs) == 200
    assert len({b.booking_id for b in bookings}) == 200
    assert len({b.magic_link_id for b in bookings}) == 200


def test_zero_retry_attempts_is_rejected(session_factory) -> None:
    with pytest.raises(ValueError):
        BookingStore(session_factory, retry_attempts=0)


@pytest.mark.asyncio
async def test_single_attempt_store_gives_up_after_one_collision(
    session_factory, booking_payload: dict
) -> None:
    store = BookingStore(
        session_factory,
        retry_attempts=1,
        booking_id_factory=lambda: "BK-20250301100000-AAAAAA",
    )
    await store.create(booking_payload)

    with pytest.raises(DuplicateIdentifier) as exc_info:
        await store.create(booking_payload)
    assert exc_info.value.attempts == 1


@pytest.mark.asyncio
async def test_non_collision_integrity_error_is_not_retried(
    session_factory, booking_payload: dict
) -> None:
    calls = []

    def missing_token(size: int) -> None:
        calls.append(size)
        return None

    store = BookingStore(session_factory, retry_attempts=3, token_factory=missing_token)

    with pytest.raises(IntegrityError):
        await store.create(booking_payload)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_timestamps_read_back_as_utc(store: BookingStore, booking_payload: dict) -> None:
    booking_payload["appointmentDate"] = "2025-03-01T12:00:00+02:00"
    created = await store.create(booking_payload)
    await store.confirm(created.booking_id)

    stored = await store.get_by_id(created.booking_id)

    assert stored.appointment_date == datetime(2025, 3, 1, 10, 0, tzinfo=UTC)
    assert stored.appointment_date.utcoffset().total_seconds() == 0
    for value in (stored.created_at, stored.confirmed_at, stored.updated_at):
        assert value.tzinfo is not None
        assert value.utcoffset().total_seconds() == 0
