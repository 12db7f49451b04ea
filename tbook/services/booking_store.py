"""Booking persistence and guarded state transitions."""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from weakref import WeakValueDictionary

import pydantic
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tbook.config import settings
from tbook.core.exceptions import (
    DuplicateIdentifier,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from tbook.domain.booking_state import (
    BookingStatus,
    assert_booking_transition,
    is_noop_booking_transition,
)
from tbook.domain.payment_state import plan_payment_transition
from tbook.models.booking import Booking
from tbook.schemas.booking import STATUS_FIELDS, BookingCreate, BookingUpdate, PaymentUpdate
from tbook.utils.identifiers import new_booking_id, new_magic_link_token

logger = logging.getLogger(__name__)

# In-process serialization of writes to the same booking. Row locks
# (SELECT ... FOR UPDATE) cover writers in other processes.
_booking_locks: WeakValueDictionary[uuid.UUID, asyncio.Lock] = WeakValueDictionary()


def _lock_for(booking_uuid: uuid.UUID) -> asyncio.Lock:
    lock = _booking_locks.get(booking_uuid)
    if lock is None:
        lock = asyncio.Lock()
        _booking_locks[booking_uuid] = lock
    return lock


def validate_input(schema: type[pydantic.BaseModel], data: Any) -> Any:
    """Re-validate input reaching the store, mapping errors to ValidationError."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in errors)
        raise ValidationError(f"Invalid data: {fields}", errors=errors) from e


_IDENTIFIER_COLUMNS = ("booking_id", "magic_link_id")


def _is_identifier_collision(error: IntegrityError) -> bool:
    """Unique violation on one of the generated identifiers (PostgreSQL or SQLite wording)."""
    message = str(error.orig).lower()
    unique = "unique" in message or getattr(error.orig, "sqlstate", None) == "23505"
    return unique and any(column in message for column in _IDENTIFIER_COLUMNS)


def _identifier_clause(identifier: str | uuid.UUID):
    """Match either the internal UUID or the human-readable booking id."""
    if isinstance(identifier, uuid.UUID):
        return Booking.id == identifier
    try:
        return Booking.id == uuid.UUID(identifier)
    except ValueError:
        return Booking.booking_id == identifier


class BookingStore:
    """Persistent booking records keyed by internal id, booking id and magic link."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout: float | None = None,
        retry_attempts: int | None = None,
        token_length: int | None = None,
        booking_id_factory: Callable[[], str] = new_booking_id,
        token_factory: Callable[[int], str] = new_magic_link_token,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout if timeout is not None else settings.store_timeout_seconds
        self._retry_attempts = (
            retry_attempts if retry_attempts is not None else settings.identifier_retry_attempts
        )
        if self._retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self._token_length = (
            token_length if token_length is not None else settings.magic_link_token_length
        )
        self._booking_id_factory = booking_id_factory
        self._token_factory = token_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Run a unit of work in one transaction bounded by the store timeout.

        Raises:
            StoreUnavailable: On timeout or connection failure
        """
        try:
            async with asyncio.timeout(self._timeout):
                async with self._session_factory() as db:
                    async with db.begin():
                        yield db
        except TimeoutError as e:
            logger.error(f"Booking store operation exceeded {self._timeout}s")
            raise StoreUnavailable(f"operation timed out after {self._timeout}s") from e
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Booking store connection failure: {e.orig!r}")
            raise StoreUnavailable(type(e.orig).__name__) from e

    # ==================== READS ====================

    async def _find(
        self, db: AsyncSession, identifier: str | uuid.UUID, for_update: bool = False
    ) -> Booking:
        stmt = select(Booking).where(_identifier_clause(identifier))
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(identifier))
        return booking

    async def get_by_id(self, identifier: str | uuid.UUID) -> Booking:
        """Get a booking by internal UUID or booking id."""
        async with self.transaction() as db:
            return await self._find(db, identifier)

    async def get_by_magic_link(self, token: str) -> Booking:
        """Get the booking a magic-link token was issued for."""
        async with self.transaction() as db:
            result = await db.execute(select(Booking).where(Booking.magic_link_id == token))
            booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Magic link", token)
        return booking

    async def _resolve_internal_id(self, identifier: str | uuid.UUID) -> uuid.UUID:
        async with self.transaction() as db:
            result = await db.execute(select(Booking.id).where(_identifier_clause(identifier)))
            booking_uuid = result.scalar_one_or_none()
        if booking_uuid is None:
            raise NotFoundError("Booking", str(identifier))
        return booking_uuid

    # ==================== WRITES ====================

    async def create(self, attributes: BookingCreate | Mapping[str, Any]) -> Booking:
        """Persist a new booking in pending_confirmation with fresh identifiers.

        Raises:
            ValidationError: If required fields are missing or malformed
            DuplicateIdentifier: If every generated id pair collided
        """
        data: BookingCreate = validate_input(BookingCreate, attributes)

        for attempt in range(1, self._retry_attempts + 1):
            now = datetime.now(UTC)
            booking = Booking(
                id=uuid.uuid4(),
                booking_id=self._booking_id_factory(),
                magic_link_id=self._token_factory(self._token_length),
                user_name=data.user_name,
                user_phone=data.user_phone,
                appointment_type=data.appointment_type,
                appointment_date=data.appointment_date,
                details=data.details.model_dump(exclude_none=True),
                status=BookingStatus.PENDING_CONFIRMATION.value,
                payment_status="pending",
                access_count=0,
                created_at=now,
                updated_at=now,
            )
            try:
                async with self.transaction() as db:
                    db.add(booking)
                    await db.flush()
            except IntegrityError as e:
                if not _is_identifier_collision(e):
                    logger.error(f"Booking insert rejected by the database: {e.orig!r}")
                    raise
                logger.warning(
                    f"Identifier collision creating booking (attempt {attempt}/{self._retry_attempts})"
                )
                continue

            logger.info(f"Booking {booking.booking_id} created ({booking.appointment_type})")
            return booking

        raise DuplicateIdentifier(self._retry_attempts)

    async def _mutate(
        self, identifier: str | uuid.UUID, apply: Callable[[Booking, datetime], bool]
    ) -> Booking:
        """Apply a change to one booking under its lock and a row lock.

        ``apply`` validates before writing anything; if it raises, the
        transaction rolls back and the record stays untouched. It returns
        False when there was nothing to change.
        """
        booking_uuid = await self._resolve_internal_id(identifier)
        async with _lock_for(booking_uuid):
            async with self.transaction() as db:
                booking = await self._find(db, booking_uuid, for_update=True)
                now = datetime.now(UTC)
                if apply(booking, now):
                    booking.updated_at = now
                    await db.flush()
        return booking

    async def update(
        self, identifier: str | uuid.UUID, fields: BookingUpdate | Mapping[str, Any]
    ) -> Booking:
        """Overwrite non-status attributes.

        Raises:
            ValidationError: If a status field is included or a value is invalid
        """
        if isinstance(fields, Mapping):
            forbidden = STATUS_FIELDS & set(fields)
            if forbidden:
                raise ValidationError(
                    f"Status fields can only change through transitions: {', '.join(sorted(forbidden))}"
                )
        changes: BookingUpdate = validate_input(BookingUpdate, fields)
        values = changes.model_dump(exclude_unset=True)

        for key, value in values.items():
            if value is None and key != "details":
                raise ValidationError(f"{key} cannot be empty")
        if "details" in values:
            values["details"] = (
                changes.details.model_dump(exclude_none=True) if changes.details else {}
            )

        def apply(booking: Booking, now: datetime) -> bool:
            for key, value in values.items():
                setattr(booking, key, value)
            return bool(values)

        booking = await self._mutate(identifier, apply)
        if values:
            logger.info(f"Booking {booking.booking_id} updated: {', '.join(sorted(values))}")
        return booking

    async def transition_status(self, identifier: str | uuid.UUID, target: str) -> Booking:
        """Move the booking status along the state machine.

        Raises:
            InvalidStateTransition: If the move is not allowed
        """
        try:
            target = BookingStatus(target).value
        except ValueError as e:
            raise ValidationError(f"Unknown booking status '{target}'") from e

        def apply(booking: Booking, now: datetime) -> bool:
            if is_noop_booking_transition(booking.status, target):
                return False
            assert_booking_transition(booking.status, target)

            previous = booking.status
            booking.status = target
            if target == BookingStatus.CONFIRMED.value and booking.confirmed_at is None:
                booking.confirmed_at = now
            elif target == BookingStatus.COMPLETED.value:
                booking.completed_at = now
            elif target == BookingStatus.CANCELLED.value:
                booking.cancelled_at = now
            logger.info(f"Booking {booking.booking_id} status {previous} → {target}")
            return True

        return await self._mutate(identifier, apply)

    async def confirm(self, identifier: str | uuid.UUID) -> Booking:
        """Confirm a booking; confirming twice is a no-op."""
        return await self.transition_status(identifier, BookingStatus.CONFIRMED.value)

    async def complete(self, identifier: str | uuid.UUID) -> Booking:
        return await self.transition_status(identifier, BookingStatus.COMPLETED.value)

    async def cancel(self, identifier: str | uuid.UUID) -> Booking:
        return await self.transition_status(identifier, BookingStatus.CANCELLED.value)

    async def update_payment(
        self, identifier: str | uuid.UUID, payment: PaymentUpdate | Mapping[str, Any]
    ) -> Booking:
        """Record a payment outcome together with its reference fields.

        Raises:
            InvalidStateTransition: If the payment move is not allowed
        """
        data: PaymentUpdate = validate_input(PaymentUpdate, payment)

        def apply(booking: Booking, now: datetime) -> bool:
            path = plan_payment_transition(booking.payment_status, data.payment_status, booking.status)

            previous = booking.payment_status
            booking.payment_status = path[-1]
            booking.payment_updated_at = now
            if data.payment_id is not None:
                booking.payment_id = data.payment_id
            if data.amount is not None:
                booking.payment_amount = data.amount
            if data.currency is not None:
                booking.payment_currency = data.currency
            logger.info(
                f"Booking {booking.booking_id} payment {previous} → {' → '.join(path)}"
            )
            return True

        return await self._mutate(identifier, apply)

    async def increment_access(self, token: str) -> Booking:
        """Atomically bump the access counter and return the updated booking."""
        now = datetime.now(UTC)
        async with self.transaction() as db:
            result = await db.execute(
                update(Booking)
                .where(Booking.magic_link_id == token)
                .values(access_count=Booking.access_count + 1, last_accessed_at=now, updated_at=now)
                .returning(Booking)
                .execution_options(synchronize_session=False)
            )
            booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Magic link", token)
        return booking
