"""Booking state machine."""

from enum import Enum

from tbook.core.exceptions import InvalidStateTransition


class BookingStatus(str, Enum):
    """Lifecycle of a booking."""

    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


BOOKING_TRANSITIONS = {
    "pending_confirmation": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

TERMINAL_BOOKING_STATUSES = frozenset(
    state for state, targets in BOOKING_TRANSITIONS.items() if not targets
)


def is_noop_booking_transition(current: str, target: str) -> bool:
    """Re-confirming a confirmed booking succeeds without changing anything."""
    return current == target == BookingStatus.CONFIRMED.value


def assert_booking_transition(current: str, target: str) -> None:
    allowed = BOOKING_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateTransition("status", current, target)
