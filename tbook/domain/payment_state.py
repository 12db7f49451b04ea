"""Payment state machine."""

from enum import Enum

from tbook.core.exceptions import InvalidStateTransition


class PaymentStatus(str, Enum):
    """Payment lifecycle attached to a booking."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


PAYMENT_TRANSITIONS = {
    "pending": {"processing"},
    "processing": {"completed", "failed"},
    "completed": {"refunded"},
    "failed": {"pending"},
    "refunded": set(),
}

# Outcomes a stubbed checkout may report straight from "pending".
# They are applied as pending → processing → outcome.
IMPLICIT_PROCESSING_TARGETS = frozenset({"completed", "failed"})

# Only a refund may follow once the booking itself is cancelled.
CANCELLED_BOOKING_PAYMENT_TARGETS = frozenset({"refunded"})


def assert_payment_transition(current: str, target: str) -> None:
    allowed = PAYMENT_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateTransition("payment status", current, target)


def plan_payment_transition(current: str, target: str, booking_status: str) -> list[str]:
    """Return the ordered payment states to pass through to reach ``target``.

    Raises:
        InvalidStateTransition: If no legal path exists.
    """
    if booking_status == "cancelled" and target not in CANCELLED_BOOKING_PAYMENT_TARGETS:
        raise InvalidStateTransition(
            "payment status",
            current,
            target,
            detail=f"Cannot move payment to '{target}' on a cancelled booking",
        )

    if current == "pending" and target in IMPLICIT_PROCESSING_TARGETS:
        path = ["processing", target]
    else:
        path = [target]

    state = current
    for step in path:
        assert_payment_transition(state, step)
        state = step
    return path
