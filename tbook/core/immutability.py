"""Append-only enforcement for analytics records using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event

from tbook.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify append-only records."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Analytics events are append-only."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners that keep analytics append-only.

    Safe to call more than once; listeners are attached a single time.
    """
    global _registered
    if _registered:
        return

    from tbook.models.analytics import MagicLinkEvent

    @event.listens_for(MagicLinkEvent, "before_update")
    def prevent_event_update(mapper, connection, target):
        """Prevent updates to MagicLinkEvent."""
        _log_immutability_violation("MagicLinkEvent", "UPDATE", str(target.id))
        raise ImmutabilityViolationError("MagicLinkEvent", "UPDATE", str(target.id))

    @event.listens_for(MagicLinkEvent, "before_delete")
    def prevent_event_delete(mapper, connection, target):
        """Prevent deletion of MagicLinkEvent."""
        _log_immutability_violation("MagicLinkEvent", "DELETE", str(target.id))
        raise ImmutabilityViolationError("MagicLinkEvent", "DELETE", str(target.id))

    _registered = True
    logger.info("Append-only enforcement registered for magic link events")
