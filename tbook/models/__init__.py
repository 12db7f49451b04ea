"""Database models."""

from tbook.models.analytics import MagicLinkEvent
from tbook.models.booking import Booking

__all__ = [
    # Booking
    "Booking",
    # Analytics
    "MagicLinkEvent",
]
