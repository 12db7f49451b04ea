"""Booking identifier and magic-link token generation utilities."""

import secrets
import string
from datetime import UTC, datetime

BOOKING_ID_PREFIX = "BK"
BOOKING_ID_SUFFIX_LENGTH = 6
MAGIC_LINK_TOKEN_LENGTH = 21

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"


def new_booking_id(now: datetime | None = None) -> str:
    """Generate a human-readable booking id.

    Args:
        now: Timestamp for the prefix, defaults to the current UTC time

    Returns:
        str: Booking id like 'BK-20250301100000-A3B7K9'
    """
    moment = now or datetime.now(UTC)
    random_part = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(BOOKING_ID_SUFFIX_LENGTH))
    return f"{BOOKING_ID_PREFIX}-{moment:%Y%m%d%H%M%S}-{random_part}"


def new_magic_link_token(size: int = MAGIC_LINK_TOKEN_LENGTH) -> str:
    """Generate a URL-safe magic-link token.

    Args:
        size: Number of characters (21 gives roughly 126 bits of entropy)

    Returns:
        str: Token like 'V1StGXR8_Z5jdHi6B-myT'
    """
    if size < 1:
        raise ValueError("Token size must be positive")
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(size))


def is_magic_link_token(value: str) -> bool:
    """Check that a value only uses the token alphabet."""
    return bool(value) and all(c in _TOKEN_ALPHABET for c in value)
