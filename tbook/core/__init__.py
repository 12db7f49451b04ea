"""Core utilities: exceptions, logging and middleware."""

from tbook.core.exceptions import (
    AppException,
    DuplicateIdentifier,
    InvalidStateTransition,
    NotFoundError,
    RateLimitExceeded,
    StoreUnavailable,
    ValidationError,
)
from tbook.core.logging import init_logging, request_id_ctx

__all__ = [
    "AppException",
    "DuplicateIdentifier",
    "InvalidStateTransition",
    "NotFoundError",
    "RateLimitExceeded",
    "StoreUnavailable",
    "ValidationError",
    "init_logging",
    "request_id_ctx",
]
