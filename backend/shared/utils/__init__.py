"""
Utilities module: HTTP exceptions, health checks, schemas.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    InternalError,
    SyncFailedError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "InternalError",
    "SyncFailedError",
]
