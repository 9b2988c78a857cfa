"""
Centralized HTTP exceptions for consistent error handling.

Every exception logs itself on construction with its context, so routers
and services only need to raise.

Usage:
    from shared.utils.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Inventory item", item_id)
    raise ValidationError("Invalid lastSyncTimestamp", value=raw)
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions inherit from this class to get consistent
    logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Order", order_id)
        raise NotFoundError("Inventory item", item_id, branch_id=branch_id)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 401 / 403 Errors
# =============================================================================


class AuthenticationError(AppException):
    """Missing, malformed, expired or otherwise invalid credentials (401)."""

    def __init__(self, detail: str = "Invalid token", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="warning",
            headers={"WWW-Authenticate": "Bearer"},
            **log_context,
        )


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("read sync logs")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        detail = f"Not allowed to {action}" if action else "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class InsufficientRoleError(ForbiddenError):
    """User doesn't have any of the required roles."""

    def __init__(self, required_roles: list[str], **log_context: Any):
        roles_str = ", ".join(required_roles)
        super().__init__(
            f"perform this action (requires role: {roles_str})",
            required_roles=required_roles,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Restock amount must be positive", amount=amount)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidTimestampError(ValidationError):
    """A sync watermark that is not a valid ISO-8601 instant."""

    def __init__(self, value: str, **log_context: Any):
        super().__init__(
            f"Invalid lastSyncTimestamp '{value}': expected an ISO-8601 date-time",
            value=value,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to open sync transaction", branch_id=1)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class SyncFailedError(InternalError):
    """A push or pull could not run at all (store unavailable, commit failed)."""

    def __init__(self, direction: str, reason: str, **log_context: Any):
        super().__init__(
            f"{direction.capitalize()} sync failed",
            direction=direction,
            reason=reason,
            **log_context,
        )
