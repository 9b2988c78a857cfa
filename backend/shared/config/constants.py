"""
Centralized constants for the backend application.
Avoids magic strings for roles, statuses and sync directions.

Usage:
    from shared.config.constants import Roles, OrderStatus, SyncDirection

    if status == OrderStatus.OPEN:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """Staff role constants (carried in the JWT "roles" claim)."""

    OWNER: Final[str] = "OWNER"
    MANAGER: Final[str] = "MANAGER"
    CASHIER: Final[str] = "CASHIER"
    WAITER: Final[str] = "WAITER"
    KITCHEN: Final[str] = "KITCHEN"

    ALL: Final[list[str]] = [OWNER, MANAGER, CASHIER, WAITER, KITCHEN]


MANAGEMENT_ROLES: Final[frozenset[str]] = frozenset({Roles.OWNER, Roles.MANAGER})
TERMINAL_ROLES: Final[frozenset[str]] = frozenset(Roles.ALL)


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderStatus:
    """Order status constants."""

    OPEN: Final[str] = "OPEN"
    KITCHEN: Final[str] = "KITCHEN"
    PREPARING: Final[str] = "PREPARING"
    READY: Final[str] = "READY"
    SERVED: Final[str] = "SERVED"
    CLOSED: Final[str] = "CLOSED"
    CANCELLED: Final[str] = "CANCELLED"

    ALL: Final[list[str]] = [OPEN, KITCHEN, PREPARING, READY, SERVED, CLOSED, CANCELLED]


class TableStatus:
    """Seating table status constants."""

    FREE: Final[str] = "FREE"
    OCCUPIED: Final[str] = "OCCUPIED"
    RESERVED: Final[str] = "RESERVED"

    ALL: Final[list[str]] = [FREE, OCCUPIED, RESERVED]


class PaymentMethod:
    """Payment method constants."""

    CASH: Final[str] = "CASH"
    CARD: Final[str] = "CARD"
    TRANSFER: Final[str] = "TRANSFER"
    OTHER: Final[str] = "OTHER"

    ALL: Final[list[str]] = [CASH, CARD, TRANSFER, OTHER]


class SyncDirection:
    """Sync ledger direction."""

    PULL: Final[str] = "PULL"
    PUSH: Final[str] = "PUSH"

    ALL: Final[list[str]] = [PULL, PUSH]


class SyncStatus:
    """Sync ledger outcome."""

    SUCCESS: Final[str] = "SUCCESS"
    FAILED: Final[str] = "FAILED"

    ALL: Final[list[str]] = [SUCCESS, FAILED]


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Client-generated identifiers are UUIDs
    MAX_CLIENT_ID_LENGTH: Final[int] = 36

    MAX_NOTES_LENGTH: Final[int] = 1000
    MAX_ACTION_LENGTH: Final[int] = 100
    MAX_REFERENCE_LENGTH: Final[int] = 120
    MAX_RECEIPT_NUMBER_LENGTH: Final[int] = 50
