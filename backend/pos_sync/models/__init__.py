"""
SQLAlchemy ORM Models Package.

- base: Base class, AuditMixin, ClientIdMixin
- branch: Branch
- user: User
- catalog: Category, Product
- table: SeatingTable
- shift: Shift
- order: Order, OrderItem
- payment: Payment
- audit: AuditLog
- inventory: InventoryItem, RecipeIngredient
- sync_log: SyncLog (sync ledger)
- outbox: OutboxEvent, OutboxStatus
"""

from .base import Base, AuditMixin, ClientIdMixin, utcnow, as_utc

from .branch import Branch
from .user import User
from .catalog import Category, Product
from .table import SeatingTable
from .shift import Shift
from .order import Order, OrderItem
from .payment import Payment
from .audit import AuditLog
from .inventory import InventoryItem, RecipeIngredient
from .sync_log import SyncLog
from .outbox import OutboxEvent, OutboxStatus

__all__ = [
    # Base
    "Base",
    "AuditMixin",
    "ClientIdMixin",
    "utcnow",
    "as_utc",
    # Branch / staff
    "Branch",
    "User",
    # Catalog
    "Category",
    "Product",
    "SeatingTable",
    # Synced operational data
    "Shift",
    "Order",
    "OrderItem",
    "Payment",
    "AuditLog",
    # Inventory
    "InventoryItem",
    "RecipeIngredient",
    # Sync ledger
    "SyncLog",
    # Outbox
    "OutboxEvent",
    "OutboxStatus",
]
