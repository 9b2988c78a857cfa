"""
Domain services.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)
        ↓
    EntityStore (branch-scoped data access)
        ↓
    Model (entity)

Usage:
    from pos_sync.services.domain import SyncService

    service = SyncService(db, session_factory)
    result = service.push_changes(batch, branch_id)
"""

from .sync_ledger import SyncLedger
from .inventory_service import InventoryService
from .sync_service import SyncService, SyncRecordError

__all__ = [
    "SyncLedger",
    "InventoryService",
    "SyncService",
    "SyncRecordError",
]
