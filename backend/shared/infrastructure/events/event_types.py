"""
Event Type Constants.

Two families live here:
- live events published on Redis for dashboards (camelCase, the names
  dashboards subscribe to)
- outbox event types, the durable work items written with a push
"""

from shared.config.settings import settings

# =============================================================================
# Live dashboard events (Redis pub/sub)
# =============================================================================

NEW_ORDER = "newOrder"  # One per push batch that created at least one order
INVENTORY_UPDATE = "inventoryUpdate"  # Branch stock snapshot after a deduction

# =============================================================================
# Outbox event types
# =============================================================================

ORDER_INVENTORY_DEDUCTION = "ORDER_INVENTORY_DEDUCTION"
NEW_ORDERS = "NEW_ORDERS"

# Aggregate types recorded on outbox rows
AGGREGATE_ORDER = "order"
AGGREGATE_BRANCH = "branch"

# =============================================================================
# Size limits
# =============================================================================

MAX_EVENT_SIZE = settings.event_max_size
