"""
Transactional outbox: rows written with a push, handled by the processor.
"""

from .outbox_service import (
    write_outbox_event,
    write_order_deduction_event,
    write_new_orders_event,
)
from .outbox_processor import (
    OutboxProcessor,
    get_outbox_processor,
    start_outbox_processor,
    stop_outbox_processor,
    process_pending_events_once,
)

__all__ = [
    "write_outbox_event",
    "write_order_deduction_event",
    "write_new_orders_event",
    "OutboxProcessor",
    "get_outbox_processor",
    "start_outbox_processor",
    "stop_outbox_processor",
    "process_pending_events_once",
]
