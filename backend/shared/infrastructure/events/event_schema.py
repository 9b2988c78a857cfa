"""
Event Schema.

Every live event published for dashboards uses this envelope.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Event:
    """
    Envelope for dashboard events.

    ``entity`` holds the event-specific data (order ids, stock snapshot);
    ``actor`` identifies who triggered it (a user id, or the outbox worker).
    """

    type: str
    branch_id: int
    entity: dict[str, Any] = field(default_factory=dict)
    actor: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1  # Schema version

    def __post_init__(self) -> None:
        # Malformed events never reach Redis
        if not self.type or not isinstance(self.type, str):
            raise ValueError("Event type must be a non-empty string")

        if isinstance(self.branch_id, bool) or not isinstance(self.branch_id, int) or self.branch_id <= 0:
            raise ValueError("Event branch_id must be a positive integer")

        if self.entity is not None and not isinstance(self.entity, dict):
            raise ValueError("Event entity must be a dict or None")

        if self.actor is not None and not isinstance(self.actor, dict):
            raise ValueError("Event actor must be a dict or None")

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        data = asdict(self)
        data["entity"] = data["entity"] or {}
        data["actor"] = data["actor"] or {}
        data["ts"] = data["ts"] or datetime.now(timezone.utc).isoformat()
        return json.dumps(data, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        """Deserialize an event; validation runs in __post_init__."""
        return cls(**json.loads(json_str))
