"""
Redis Channel Naming.
"""

from __future__ import annotations


def _validate_positive_id(id_value: int, name: str) -> None:
    if isinstance(id_value, bool) or not isinstance(id_value, int) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value!r}")


def channel_branch_dashboard(branch_id: int) -> str:
    """Channel the branch dashboards subscribe to (orders and stock)."""
    _validate_positive_id(branch_id, "branch_id")
    return f"branch:{branch_id}:dashboard"
