"""
Repository layer: branch-scoped data access with explicit soft delete.
"""

from .base import EntityStore

__all__ = ["EntityStore"]
