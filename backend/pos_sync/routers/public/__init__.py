"""
Public endpoints (no authentication).
"""

from .health import router

__all__ = ["router"]
