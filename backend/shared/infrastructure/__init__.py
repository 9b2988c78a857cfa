"""
Infrastructure module: Database and Redis/events.

Provides:
- Database engine, sessions and transactions (db.py)
- Request correlation ids (correlation.py)
- Redis pub/sub for live dashboard events (events/)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    get_db_context,
    get_session_factory,
    safe_commit,
)

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "get_session_factory",
    "safe_commit",
]
