"""
Shared infrastructure for the POS sync service.

- shared.config: settings (pydantic-settings), structured logging, constants
- shared.infrastructure: SQLAlchemy engine/sessions, correlation ids,
  Redis event publishing for live dashboards
- shared.security: JWT verification, role checks, PIN hashing, rate limiting
- shared.utils: HTTP exceptions, health check helpers, Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import current_user_context, require_roles
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.utils.exceptions import NotFoundError, ValidationError
"""
