"""
Security module: JWT verification, role checks, PIN hashing, rate limiting.
"""

from shared.security.auth import (
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    current_user_context,
    require_roles,
)
from shared.security.password import hash_pin, verify_pin
from shared.security.rate_limit import (
    limiter,
    rate_limit_exceeded_handler,
    SYNC_RATE_LIMIT,
)

__all__ = [
    # auth
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_user_context",
    "require_roles",
    # password
    "hash_pin",
    "verify_pin",
    # rate_limit
    "limiter",
    "rate_limit_exceeded_handler",
    "SYNC_RATE_LIMIT",
]
