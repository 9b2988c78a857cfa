"""
Authentication and authorization utilities.

Terminals and the dashboard send ``Authorization: Bearer <JWT>``. The token
is issued by the external auth service; this module only verifies it and
exposes the caller context. The ``branch_id`` claim is the single source of
branch scoping for every sync call.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Header

from shared.config.settings import JWT_AUDIENCE, JWT_ISSUER, JWT_SECRET, settings
from shared.config.logging import auth_logger as logger, mask_user_id
from shared.utils.exceptions import AuthenticationError, InsufficientRoleError


# =============================================================================
# JWT Functions
# =============================================================================


def sign_jwt(
    payload: dict[str, Any],
    ttl_seconds: int | None = None,
    token_type: str = "access",
) -> str:
    """
    Sign a JWT with the given payload.

    Used by the CLI to mint development tokens and by tests; production
    tokens come from the auth service with the same claims.

    Args:
        payload: Claims to include (sub, branch_id, roles).
        ttl_seconds: Token lifetime in seconds. Defaults to access token expiry.
        token_type: Token type claim.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "type": token_type,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT.

    Required claims: ``sub`` (user id, string) and ``branch_id`` (positive int).

    Raises:
        AuthenticationError: If the token is invalid, expired or lacks claims.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        # The decode error stays in the log, the client gets a generic message
        raise AuthenticationError("Invalid token", error=str(e))

    if payload.get("type") not in ("access", None):
        raise AuthenticationError("Invalid token: invalid type claim")

    sub = payload.get("sub")
    if sub is None or str(sub).strip() == "":
        raise AuthenticationError("Invalid token: missing subject claim")
    payload["sub"] = str(sub)

    branch_id = payload.get("branch_id")
    if isinstance(branch_id, bool) or not isinstance(branch_id, int) or branch_id <= 0:
        raise AuthenticationError(
            "Invalid token: missing or malformed branch_id claim",
            user_id=mask_user_id(payload["sub"]),
        )

    roles = payload.get("roles", [])
    if not isinstance(roles, list):
        raise AuthenticationError("Invalid token: malformed roles claim")

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from the Authorization header.

    Raises:
        AuthenticationError: If the header is missing or malformed.
    """
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError(
            "Invalid Authorization header format. Expected: Bearer <token>"
        )
    return token.strip()


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency returning the verified caller context.

    Usage:
        @router.get("/pull")
        def pull(ctx: dict[str, Any] = Depends(current_user_context)):
            branch_id = ctx["branch_id"]

    Returns:
        Dict with: sub (user id), branch_id, roles
    """
    token = get_bearer_token(authorization)
    return verify_jwt(token)


def require_roles(ctx: dict[str, Any], allowed: list[str] | frozenset[str]) -> None:
    """
    Verify that the caller has at least one of the allowed roles.

    Raises:
        InsufficientRoleError: If the caller lacks every allowed role.
    """
    user_roles = set(ctx.get("roles", []))
    if not user_roles.intersection(allowed):
        logger.warning(
            "Role check failed",
            user_id=mask_user_id(ctx.get("sub")),
            roles=sorted(user_roles),
        )
        raise InsufficientRoleError(sorted(allowed))
