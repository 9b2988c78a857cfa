"""
PIN hashing for terminal users, using bcrypt directly.

PINs are short, so the hash is never exposed through pull responses.
"""

import bcrypt

from shared.config.logging import get_logger

logger = get_logger(__name__)

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_pin(pin: str, rounds: int = 12) -> str:
    """
    Hash a PIN with bcrypt.

    Example:
        hashed = hash_pin("1234")
        # "$2b$12$..."
    """
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pin.encode("utf-8"), salt).decode("utf-8")


def verify_pin(plain_pin: str, hashed_pin: str) -> bool:
    """Check a PIN against its bcrypt hash. Non-bcrypt hashes never match."""
    if not hashed_pin.startswith(BCRYPT_PREFIXES):
        logger.warning("Non-bcrypt PIN hash rejected")
        return False

    return bcrypt.checkpw(plain_pin.encode("utf-8"), hashed_pin.encode("utf-8"))
