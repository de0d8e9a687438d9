"""
auth.py
Operator login (bcrypt hashing, verify, login against the configured account).

Generate a hash for PAYADMIN_ADMIN_PASSWORD_HASH with:
    python auth.py <password>
"""

from __future__ import annotations

import hmac
import logging
import sys

import bcrypt

from config import Settings

logger = logging.getLogger(__name__)


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in configuration).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = _to_bcrypt_secret(password)
    try:
        return bcrypt.checkpw(secret, password_hash.encode("utf-8"))
    except ValueError:
        # malformed hash in configuration
        logger.error("Configured admin password hash is not a valid bcrypt hash")
        return False


def is_configured(settings: Settings) -> bool:
    return bool(settings.admin_password_hash)


def login(username: str, password: str, settings: Settings) -> bool:
    if not is_configured(settings):
        return False
    if not hmac.compare_digest(username.encode("utf-8"), settings.admin_username.encode("utf-8")):
        logger.info("Login rejected for unknown user %s", username)
        return False
    ok = verify_password(password, settings.admin_password_hash)
    if not ok:
        logger.info("Login rejected for %s: wrong password", username)
    return ok


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: python auth.py <password>")
    print(hash_password(sys.argv[1]))
