"""
Security and time helpers shared across services.

Password hashing uses bcrypt, OTP codes are hashed with HMAC-SHA256 so the
hash can be matched directly in a database predicate, and session tokens are
PyJWT-encoded.
"""

from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import secrets
from typing import Any
import uuid

import bcrypt
import jwt

from taskgate.core.config import utils_logger


def utc_now() -> datetime:
    """Default clock used by services; tests inject their own."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes read back from the database.

    SQLite drops tzinfo on ``DateTime(timezone=True)`` columns while PostgreSQL
    keeps it, so comparisons in Python go through this helper.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hash_password(password: str | None) -> str:
    """
    Hash a password using bcrypt with a random salt.

    Args:
        password: The plain text password to hash. Cannot be None.

    Returns:
        str: The bcrypt hash (60 characters, ``$2b$`` prefix).

    Raises:
        ValueError: If password is None.

    Security Notes:
        - bcrypt only reads the first 72 bytes; longer inputs are truncated
          explicitly so hashing and verification agree.
        - Each call produces a different hash for the same password.
    """
    if password is None:
        utils_logger.error("Attempted to hash None password")
        raise ValueError("Password cannot be None")

    password_bytes = password.encode("utf-8")
    if len(password_bytes) > 72:
        utils_logger.debug(
            f"Password exceeds 72 bytes ({len(password_bytes)} bytes), truncating to 72 bytes"
        )
        password_bytes = password_bytes[:72]

    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str | None, hashed_password: str | None) -> bool:
    """
    Verify a password against a bcrypt hash in constant time.

    Returns False for any invalid input (None values, malformed hash) instead
    of raising, so callers can report a uniform credential error.
    """
    if password is None or hashed_password is None:
        utils_logger.warning("Password verification attempted with None value(s)")
        return False

    password_bytes = password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except (ValueError, AttributeError) as e:
        utils_logger.warning(
            f"Password verification failed due to invalid hash format or encoding: {type(e).__name__}"
        )
        return False


def create_jwt_token(
    data: dict[str, Any] | None,
    secret: str,
    algorithm: str,
    expires_delta: timedelta,
) -> str:
    """
    Create a signed JWT carrying ``data`` plus ``exp``, ``iat`` and ``jti`` claims.

    Args:
        data: Claims to encode. Cannot be None.
        secret: Signing secret.
        algorithm: JWT algorithm (e.g. HS256).
        expires_delta: Lifetime of the token.

    Returns:
        str: The encoded token.

    Raises:
        ValueError: If data is None.
    """
    if data is None:
        utils_logger.error("Attempted to create JWT token with None data")
        raise ValueError("Token data cannot be None")

    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode["exp"] = now + expires_delta
    to_encode["iat"] = now
    to_encode["jti"] = str(uuid.uuid4())
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_jwt_token(
    token: str | None, secret: str, algorithm: str
) -> dict[str, Any] | None:
    """
    Decode and validate a JWT.

    Returns None for empty, expired, tampered or otherwise invalid tokens.
    """
    if not token:
        return None
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        utils_logger.warning("JWT token decoding failed: token has expired")
        return None
    except jwt.InvalidTokenError as e:
        utils_logger.warning(
            f"JWT token decoding failed: invalid token - {type(e).__name__}"
        )
        return None


def generate_otp_code(length: int = 6) -> str:
    """
    Generate a uniformly random numeric OTP, preserving leading zeros.

    Args:
        length: Number of digits. Default is 6.

    Returns:
        The code as a zero-padded string.
    """
    return str(secrets.randbelow(10**length)).zfill(length)


def hmac_hash_otp(otp: str | None, secret: str | None) -> str:
    """
    Hash an OTP using HMAC-SHA256.

    The output is deterministic for a given secret, which is what lets the
    verify path match ``code_hash`` inside a single conditional UPDATE.

    Returns:
        str: 64-character hexadecimal digest.

    Raises:
        ValueError: If otp or secret is None or empty.
    """
    if not otp:
        utils_logger.error("Attempted to hash None or empty OTP")
        raise ValueError("OTP cannot be None or empty")

    if not secret:
        utils_logger.error("Attempted to hash OTP with None or empty secret")
        raise ValueError("Secret cannot be None or empty")

    return hmac.new(
        secret.encode("utf-8"), otp.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def normalize_email(email: str) -> str:
    return email.strip().lower()
