"""JWT helpers for API session tokens."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.config import settings

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def _encode(data: dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    """Encode a payload with expiry, issue time and token type claims."""
    now = datetime.now(UTC)
    to_encode = data.copy()
    to_encode.update(
        {
            "exp": now + expires_delta,
            "iat": now,
            "type": token_type,
        }
    )
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    return _encode(data, ACCESS_TOKEN, expires_delta)


def create_refresh_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT refresh token."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.refresh_token_expire_days)
    return _encode(data, REFRESH_TOKEN, expires_delta)


def decode_token(token: str, token_type: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT of the given type.

    Args:
        token: JWT token to decode
        token_type: Expected value of the ``type`` claim

    Returns:
        Decoded payload or None if invalid, expired or of another type
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("type") != token_type:
        return None

    return payload


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate an access token."""
    return decode_token(token, ACCESS_TOKEN)


def decode_refresh_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a refresh token."""
    return decode_token(token, REFRESH_TOKEN)
