"""JWT helpers for bearer-token identity.

Tokens are issued by the identity service; this API only needs to read the
``sub`` claim. ``create_access_token`` exists for tooling and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from medix.config import settings

ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        data: Payload data to encode (must include ``sub``)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode = {**data, "exp": expire, "iat": now, "type": ACCESS_TOKEN_TYPE}
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate an access token.

    Returns:
        Decoded payload, or None if the signature, expiry or type is invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return None

    return payload
