"""JWT utilities for authentication."""

from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from src.config.settings import settings
from src.database.base import utcnow


def create_access_token(
    data: dict[str, Any], expires_delta: timedelta | None = None
) -> tuple[str, str, datetime]:
    """Create a signed JWT access token.

    Adds issuer, audience, a unique ``jti``, ``iat``/``nbf`` = now and ``exp``.

    Args:
        data: Payload data to encode in the token
        expires_delta: Optional expiration time delta

    Returns:
        Tuple of (encoded token, jti, expiry)

    """
    to_encode = data.copy()

    now = utcnow()
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    jti = str(uuid4())
    to_encode.update(
        {
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
            "jti": jti,
            "iat": now,
            "nbf": now,
            "exp": expire,
            "type": "access",
        }
    )

    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)
    return encoded_jwt, jti, expire


def decode_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT token.

    Verifies signature, issuer, audience, expiry and not-before with no clock
    skew tolerance.

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        InvalidTokenError: If token is invalid or expired

    """
    return jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        leeway=0,
        options={"require": ["exp", "nbf", "iat", "iss", "aud", "sub", "jti"]},
    )


def verify_token_type(payload: dict[str, Any], expected_type: str) -> bool:
    """Verify the token type matches expected.

    Args:
        payload: Decoded token payload
        expected_type: Expected token type

    Returns:
        True if type matches, False otherwise

    """
    return payload.get("type") == expected_type
