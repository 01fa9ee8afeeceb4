"""JWT utilities for OAuth access and refresh tokens.

Provides stateless token generation and validation using PyJWT.
Tokens survive server restarts since validation is done via signature
verification, not by looking up tokens in a store. The "type" claim is
always checked, so a refresh token is never accepted as an access token
and vice versa.
"""

import logging
import time
from typing import Optional

import jwt

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_SECONDS = 7 * 24 * 60 * 60  # 7 days
REFRESH_TOKEN_EXPIRE_SECONDS = 30 * 24 * 60 * 60  # 30 days

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _create_token(
    token_type: str,
    email: str,
    secret: str,
    issuer: Optional[str],
    expires_in: int,
) -> str:
    now = int(time.time())
    payload = {
        "sub": email,              # Subject - standard claim
        "email": email,
        "iat": now,                # Issued at - standard claim
        "exp": now + expires_in,   # Expiration - standard claim
        "type": token_type,
    }
    if issuer:
        payload["iss"] = issuer
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def create_access_token(
    email: str,
    secret: str,
    issuer: str = None,
    expires_in: int = ACCESS_TOKEN_EXPIRE_SECONDS
) -> str:
    """Create a JWT access token.

    Args:
        email: The allowed user's email address (also the subject)
        secret: Shared HMAC signing secret
        issuer: The token issuer (server URL)
        expires_in: Token lifetime in seconds (default 7 days)

    Returns:
        A signed JWT token string
    """
    return _create_token(ACCESS_TOKEN_TYPE, email, secret, issuer, expires_in)


def create_refresh_token(
    email: str,
    secret: str,
    issuer: str = None,
    expires_in: int = REFRESH_TOKEN_EXPIRE_SECONDS
) -> str:
    """Create a JWT refresh token (default lifetime 30 days)."""
    return _create_token(REFRESH_TOKEN_TYPE, email, secret, issuer, expires_in)


def _verify_token(token: str, secret: str, expected_type: str, issuer: str = None) -> Optional[dict]:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
            issuer=issuer or None,
        )
    except jwt.ExpiredSignatureError:
        logger.debug(f"[JWT] {expected_type} token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"[JWT] Invalid {expected_type} token: {e}")
        return None

    if payload.get("type") != expected_type:
        logger.debug(f"[JWT] Token type is {payload.get('type')!r}, expected {expected_type!r}")
        return None

    return payload


def verify_access_token(token: str, secret: str, issuer: str = None) -> Optional[dict]:
    """Verify and decode a JWT access token.

    Args:
        token: The JWT token string
        secret: Shared HMAC signing secret
        issuer: Expected issuer (optional, for additional validation)

    Returns:
        The decoded token payload if valid, None otherwise.
        The payload contains: sub, email, iss, iat, exp, type
    """
    return _verify_token(token, secret, ACCESS_TOKEN_TYPE, issuer)


def verify_refresh_token(token: str, secret: str, issuer: str = None) -> Optional[dict]:
    """Verify and decode a JWT refresh token. Returns None if invalid."""
    return _verify_token(token, secret, REFRESH_TOKEN_TYPE, issuer)
