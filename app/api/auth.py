"""Bearer token handling.

Tokens are HS256 JWTs whose ``sub`` claim is the user id. Issuing tokens
(login, registration) belongs to the account service; this module only
verifies them, plus a helper to mint one for tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import get_settings

_bearer = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    """Encode an access token for a user."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes or settings.jwt_access_token_expire_minutes
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> int:
    """
    Decode an access token.

    Returns:
        The user id carried in ``sub``.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or malformed.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise jwt.InvalidTokenError("Token has expired") from None

    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Not an access token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise jwt.InvalidTokenError("Token has no valid subject") from None


async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> int | None:
    """User id from the bearer token, or None for anonymous callers."""
    if credentials is None:
        return None
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError:
        return None


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> int:
    """User id from the bearer token. Raises 401 when missing or invalid."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
