# backend/studysphere/auth.py
"""Bearer token handling. Tokens are issued by the identity provider; we only validate them."""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from jwt import PyJWTError

from .core.config import settings
from .principal import Actor, actor_from_claims

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _secret_value() -> str:
    return settings.secret_key.get_secret_value()


def decode_access_token(token: str) -> Dict[str, Any]:
    payload = jwt.decode(token, _secret_value(), algorithms=[settings.algorithm])
    return cast(Dict[str, Any], payload)


def create_access_token(
    user_id: str, role: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Used by tests and local tooling; production tokens come from the identity provider.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {"sub": user_id, "role": role, "exp": expire}
    return jwt.encode(to_encode, _secret_value(), algorithm=settings.algorithm)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """
    Dependency resolving the caller from the Authorization header.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    invalid_credentials = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(credentials.credentials)
    except PyJWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise invalid_credentials

    user_id = payload.get("sub")
    role = payload.get("role")
    if not isinstance(user_id, str) or not isinstance(role, str):
        logger.warning("Token payload missing 'sub' or 'role'")
        raise invalid_credentials

    try:
        return actor_from_claims(user_id, role)
    except ValueError:
        logger.warning(f"Token carries unknown role {role!r}")
        raise invalid_credentials
