"""
Authentication Module

Verifies HS256 bearer tokens issued by the main application. The token's
`id` (or `sub`) claim is taken as the user id without a user-store lookup.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import AnalyticsSettings, get_settings

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"


@dataclass
class AuthenticatedUser:
    """Identity extracted from a verified token."""

    id: str
    email: Optional[str] = None
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def decode_token(token: str, settings: AnalyticsSettings) -> AuthenticatedUser:
    """
    Verify a token and extract the user identity.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no user id
    """
    if not settings.jwt_secret:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized") from e

    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return AuthenticatedUser(id=str(user_id), email=payload.get("email"), role=payload.get("role") or "user")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    settings: AnalyticsSettings = Depends(get_settings),
) -> AuthenticatedUser:
    """
    FastAPI dependency returning the authenticated user.

    Raises:
        HTTPException: 401 if the Authorization header is missing or invalid
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return decode_token(credentials.credentials, settings)


async def require_admin(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    """
    FastAPI dependency for operations that affect every tenant.

    Raises:
        HTTPException: 403 unless the token carries the admin role
    """
    if not user.is_admin:
        logger.warning(f"Admin-only operation refused for user {user.id}")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
