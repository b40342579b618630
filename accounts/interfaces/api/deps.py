"""FastAPI dependency — bearer-token auth via the Auth Guard."""

from typing import Optional

import pytz
from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accounts.application.services.auth_guard import AuthGuard
from accounts.domain.models.user import User, UserRole
from accounts.interfaces.deps import get_auth_guard

# Missing credentials are reported by the guard in the response envelope
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    guard: AuthGuard = Depends(get_auth_guard),
) -> User:
    """Resolve the bearer token to an active user."""
    token = credentials.credentials if credentials else None
    return guard.authenticate(token)


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    guard: AuthGuard = Depends(get_auth_guard),
) -> User:
    """Require admin role."""
    token = credentials.credentials if credentials else None
    return guard.authenticate(token, required_role=UserRole.ADMIN)


def get_timezone(x_timezone: Optional[str] = Header(default=None, alias="x-timezone")) -> str:
    """Client timezone for date formatting; unknown names fall back to UTC."""
    if x_timezone and x_timezone in pytz.all_timezones_set:
        return x_timezone
    return "UTC"
