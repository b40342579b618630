"""Auth Guard — resolves a bearer token to an active, authorised user.

Shared by the HTTP dependencies and the WebSocket handshake; only the way
the token is extracted differs between the two.
"""

from typing import Optional, Union

import structlog

from accounts.application.services.security import TokenIssuer
from accounts.core.exceptions import ForbiddenException, InvalidTokenError, UnauthorizedException
from accounts.domain.models.user import User, UserRole, UserStatus
from accounts.domain.repositories.user_repository import UserRepository

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an ``Authorization`` value; a bare token is accepted too."""
    if not authorization:
        return None
    token = authorization.strip()
    if token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):].strip()
    return token or None


def _role_allows(user: User, required_role: Union[UserRole, str, None]) -> bool:
    if required_role is None:
        return True
    try:
        required = UserRole(required_role)
    except ValueError:
        return False
    return UserRole(user.role) == required


# Exhaustive over UserStatus
_STATUS_ALLOWED = {
    UserStatus.ACTIVE: True,
    UserStatus.INACTIVE: False,
    UserStatus.BLOCKED: False,
    UserStatus.DELETED: False,
}


class AuthGuard:
    def __init__(self, repo: UserRepository, tokens: TokenIssuer, support_email: str = ""):
        self.repo = repo
        self.tokens = tokens
        self.support_email = support_email

    def authenticate(self, token: Optional[str], required_role: Union[UserRole, str, None] = None) -> User:
        if not token:
            raise UnauthorizedException("auth.unauthorizedRequest")

        try:
            payload = self.tokens.verify(token)
        except InvalidTokenError as e:
            logger.info("Rejected token", reason=str(e))
            raise UnauthorizedException("auth.invalidToken") from e

        # Soft-deleted users are not returned, so their tokens fail here
        user = self.repo.get_by_id(payload["user_id"])
        if user is None:
            raise UnauthorizedException("error.userNotFound")

        if not user.auth_token or user.auth_token != token:
            raise UnauthorizedException("auth.tokenMismatch")

        if not _role_allows(user, required_role):
            raise ForbiddenException("auth.unauthorizedRole")

        if not _STATUS_ALLOWED[UserStatus(user.status)]:
            raise UnauthorizedException("auth.accountBlocked", params={"support_email": self.support_email})

        return user
