"""Credential primitives — password hashing, OTP codes and signed tokens."""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext

from accounts.core.exceptions import ConfigError, HashError, InvalidTokenError
from accounts.domain.models.user import UserRole

logger = structlog.get_logger(__name__)


class PasswordHasher:
    """bcrypt via passlib; each hash gets its own random salt."""

    def __init__(self, rounds: int = 10):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, plaintext: str) -> str:
        try:
            return self._context.hash(plaintext)
        except (ValueError, TypeError) as e:
            logger.error("Password hashing failed", error=str(e))
            raise HashError() from e

    def verify(self, plaintext: str, hashed: Optional[str]) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            return False


class OtpGenerator:
    DIGITS = "0123456789"

    def __init__(self, length: int = 6):
        self.length = length

    def generate(self, length: Optional[int] = None) -> str:
        return "".join(secrets.choice(self.DIGITS) for _ in range(length or self.length))


class TokenIssuer:
    """Signs and verifies ``{user_id, role}`` tokens.

    Revocation is not checked here: the Auth Guard compares the presented
    token with the one stored on the user.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", expiration_minutes: int = 60):
        if not secret_key:
            raise ConfigError("JWT secret key is not configured")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.expiration = timedelta(minutes=expiration_minutes)

    def issue(self, user_id: int, role: UserRole, expires_delta: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "user_id": user_id,
            "role": role.value if isinstance(role, UserRole) else str(role),
            "iat": now,
            "exp": now + (expires_delta or self.expiration),
            # Two logins in the same second must still yield distinct tokens
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> dict:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidTokenError(str(e)) from e
        if not isinstance(payload.get("user_id"), int):
            raise InvalidTokenError("Token payload carries no user_id")
        return payload
