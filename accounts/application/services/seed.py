"""Startup seeding of the administrator account."""

import structlog

from accounts.application.services.security import PasswordHasher
from accounts.config import Settings
from accounts.domain.models.user import User, UserRole, UserStatus
from accounts.domain.repositories.user_repository import UserRepository

logger = structlog.get_logger(__name__)


def ensure_admin(repo: UserRepository, hasher: PasswordHasher, settings: Settings) -> User:
    """Create the configured admin unless a live record with that email exists."""
    email = settings.ADMIN_EMAIL.strip().lower()
    existing = repo.get_by_email(email)
    if existing is not None:
        return existing

    admin = repo.create(
        {
            "email": email,
            "password_hash": hasher.hash(settings.ADMIN_PASSWORD),
            "first_name": settings.ADMIN_FIRST_NAME,
            "last_name": settings.ADMIN_LAST_NAME,
            "role": UserRole.ADMIN,
            "status": UserStatus.ACTIVE,
            "is_email_verified": True,
        }
    )
    logger.info("Default admin user created", email=email)
    return admin
