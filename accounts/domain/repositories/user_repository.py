"""
User Repository Interface.
Defines the Credential Store operations the account flows rely on.
"""

from typing import List, Optional

from accounts.domain.repositories.base import BaseRepository
from accounts.domain.models.user import User, UserRole


class UserRepository(BaseRepository[User]):
    """Interface for User-specific operations."""

    def get_by_email(self, email: str) -> Optional[User]:
        """Get a live user by email, compared case-insensitively."""
        ...

    def email_exists(self, email: str) -> bool:
        """Whether a live user already holds this email."""
        ...

    def count(self, role: UserRole | None = None) -> int:
        """Count live users, optionally restricted to a role."""
        ...

    def list_page(self, offset: int, limit: int, role: UserRole | None = None) -> List[User]:
        """Live users ordered newest first."""
        ...
