"""
SQLAlchemy Implementation of User Repository.
"""

from typing import List, Optional

from sqlalchemy import func

from accounts.domain.models.user import User, UserRole
from accounts.domain.repositories.user_repository import UserRepository
from accounts.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyUserRepository(SQLAlchemyRepository[User], UserRepository):
    """User repository implementation using SQLAlchemy."""

    def __init__(self, db, model=User):
        super().__init__(db, model)

    def get_by_email(self, email: str) -> Optional[User]:
        return self._live().filter(func.lower(User.email) == email.strip().lower()).first()

    def email_exists(self, email: str) -> bool:
        query = self.db.query(func.count(User.id)).filter(
            User.deleted_at.is_(None),
            func.lower(User.email) == email.strip().lower(),
        )
        return (query.scalar() or 0) > 0

    def count(self, role: UserRole | None = None) -> int:
        query = self.db.query(func.count(User.id)).filter(User.deleted_at.is_(None))
        if role is not None:
            query = query.filter(User.role == role)
        return query.scalar() or 0

    def list_page(self, offset: int, limit: int, role: UserRole | None = None) -> List[User]:
        query = self._live()
        if role is not None:
            query = query.filter(User.role == role)
        return (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
