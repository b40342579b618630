"""
SQLAlchemy implementation of the Base Repository.
"""

from datetime import datetime, timezone
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session
from accounts.domain.repositories.base import BaseRepository
from accounts.infrastructure.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class SQLAlchemyRepository(BaseRepository[ModelType], Generic[ModelType]):
    """Generic repository implementation for soft-deletable SQLAlchemy models."""

    def __init__(self, db: Session, model: Type[ModelType]):
        self.db = db
        self.model = model

    def _live(self) -> Query:
        return self.db.query(self.model).filter(self.model.deleted_at.is_(None))

    def get_by_id(self, id: int) -> Optional[ModelType]:
        return self._live().filter(self.model.id == id).first()

    def create(self, obj_in: Any) -> ModelType:
        # obj_in is a dict or pydantic model
        if hasattr(obj_in, "model_dump"):
            obj_data = obj_in.model_dump(exclude_unset=True)
        else:
            obj_data = obj_in

        db_obj = self.model(**obj_data)
        self.db.add(db_obj)
        self._commit()
        self.db.refresh(db_obj)
        return db_obj

    def update(self, db_obj: ModelType, obj_in: Any) -> ModelType:
        if hasattr(obj_in, "model_dump"):
            update_data = obj_in.model_dump(exclude_unset=True)
        else:
            update_data = obj_in

        for field in update_data:
            if hasattr(db_obj, field):
                setattr(db_obj, field, update_data[field])

        self.db.add(db_obj)
        self._commit()
        self.db.refresh(db_obj)
        return db_obj

    def soft_delete(self, db_obj: ModelType, obj_in: Optional[dict] = None) -> ModelType:
        return self.update(db_obj, {**(obj_in or {}), "deleted_at": datetime.now(timezone.utc)})

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
