"""
Base Repository Interface.
Defines the standard contract for data access operations.
"""

from typing import TypeVar, Optional, Any, Protocol

T = TypeVar("T")


class BaseRepository(Protocol[T]):
    """Interface for generic CRUD operations over live (not soft-deleted) records."""

    def get_by_id(self, id: int) -> Optional[T]:
        """Get a single live entity by ID."""
        ...

    def create(self, obj_in: Any) -> T:
        """Create a new entity."""
        ...

    def update(self, db_obj: T, obj_in: Any) -> T:
        """Update an existing entity."""
        ...

    def soft_delete(self, db_obj: T, obj_in: Optional[Any] = None) -> T:
        """Mark an entity deleted without removing the row, applying ``obj_in`` too."""
        ...
