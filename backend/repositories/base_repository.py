"""
Base repository providing common CRUD operations.
"""

from typing import Generic, TypeVar, Optional, Type
from sqlalchemy.orm import Session

T = TypeVar('T')


class BaseRepository(Generic[T]):
    """
    Generic base repository for models keyed by a single column.
    Specific repositories inherit from this class and add their own queries.
    """

    def __init__(self, db: Session, model: Type[T], key_column: str = 'id'):
        """
        Initialize the repository.

        Args:
            db: SQLAlchemy database session
            model: SQLAlchemy model class
            key_column: Name of the primary key attribute
        """
        self.db = db
        self.model = model
        self.key = getattr(model, key_column)

    def get_by_key(self, key: str) -> Optional[T]:
        """
        Retrieve a record by its primary key.

        Returns:
            Model instance or None if not found
        """
        return self.db.query(self.model).filter(self.key == key).first()

    def commit(self) -> None:
        """Commit the current transaction, rolling back on failure."""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
