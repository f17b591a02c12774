"""
Base repository class providing common database operations.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy.orm import Session

from repositories.database import Base

T = TypeVar("T", bound=Base)  # type: ignore[type-arg]


class BaseRepository(Generic[T]):
    """
    Base repository providing common CRUD operations.

    Type parameter T should be a SQLAlchemy model class. Methods that end in
    a commit say so; the rest leave the transaction open for the caller.
    """

    def __init__(self, model: type[T], db: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    def get_by_id(self, id: int) -> T | None:
        """
        Get entity by ID.

        Args:
            id: Entity ID

        Returns:
            Entity if found, None otherwise
        """
        return self.db.query(self.model).filter(self.model.id == id).first()

    def get_all(self, skip: int = 0, limit: int = 100) -> list[T]:
        """Get entities with pagination."""
        return self.db.query(self.model).offset(skip).limit(limit).all()

    def add(self, entity: T) -> None:
        """Add entity to session without committing."""
        self.db.add(entity)

    def create(self, entity: T) -> T:
        """
        Insert a new entity and commit.

        Args:
            entity: Entity to create

        Returns:
            Created entity, refreshed with generated columns
        """
        self.db.add(entity)
        self.db.commit()
        self.db.refresh(entity)
        return entity

    def update(self, entity: T) -> T:
        """Commit pending attribute changes on an entity and refresh it."""
        self.db.commit()
        self.db.refresh(entity)
        return entity

    def delete(self, entity: T) -> None:
        """Delete entity and commit."""
        self.db.delete(entity)
        self.db.commit()

    def update_where(self, values: dict[str, Any], *criteria: Any) -> int:
        """
        Conditional UPDATE without loading rows.

        The row only changes if it still matches every criterion, which lets
        callers detect that someone else wrote first. Does not commit.

        Args:
            values: Column name to new value
            *criteria: SQLAlchemy filter expressions

        Returns:
            Number of rows changed
        """
        return (
            self.db.query(self.model)
            .filter(*criteria)
            .update(values, synchronize_session=False)
        )

    def count(self) -> int:
        """Count total number of entities."""
        return self.db.query(self.model).count()

    def commit(self) -> None:
        """Commit the current transaction."""
        self.db.commit()

    def flush(self) -> None:
        """Flush pending changes without committing."""
        self.db.flush()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.db.rollback()

    def refresh(self, entity: T) -> None:
        """Refresh entity from database."""
        self.db.refresh(entity)
