"""SQLAlchemy database models for tidyWeek."""

from datetime import datetime
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, JSON, ForeignKey, Index

from typing import Optional, Union, TypeVar, Type
from tidyweek.database.database import Base
from tidyweek.engine.clock import to_storage
from tidyweek.models.task import TaskCategory

T = TypeVar('T')


def enum_to_value(enum_obj: Union[str, T]) -> str:
    """Convert enum to string value (handles both enum and string).

    Args:
        enum_obj: Enum instance or string value

    Returns:
        String value of the enum, or the string itself if already a string
    """
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)


def value_to_enum(value: str, enum_class: Type[T], default: T) -> T:
    """Convert string to enum with fallback to default.

    Args:
        value: String value to convert
        enum_class: Enum class to convert to
        default: Default enum value if conversion fails

    Returns:
        Enum instance, or default if conversion fails
    """
    if not value:
        return default
    try:
        return enum_class(value.lower())
    except (ValueError, AttributeError):
        return default


def _stored(dt: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are persisted as naive UTC."""
    return to_storage(dt) if dt is not None else None


class TaskDB(Base):
    """Database model for Task."""

    __tablename__ = "tasks"
    __table_args__ = (
        # Active/archived listings always filter by owner and archive flag.
        Index("ix_tasks_user_removed", "user_id", "removed"),
    )

    # Primary key
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # User association
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Basic fields
    text = Column(String, nullable=False)
    notes = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    urls = Column(JSON, nullable=False, default=list)
    category = Column(String, nullable=False, default=TaskCategory.TODAY.value)

    # Lifecycle state (each timestamp is set iff its flag is set)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    removed = Column(Boolean, nullable=False, default=False)
    removed_at = Column(DateTime, nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from tidyweek.models.task import Task

        return Task(
            id=self.id,
            user_id=self.user_id,
            text=self.text,
            notes=self.notes,
            tags=self.tags or [],
            urls=self.urls or [],
            category=value_to_enum(self.category, TaskCategory, TaskCategory.OTHERS),
            completed=bool(self.completed),
            completed_at=self.completed_at,
            removed=bool(self.removed),
            removed_at=self.removed_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_pydantic(cls, task):
        """Create database model from Pydantic model."""
        return cls(
            id=task.id,
            user_id=task.user_id,
            text=task.text,
            notes=task.notes,
            tags=list(task.tags),
            urls=list(task.urls),
            category=enum_to_value(task.category),
            completed=task.completed,
            completed_at=_stored(task.completed_at),
            removed=task.removed,
            removed_at=_stored(task.removed_at),
            created_at=_stored(task.created_at),
            updated_at=_stored(task.updated_at),
        )


class UserDB(Base):
    """Database model for User."""

    __tablename__ = "users"

    # Primary key
    id = Column(String, primary_key=True)

    # User profile
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from tidyweek.models.user import User
        return User(
            id=self.id,
            email=self.email,
            name=self.name,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_pydantic(cls, user):
        """Create database model from Pydantic model."""
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
