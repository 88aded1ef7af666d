"""Task data model for tidyWeek."""

from datetime import datetime
from typing import Dict, List, NamedTuple, Optional
from enum import Enum
from pydantic import BaseModel, Field


class TaskCategory(str, Enum):
    """Task category enumeration.

    The category governs deadline and transition rules (see engine.deadlines).
    """
    TODAY = "today"
    THIS_WEEK = "this_week"
    NEXT_WEEK = "next_week"
    OTHERS = "others"


class CategoryConfig(NamedTuple):
    """Display metadata for a category."""
    label: str
    emoji: str
    rule: str


CATEGORY_CONFIG: Dict[TaskCategory, CategoryConfig] = {
    TaskCategory.TODAY: CategoryConfig(
        label="Today",
        emoji="🔴",
        rule="Overdue after the day it was added; archived the day after completion.",
    ),
    TaskCategory.THIS_WEEK: CategoryConfig(
        label="This Week",
        emoji="🟠",
        rule="Overdue after Sunday of the week it was added; archived after the week of completion.",
    ),
    TaskCategory.NEXT_WEEK: CategoryConfig(
        label="Next Week",
        emoji="🟣",
        rule="Moves to This Week once the week it was added ends; archived after the week of completion.",
    ),
    TaskCategory.OTHERS: CategoryConfig(
        label="Others",
        emoji="🔵",
        rule="No deadline; never moved or archived automatically.",
    ),
}


class Task(BaseModel):
    """Canonical Task model."""

    id: str = Field(..., description="Unique task identifier (UUID v4)")
    user_id: str = Field(..., description="User ID who owns this task")
    text: str = Field(..., description="Task text")
    notes: Optional[str] = Field(None, description="Task notes")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")
    urls: List[str] = Field(default_factory=list, description="Attached links")
    category: TaskCategory = Field(TaskCategory.TODAY, description="Task category")
    completed: bool = Field(False, description="Whether the task is completed")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp (set iff completed)")
    removed: bool = Field(False, description="Whether the task is archived")
    removed_at: Optional[datetime] = Field(None, description="Archive timestamp (set iff removed)")
    created_at: datetime = Field(..., description="When the task entered its current category")
    updated_at: datetime = Field(..., description="Task last update timestamp")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
