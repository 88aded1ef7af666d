"""Data models for tidyWeek."""

from tidyweek.models.task import Task, TaskCategory, CategoryConfig, CATEGORY_CONFIG
from tidyweek.models.user import User

__all__ = [
    "Task",
    "TaskCategory",
    "CategoryConfig",
    "CATEGORY_CONFIG",
    "User",
]
