"""Task creation factory for tidyWeek.

This module centralizes task creation logic to eliminate duplication
and ensure consistent default values across the application.
"""

import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List

from tidyweek.models.task import Task, TaskCategory
from tidyweek.models.constants import DEFAULT_CATEGORY


def create_task_defaults() -> Dict[str, Any]:
    """Get default task values as a dictionary.

    Returns:
        Dictionary with default task field values using constants
    """
    return {
        "notes": None,
        "tags": [],
        "urls": [],
        "category": DEFAULT_CATEGORY,
        "completed": False,
        "completed_at": None,
        "removed": False,
        "removed_at": None,
    }


def create_task(
    user_id: str,
    text: str,
    category: Optional[TaskCategory] = None,
    notes: Optional[str] = None,
    tags: Optional[List[str]] = None,
    urls: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> Task:
    """Create a new active task with defaults, allowing overrides.

    Args:
        user_id: User ID who owns this task (required)
        text: Task text (required)
        category: Task category (defaults to TODAY)
        notes: Task notes
        tags: Free-form tags
        urls: Attached links
        now: Creation instant (defaults to current UTC time)

    Returns:
        Task object with defaults applied
    """
    now = now or datetime.utcnow()
    defaults = create_task_defaults()

    return Task(
        id=str(uuid.uuid4()),
        user_id=user_id,
        text=text,
        notes=notes if notes is not None else defaults["notes"],
        tags=tags if tags is not None else defaults["tags"],
        urls=urls if urls is not None else defaults["urls"],
        category=category if category is not None else defaults["category"],
        completed=defaults["completed"],
        completed_at=defaults["completed_at"],
        removed=defaults["removed"],
        removed_at=defaults["removed_at"],
        created_at=now,
        updated_at=now,
    )


def create_imported_task(user_id: str, data: Dict[str, Any], now: Optional[datetime] = None) -> Task:
    """Create a task from an imported record, keeping its own timestamps.

    The completed/completed_at and removed/removed_at pairs are normalized so
    that each timestamp is present exactly when its flag is set.

    Args:
        user_id: User ID who owns this task
        data: Raw task fields (text, category, tags, notes, urls, completed,
            completed_at, removed, removed_at, created_at, updated_at)
        now: Fallback instant for missing timestamps

    Returns:
        Task object with a fresh id
    """
    now = now or datetime.utcnow()
    defaults = create_task_defaults()

    created_at = data.get("created_at") or now
    updated_at = data.get("updated_at") or created_at

    completed = bool(data.get("completed", False))
    completed_at = data.get("completed_at") if completed else None
    if completed and completed_at is None:
        completed_at = updated_at

    removed = bool(data.get("removed", False))
    removed_at = data.get("removed_at") if removed else None
    if removed and removed_at is None:
        removed_at = updated_at

    return Task(
        id=str(uuid.uuid4()),
        user_id=user_id,
        text=data["text"],
        notes=data.get("notes", defaults["notes"]),
        tags=data.get("tags") or defaults["tags"],
        urls=data.get("urls") or defaults["urls"],
        category=data.get("category") or defaults["category"],
        completed=completed,
        completed_at=completed_at,
        removed=removed,
        removed_at=removed_at,
        created_at=created_at,
        updated_at=updated_at,
    )
