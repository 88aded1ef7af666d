"""Lifecycle evaluation for tidyWeek.

Given one task and an instant, decides whether the task is overdue, whether
it should move to another category, and whether it should be archived.
This function is pure - same inputs always produce same outputs, no matter
where `now` came from (real or simulated clock).
"""

from datetime import datetime, timezone, tzinfo
from typing import Optional
from pydantic import BaseModel, Field

from tidyweek.engine.deadlines import (
    archive_deadline,
    is_past,
    overdue_deadline,
    transition_deadline,
)
from tidyweek.models.task import Task, TaskCategory


class Verdict(BaseModel):
    """Evaluator output for one task at one instant."""

    task_id: str = Field(..., description="Evaluated task ID")
    is_overdue: bool = Field(False, description="Active, incomplete and past its category deadline")
    recategorize_to: Optional[TaskCategory] = Field(None, description="Target category, if the task should move")
    should_archive: bool = Field(False, description="Whether the task should be archived now")

    @property
    def requires_change(self) -> bool:
        """Whether the verdict asks for a stored mutation."""
        return self.recategorize_to is not None or self.should_archive


def evaluate(task: Task, now: datetime, tz: tzinfo = timezone.utc) -> Verdict:
    """Evaluate a task's lifecycle state at `now`.

    Rules:
    1. Overdue: incomplete and past the category's overdue deadline
       (TODAY: end of creation day; THIS_WEEK: end of creation week).
    2. Incomplete NEXT_WEEK tasks move to THIS_WEEK once the week they
       were created in has ended.
    3. Completed tasks with a completion timestamp are archived once
       their archive deadline passes (TODAY: day after completion;
       THIS_WEEK/NEXT_WEEK: week after completion; OTHERS: never).

    Rule 2 only applies to incomplete tasks and rule 3 only to completed
    ones, so a verdict never asks for both a move and an archive.

    Archived tasks and tasks missing the timestamps a rule needs get a
    no-op verdict instead of an error.

    Args:
        task: Task snapshot to evaluate
        now: Evaluation instant
        tz: Calendar timezone for day/week boundaries

    Returns:
        Verdict for the task
    """
    if task.removed:
        return Verdict(task_id=task.id)

    try:
        category = TaskCategory(task.category)
    except ValueError:
        return Verdict(task_id=task.id)

    if not task.completed:
        overdue = is_past(now, overdue_deadline(category, task.created_at, tz))

        recategorize_to = None
        if is_past(now, transition_deadline(category, task.created_at, tz)):
            recategorize_to = TaskCategory.THIS_WEEK

        return Verdict(task_id=task.id, is_overdue=overdue, recategorize_to=recategorize_to)

    # Completed: never overdue, never moved
    should_archive = is_past(now, archive_deadline(category, task.completed_at, tz))
    return Verdict(task_id=task.id, should_archive=should_archive)


def is_overdue(task: Task, now: datetime, tz: tzinfo = timezone.utc) -> bool:
    """Check if a task is overdue at `now` (for badges and filters)."""
    return evaluate(task, now, tz).is_overdue
