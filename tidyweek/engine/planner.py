"""Transition planning for tidyWeek.

Turns per-task verdicts into the minimal batch of stored mutations needed to
bring a task collection in line with its computed lifecycle state.
"""

from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from tidyweek.engine.lifecycle import Verdict, evaluate
from tidyweek.models.constants import MUTATION_BATCH_SIZE
from tidyweek.models.task import Task, TaskCategory


class TransitionPlan:
    """Mutations required for one task collection at one instant."""

    def __init__(self, now: datetime):
        self.now = now
        self.verdicts: Dict[str, Verdict] = {}
        self.to_archive: List[str] = []
        self.to_recategorize: Dict[TaskCategory, List[str]] = {}

    @property
    def is_empty(self) -> bool:
        return not self.to_archive and not self.to_recategorize

    @property
    def overdue_ids(self) -> List[str]:
        return [task_id for task_id, verdict in self.verdicts.items() if verdict.is_overdue]

    @property
    def recategorize_ids(self) -> List[str]:
        return [task_id for ids in self.to_recategorize.values() for task_id in ids]

    def recategorize_target(self, task_id: str) -> Optional[TaskCategory]:
        for target, ids in self.to_recategorize.items():
            if task_id in ids:
                return target
        return None

    def add(self, verdict: Verdict) -> None:
        self.verdicts[verdict.task_id] = verdict
        if verdict.should_archive:
            self.to_archive.append(verdict.task_id)
        elif verdict.recategorize_to is not None:
            target = TaskCategory(verdict.recategorize_to)
            self.to_recategorize.setdefault(target, []).append(verdict.task_id)

    def summary(self) -> Dict[str, object]:
        return {
            "now": self.now.isoformat(),
            "to_archive": list(self.to_archive),
            "to_recategorize": {target.value: list(ids) for target, ids in self.to_recategorize.items()},
            "overdue_ids": self.overdue_ids,
        }


def plan_transitions(tasks: Iterable[Task], now: datetime, tz: tzinfo = timezone.utc) -> TransitionPlan:
    """Evaluate every active task once against the same `now`.

    Archived tasks are skipped. If the same id appears more than once only
    the first occurrence is evaluated. Each id lands in at most one of
    `to_archive` / `to_recategorize`.

    Args:
        tasks: Task snapshot (typically the user's active tasks)
        now: Evaluation instant shared by every task
        tz: Calendar timezone for day/week boundaries

    Returns:
        TransitionPlan with verdicts and grouped mutations
    """
    plan = TransitionPlan(now)
    for task in tasks:
        if task.removed or task.id in plan.verdicts:
            continue
        plan.add(evaluate(task, now, tz))
    return plan


def chunked(ids: Sequence[str], size: int = MUTATION_BATCH_SIZE) -> Iterator[List[str]]:
    """Split ids into batches of at most `size` items.

    Args:
        ids: Ids to split
        size: Maximum batch size (must be positive)

    Returns:
        Iterator over id batches
    """
    if size <= 0:
        raise ValueError("Batch size must be positive")
    for start in range(0, len(ids), size):
        yield list(ids[start:start + size])
