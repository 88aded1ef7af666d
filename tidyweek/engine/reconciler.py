"""Dual-mode reconciliation for tidyWeek.

Both modes run the same evaluator and planner; only the last step differs:

- COMMIT (real clock): apply the plan to storage as durable writes.
- RENDER (simulated clock): project the plan onto an in-memory view and
  write nothing.
"""

import logging
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple

from tidyweek.engine.clock import Clock, to_storage
from tidyweek.engine.lifecycle import Verdict, evaluate
from tidyweek.engine.planner import TransitionPlan, chunked, plan_transitions
from tidyweek.models.constants import MUTATION_BATCH_SIZE
from tidyweek.models.mutation import MutationResult
from tidyweek.models.task import Task, TaskCategory

logger = logging.getLogger(__name__)


class ReconcileMode(str, Enum):
    """Reconciliation mode enumeration."""
    COMMIT = "commit"
    RENDER = "render"


class ReconcileError(ValueError):
    """Raised when a reconciliation pass is requested with an unusable setup."""


class LifecycleStore(Protocol):
    """Storage operations the reconciler consumes."""

    def list_active_tasks(self, user_id: str) -> List[Task]:
        ...

    def list_archived_tasks(
        self,
        user_id: str,
        page: int = 0,
        page_size: int = 20,
        search: Optional[str] = None,
    ) -> List[Task]:
        ...

    def apply_archive(self, user_id: str, task_ids: List[str], at: datetime) -> MutationResult:
        ...

    def apply_recategorize(
        self,
        user_id: str,
        task_ids: List[str],
        target: TaskCategory,
        at: datetime,
    ) -> MutationResult:
        ...


class ProjectedView:
    """Task collections as they look once a plan has been applied."""

    def __init__(self, active: List[Task], archived: List[Task], verdicts: Dict[str, Verdict]):
        self.active = active
        self.archived = archived
        self.verdicts = verdicts


class ReconcileResult:
    """Result of a reconciliation pass."""

    def __init__(
        self,
        mode: ReconcileMode,
        plan: TransitionPlan,
        projected: ProjectedView,
        committed_ids: Optional[List[str]] = None,
        failed_ids: Optional[List[str]] = None,
    ):
        self.mode = mode
        self.plan = plan
        self.projected = projected
        self.committed_ids: List[str] = committed_ids or []
        self.failed_ids: List[str] = failed_ids or []

    @property
    def partial(self) -> bool:
        return bool(self.failed_ids)


def reconcile_mode_for(clock: Clock) -> ReconcileMode:
    """RENDER while the clock is simulated, COMMIT otherwise."""
    if getattr(clock, "is_simulated", False):
        return ReconcileMode.RENDER
    return ReconcileMode.COMMIT


def _recategorized(task: Task, target: TaskCategory, now: datetime) -> Task:
    changes = {"category": target.value, "updated_at": to_storage(now)}
    if target != TaskCategory.OTHERS:
        changes["created_at"] = to_storage(now)
    return task.model_copy(update=changes)


def _archived(task: Task, now: datetime) -> Task:
    return task.model_copy(update={"removed": True, "removed_at": to_storage(now), "updated_at": to_storage(now)})


def project(
    tasks: Iterable[Task],
    plan: TransitionPlan,
    archived: Optional[Iterable[Task]] = None,
    tz: tzinfo = timezone.utc,
    applied: Optional[Set[str]] = None,
) -> ProjectedView:
    """Apply a plan to task snapshots in memory.

    Recategorized tasks appear under their target with their deadline clock
    reset to the plan instant; archived tasks move to the front of the
    archive view. When `applied` is given only those ids are changed (the
    ones storage actually accepted).

    Args:
        tasks: Active task snapshot the plan was computed from
        plan: Transition plan
        archived: Already-archived tasks to show after the new ones
        tz: Calendar timezone for the refreshed verdicts
        applied: Restrict projection to these ids

    Returns:
        ProjectedView with refreshed verdicts for the active tasks
    """
    now = plan.now
    to_archive = set(plan.to_archive)
    active: List[Task] = []
    newly_archived: List[Task] = []

    for task in tasks:
        if task.removed:
            continue
        changed = applied is None or task.id in applied
        target = plan.recategorize_target(task.id)
        if changed and task.id in to_archive:
            newly_archived.append(_archived(task, now))
        elif changed and target is not None:
            active.append(_recategorized(task, target, now))
        else:
            active.append(task)

    verdicts = {task.id: evaluate(task, now, tz) for task in active}
    return ProjectedView(
        active=active,
        archived=newly_archived + list(archived or []),
        verdicts=verdicts,
    )


def _commit(
    plan: TransitionPlan,
    store: LifecycleStore,
    user_id: str,
    batch_size: int,
) -> Tuple[List[str], List[str]]:
    result = MutationResult()
    for batch in chunked(plan.to_archive, batch_size):
        result = result.merge(store.apply_archive(user_id, batch, plan.now))
    for target, ids in plan.to_recategorize.items():
        for batch in chunked(ids, batch_size):
            result = result.merge(store.apply_recategorize(user_id, batch, target, plan.now))

    if result.not_found_ids:
        logger.debug(f"Skipped {len(result.not_found_ids)} tasks no longer eligible for user {user_id}")
    if result.failed_ids:
        logger.warning(
            f"Reconcile for user {user_id} partially failed: "
            f"{result.affected_count} written, {len(result.failed_ids)} failed"
        )
    return result.affected_ids, result.failed_ids


def reconcile(
    tasks: Iterable[Task],
    now: datetime,
    mode: ReconcileMode,
    store: Optional[LifecycleStore] = None,
    user_id: Optional[str] = None,
    archived: Optional[Iterable[Task]] = None,
    tz: tzinfo = timezone.utc,
    batch_size: int = MUTATION_BATCH_SIZE,
) -> ReconcileResult:
    """Reconcile stored task state with computed lifecycle state.

    Every verdict in the pass is computed against the same `now`. In COMMIT
    mode an empty plan performs no writes, so running this on every load is
    safe. Failed writes are reported, not retried; the next pass recomputes
    them from stored state.

    Args:
        tasks: Active task snapshot
        now: Evaluation instant
        mode: COMMIT to write through `store`, RENDER to project only
        store: Storage collaborator (required for COMMIT)
        user_id: Owner scope for writes (required for COMMIT)
        archived: Archived tasks to include in the projected archive view
        tz: Calendar timezone for day/week boundaries
        batch_size: Maximum ids per storage write

    Returns:
        ReconcileResult with the plan, write outcome and projected view

    Raises:
        ReconcileError: If COMMIT is requested without a store or user scope
    """
    mode = ReconcileMode(mode)
    if mode == ReconcileMode.COMMIT and (store is None or user_id is None):
        raise ReconcileError("Commit mode requires a store and a user scope")

    tasks = list(tasks)
    plan = plan_transitions(tasks, now, tz)

    if mode == ReconcileMode.RENDER:
        return ReconcileResult(mode, plan, project(tasks, plan, archived, tz))

    committed_ids: List[str] = []
    failed_ids: List[str] = []
    if not plan.is_empty:
        committed_ids, failed_ids = _commit(plan, store, user_id, batch_size)
        logger.info(
            f"Reconciled user {user_id}: archived {len(plan.to_archive)}, "
            f"recategorized {len(plan.recategorize_ids)}, committed {len(committed_ids)}"
        )

    projected = project(tasks, plan, archived, tz, applied=set(committed_ids))
    return ReconcileResult(mode, plan, projected, committed_ids, failed_ids)


def reconcile_user(
    store: LifecycleStore,
    user_id: str,
    clock: Clock,
    tz: tzinfo = timezone.utc,
    archived: Optional[Iterable[Task]] = None,
) -> ReconcileResult:
    """Load a user's active tasks and reconcile them in the clock's mode."""
    now = clock.now()
    tasks = store.list_active_tasks(user_id)
    return reconcile(
        tasks,
        now,
        reconcile_mode_for(clock),
        store=store,
        user_id=user_id,
        archived=archived,
        tz=tz,
    )
