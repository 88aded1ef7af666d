"""Repository layer for database operations."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from sqlalchemy.orm import Session
from sqlalchemy import desc, or_
from sqlalchemy.exc import SQLAlchemyError

from tidyweek.engine.clock import to_storage
from tidyweek.engine.planner import chunked
from tidyweek.models.constants import ARCHIVE_PAGE_SIZE, MUTATION_BATCH_SIZE
from tidyweek.models.mutation import MutationResult
from tidyweek.models.task import Task, TaskCategory
from tidyweek.database.models import TaskDB, enum_to_value

logger = logging.getLogger(__name__)

# Fields a user may edit directly; lifecycle fields go through dedicated methods.
EDITABLE_FIELDS = ("text", "notes", "tags", "urls", "category")

LIKE_ESCAPE = "\\"


def _contains_pattern(search: str) -> str:
    """LIKE pattern matching `search` literally anywhere in a column."""
    literal = search.strip()
    for char in (LIKE_ESCAPE, "%", "_"):
        literal = literal.replace(char, LIKE_ESCAPE + char)
    return f"%{literal}%"


class TaskRepository:
    """Repository for Task database operations.

    Also serves as the storage collaborator for the lifecycle reconciler
    (list_active_tasks / list_archived_tasks / apply_archive / apply_recategorize).
    """

    def __init__(self, db: Session, batch_size: int = MUTATION_BATCH_SIZE):
        self.db = db
        self.batch_size = batch_size

    def _as_unique_ids(self, task_ids: List[str]) -> List[str]:
        """Deduplicate while preserving order."""
        seen: Set[str] = set()
        unique: List[str] = []
        for task_id in task_ids:
            if task_id not in seen:
                seen.add(task_id)
                unique.append(task_id)
        return unique

    def _query_one(self, user_id: str, task_id: str, include_removed: bool = False):
        query = self.db.query(TaskDB).filter(
            TaskDB.id == task_id,
            TaskDB.user_id == user_id,
        )
        if not include_removed:
            query = query.filter(TaskDB.removed.is_(False))
        return query.first()

    def _commit_row(self, task_db: TaskDB, message: str) -> Task:
        try:
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(message)
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to write task {task_db.id}: {type(e).__name__}: {str(e)}")
            raise

    def _update_in_batches(
        self,
        user_id: str,
        task_ids: List[str],
        conditions: list,
        values: Dict[Any, Any],
        action: str,
    ) -> MutationResult:
        """Apply the same update to eligible ids, one committed batch at a time.

        A failing batch is rolled back and reported in failed_ids; later
        batches still run.
        """
        result = MutationResult()
        for batch in chunked(self._as_unique_ids(task_ids), self.batch_size):
            try:
                eligible = {
                    row[0]
                    for row in self.db.query(TaskDB.id).filter(
                        TaskDB.user_id == user_id,
                        TaskDB.id.in_(batch),
                        *conditions,
                    ).all()
                }
                if eligible:
                    self.db.query(TaskDB).filter(
                        TaskDB.user_id == user_id,
                        TaskDB.id.in_(list(eligible)),
                        *conditions,
                    ).update(values, synchronize_session=False)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to {action} {len(batch)} tasks for user {user_id}: {type(e).__name__}: {str(e)}")
                result.failed_ids.extend(batch)
                continue

            result.affected_ids.extend(task_id for task_id in batch if task_id in eligible)
            result.not_found_ids.extend(task_id for task_id in batch if task_id not in eligible)

        logger.debug(f"{action}: {result.affected_count} tasks for user {user_id}")
        return result

    # ---- reads ----

    def get(self, user_id: str, task_id: str, include_removed: bool = False) -> Optional[Task]:
        """Get task by ID for a specific user (active tasks only unless include_removed)."""
        task_db = self._query_one(user_id, task_id, include_removed=include_removed)
        return task_db.to_pydantic() if task_db else None

    def list_active_tasks(self, user_id: str) -> List[Task]:
        """Get all active tasks for a user sorted by creation date (newest first)."""
        tasks_db = self.db.query(TaskDB).filter(
            TaskDB.user_id == user_id,
            TaskDB.removed.is_(False),
        ).order_by(desc(TaskDB.created_at)).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def _archived_query(self, user_id: str, search: Optional[str]):
        query = self.db.query(TaskDB).filter(
            TaskDB.user_id == user_id,
            TaskDB.removed.is_(True),
        )
        if search:
            pattern = _contains_pattern(search)
            query = query.filter(or_(
                TaskDB.text.ilike(pattern, escape=LIKE_ESCAPE),
                TaskDB.notes.ilike(pattern, escape=LIKE_ESCAPE),
            ))
        return query

    def list_archived_tasks(
        self,
        user_id: str,
        page: int = 0,
        page_size: int = ARCHIVE_PAGE_SIZE,
        search: Optional[str] = None,
    ) -> List[Task]:
        """Get one page of archived tasks (most recently archived first)."""
        tasks_db = (
            self._archived_query(user_id, search)
            .order_by(desc(TaskDB.removed_at))
            .offset(max(page, 0) * page_size)
            .limit(page_size)
            .all()
        )
        return [task_db.to_pydantic() for task_db in tasks_db]

    def count_archived(self, user_id: str, search: Optional[str] = None) -> int:
        """Count archived tasks, optionally matching a search term."""
        return self._archived_query(user_id, search).count()

    # ---- single-task writes ----

    def create(self, task: Task) -> Task:
        """Create a new task."""
        try:
            task_db = TaskDB.from_pydantic(task)
            self.db.add(task_db)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Created task {task.id}: {task.text[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task {task.id}: {type(e).__name__}: {str(e)}")
            raise

    def update(self, user_id: str, task_id: str, changes: Dict[str, Any], at: datetime) -> Task:
        """Update editable fields of an active task.

        Moving a task to another category restarts its deadline clock
        (created_at = at), except moves into OTHERS which has no deadline.

        Raises:
            ValueError: If the task does not exist or is archived
        """
        task_db = self._query_one(user_id, task_id)
        if not task_db:
            raise ValueError(f"Task {task_id} not found")

        at = to_storage(at)
        for field in EDITABLE_FIELDS:
            if field not in changes:
                continue
            value = changes[field]
            if field == "category":
                value = enum_to_value(value)
                if value != task_db.category and value != TaskCategory.OTHERS.value:
                    task_db.created_at = at
            elif field in ("tags", "urls"):
                value = list(value or [])
            setattr(task_db, field, value)
        task_db.updated_at = at

        return self._commit_row(task_db, f"Updated task {task_id}")

    def set_completed(self, user_id: str, task_id: str, completed: bool, at: datetime) -> Optional[Task]:
        """Mark an active task complete or incomplete.

        completed_at is always written together with completed.
        """
        task_db = self._query_one(user_id, task_id)
        if not task_db:
            return None

        at = to_storage(at)
        task_db.completed = completed
        task_db.completed_at = at if completed else None
        task_db.updated_at = at
        return self._commit_row(task_db, f"Set task {task_id} completed={completed}")

    def archive(self, user_id: str, task_id: str, at: datetime) -> Optional[Task]:
        """Archive an active task."""
        task_db = self._query_one(user_id, task_id)
        if not task_db:
            return None

        at = to_storage(at)
        task_db.removed = True
        task_db.removed_at = at
        task_db.updated_at = at
        return self._commit_row(task_db, f"Archived task {task_id}")

    def restore(self, user_id: str, task_id: str, at: Optional[datetime] = None) -> Optional[Task]:
        """Restore a task from the archive.

        Restoring clears both the archive and the completion state; the
        category is left unchanged. Restoring an active task is a no-op.
        """
        task_db = self._query_one(user_id, task_id, include_removed=True)
        if not task_db:
            return None

        # Idempotent restore: if it's already active, treat as success
        if not task_db.removed:
            return task_db.to_pydantic()

        task_db.removed = False
        task_db.removed_at = None
        task_db.completed = False
        task_db.completed_at = None
        task_db.updated_at = to_storage(at) if at is not None else datetime.utcnow()
        return self._commit_row(task_db, f"Restored task {task_id}")

    # ---- bulk writes ----

    def archive_many(self, user_id: str, task_ids: List[str], at: datetime) -> MutationResult:
        """Archive several active tasks regardless of their lifecycle state."""
        at = to_storage(at)
        return self._update_in_batches(
            user_id,
            task_ids,
            [TaskDB.removed.is_(False)],
            {TaskDB.removed: True, TaskDB.removed_at: at, TaskDB.updated_at: at},
            "archive",
        )

    def apply_archive(self, user_id: str, task_ids: List[str], at: datetime) -> MutationResult:
        """Archive completed active tasks (automatic archive).

        Rows that were un-completed or archived since the plan was computed
        are skipped and reported as not found.
        """
        at = to_storage(at)
        return self._update_in_batches(
            user_id,
            task_ids,
            [TaskDB.removed.is_(False), TaskDB.completed.is_(True)],
            {TaskDB.removed: True, TaskDB.removed_at: at, TaskDB.updated_at: at},
            "auto-archive",
        )

    def apply_recategorize(
        self,
        user_id: str,
        task_ids: List[str],
        target: TaskCategory,
        at: datetime,
    ) -> MutationResult:
        """Move incomplete active tasks to another category (automatic transition).

        The deadline clock restarts at `at` unless the target is OTHERS.
        """
        at = to_storage(at)
        target_value = enum_to_value(target)
        values = {TaskDB.category: target_value, TaskDB.updated_at: at}
        if target_value != TaskCategory.OTHERS.value:
            values[TaskDB.created_at] = at
        return self._update_in_batches(
            user_id,
            task_ids,
            [TaskDB.removed.is_(False), TaskDB.completed.is_(False)],
            values,
            f"recategorize to {target_value}",
        )

    def purge_many(self, user_id: str, task_ids: List[str]) -> MutationResult:
        """Permanently delete several tasks (active or archived)."""
        result = MutationResult()
        for batch in chunked(self._as_unique_ids(task_ids), self.batch_size):
            existing_ids = {
                row[0]
                for row in self.db.query(TaskDB.id).filter(
                    TaskDB.user_id == user_id,
                    TaskDB.id.in_(batch),
                ).all()
            }
            try:
                self.db.query(TaskDB).filter(
                    TaskDB.user_id == user_id,
                    TaskDB.id.in_(list(existing_ids)),
                ).delete(synchronize_session=False)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to purge tasks for user {user_id}: {type(e).__name__}: {str(e)}")
                raise
            result.affected_ids.extend(task_id for task_id in batch if task_id in existing_ids)
            result.not_found_ids.extend(task_id for task_id in batch if task_id not in existing_ids)

        logger.debug(f"Purged {result.affected_count} tasks for user {user_id}")
        return result

    def purge_all(self, user_id: str) -> int:
        """Permanently delete every task of a user."""
        try:
            affected = self.db.query(TaskDB).filter(TaskDB.user_id == user_id).delete(synchronize_session=False)
            self.db.commit()
            logger.debug(f"Purged all {affected} tasks for user {user_id}")
            return int(affected)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to purge all tasks for user {user_id}: {type(e).__name__}: {str(e)}")
            raise

    def bulk_insert(self, tasks: List[Task]) -> MutationResult:
        """Insert many tasks, committing one batch at a time."""
        result = MutationResult()
        for start in range(0, len(tasks), self.batch_size):
            batch = tasks[start:start + self.batch_size]
            try:
                self.db.add_all([TaskDB.from_pydantic(task) for task in batch])
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to bulk insert {len(batch)} tasks: {type(e).__name__}: {str(e)}")
                raise
            result.affected_ids.extend(task.id for task in batch)

        logger.debug(f"Bulk inserted {result.affected_count} tasks")
        return result
