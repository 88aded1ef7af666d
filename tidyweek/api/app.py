"""FastAPI web application for tidyWeek."""

import hashlib
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, tzinfo
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tidyweek.api.auth_models import AuthResponse, DevLoginRequest
from tidyweek.api.task_models import (
    ArchivedCountResponse,
    BulkInsertRequest,
    CategoryInfo,
    ClockAdvanceRequest,
    ClockResponse,
    ClockSetRequest,
    DeleteAllResponse,
    MutationResponse,
    ReconcileResponse,
    TaskCompleteRequest,
    TaskCreateRequest,
    TaskIdsRequest,
    TaskListResponse,
    TaskResponse,
    TaskUpdateRequest,
    TaskView,
)
from tidyweek.auth.dependencies import get_current_user
from tidyweek.auth.jwt import issue_access_token
from tidyweek.database.database import get_db, init_db
from tidyweek.database.repository import TaskRepository
from tidyweek.database.user_repository import UserRepository
from tidyweek.engine.clock import ClockRegistry, SimulatedClock, to_storage
from tidyweek.engine.deadlines import get_calendar_timezone
from tidyweek.engine.lifecycle import Verdict, evaluate
from tidyweek.engine.reconciler import ReconcileMode, reconcile, reconcile_user
from tidyweek.models.constants import ARCHIVE_PAGE_SIZE, DEFAULT_CALENDAR_TIMEZONE, MAX_ARCHIVE_PAGE_SIZE
from tidyweek.models.mutation import MutationResult
from tidyweek.models.task import CATEGORY_CONFIG, Task
from tidyweek.models.task_factory import create_imported_task, create_task
from tidyweek.models.user import User

load_dotenv()

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"
CALENDAR_TIMEZONE = os.getenv("CALENDAR_TIMEZONE", DEFAULT_CALENDAR_TIMEZONE)
ALLOW_DEV_LOGIN = os.getenv("ALLOW_DEV_LOGIN", "False").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


# Initialize FastAPI app
app = FastAPI(
    title="tidyWeek API",
    description="Personal task tracker whose tasks move through Today / This Week / Next Week on their own",
    version=APP_VERSION,
    lifespan=lifespan,
)

# One simulated clock per user; unset clocks read real time
app.state.clocks = ClockRegistry()


# Dependencies

def get_calendar_tz() -> tzinfo:
    """Calendar timezone used for day and week boundaries."""
    return get_calendar_timezone(CALENDAR_TIMEZONE)


def get_task_repository(db: Session = Depends(get_db)) -> TaskRepository:
    return TaskRepository(db)


def get_clock(request: Request, current_user: User = Depends(get_current_user)) -> SimulatedClock:
    """The caller's clock (simulated when the user is time travelling)."""
    return request.app.state.clocks.lookup(current_user.id)


def get_travel_clock(request: Request, current_user: User = Depends(get_current_user)) -> SimulatedClock:
    """The caller's clock, registered so that time travel persists across requests."""
    return request.app.state.clocks.for_user(current_user.id)


# Helpers

def _task_view(task: Task, verdict: Optional[Verdict] = None) -> TaskView:
    return TaskView(**task.model_dump(), is_overdue=bool(verdict and verdict.is_overdue))


def _mutation_response(result: MutationResult) -> MutationResponse:
    return MutationResponse(
        affected_count=result.affected_count,
        affected_ids=result.affected_ids,
        not_found_ids=result.not_found_ids,
        failed_ids=result.failed_ids,
    )


def _clock_response(clock: SimulatedClock) -> ClockResponse:
    return ClockResponse(now=clock.now(), simulated=clock.is_simulated, simulated_at=clock.simulated_at)


def _real_now(clock: SimulatedClock) -> datetime:
    """Manual writes are stamped with real time even while time travelling."""
    return clock.base.now()


def _matches_search(task: Task, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    return needle in task.text.lower() or needle in (task.notes or "").lower()


# Meta endpoints

@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": APP_VERSION}


@app.get("/categories", response_model=List[CategoryInfo])
def list_categories():
    """Category labels and lifecycle rules."""
    return [
        CategoryInfo(category=category, label=config.label, emoji=config.emoji, rule=config.rule)
        for category, config in CATEGORY_CONFIG.items()
    ]


@app.post("/auth/dev-login", response_model=AuthResponse)
def dev_login(request: DevLoginRequest, db: Session = Depends(get_db)):
    """Issue a token for a local user (development only)."""
    if not ALLOW_DEV_LOGIN:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    email = request.email.strip().lower()
    now = datetime.utcnow()
    repo = UserRepository(db)
    existing = repo.get_by_email(email)
    if existing:
        user_id = existing.id
    else:
        user_id = request.user_id or hashlib.sha256(email.encode("utf-8")).hexdigest()[:32]
    user = repo.create_or_update(
        User(
            id=user_id,
            email=email,
            name=request.name,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
    )
    return AuthResponse(access_token=issue_access_token(user), user=user.model_dump(mode="json"))


# Task endpoints

@app.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    overdue_only: bool = False,
    tag: List[str] = Query(default=[]),
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """List active tasks after bringing them up to date.

    With a real clock, due transitions are written to storage first. While
    time travelling, the same transitions are only projected.
    """
    try:
        result = reconcile_user(repo, current_user.id, clock, tz)
    except SQLAlchemyError as e:
        logger.error(f"Failed to list tasks for user {current_user.id}: {type(e).__name__}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load tasks")

    views = [_task_view(task, result.projected.verdicts.get(task.id)) for task in result.projected.active]
    if overdue_only:
        views = [view for view in views if view.is_overdue]
    if tag:
        wanted = set(tag)
        views = [view for view in views if wanted.intersection(view.tags)]

    return TaskListResponse(
        tasks=views,
        count=len(views),
        now=result.plan.now,
        simulated=result.mode == ReconcileMode.RENDER,
    )


@app.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task_endpoint(
    request: TaskCreateRequest,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """Create a task."""
    task = create_task(
        user_id=current_user.id,
        text=request.text,
        category=request.category,
        notes=request.notes,
        tags=request.tags,
        urls=request.urls,
        now=to_storage(_real_now(clock)),
    )
    created = repo.create(task)
    return TaskResponse(task=_task_view(created, evaluate(created, clock.now(), tz)))


@app.get("/tasks/archived", response_model=TaskListResponse)
def list_archived_tasks(
    page: int = Query(0, ge=0),
    page_size: int = Query(ARCHIVE_PAGE_SIZE, ge=1, le=MAX_ARCHIVE_PAGE_SIZE),
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """List one page of archived tasks.

    While time travelling, tasks that would have been archived by the
    simulated instant are shown at the top of the first page.
    """
    archived = repo.list_archived_tasks(current_user.id, page=page, page_size=page_size, search=search)
    if clock.is_simulated and page == 0:
        result = reconcile(repo.list_active_tasks(current_user.id), clock.now(), ReconcileMode.RENDER, tz=tz)
        projected = [task for task in result.projected.archived if _matches_search(task, search)]
        archived = projected + archived

    return TaskListResponse(
        tasks=[_task_view(task) for task in archived],
        count=len(archived),
        now=clock.now(),
        simulated=clock.is_simulated,
    )


@app.get("/tasks/archived/count", response_model=ArchivedCountResponse)
def count_archived_tasks(
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """Count archived tasks (including projected ones while time travelling)."""
    count = repo.count_archived(current_user.id, search=search)
    if clock.is_simulated:
        result = reconcile(repo.list_active_tasks(current_user.id), clock.now(), ReconcileMode.RENDER, tz=tz)
        count += len([task for task in result.projected.archived if _matches_search(task, search)])
    return ArchivedCountResponse(count=count)


@app.post("/tasks/reconcile", response_model=ReconcileResponse)
def reconcile_tasks(
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """Run one reconciliation pass and report what it did."""
    result = reconcile_user(repo, current_user.id, clock, tz)
    summary = result.plan.summary()
    return ReconcileResponse(
        mode=result.mode.value,
        now=result.plan.now,
        to_archive=summary["to_archive"],
        to_recategorize=summary["to_recategorize"],
        overdue_ids=summary["overdue_ids"],
        committed_ids=result.committed_ids,
        failed_ids=result.failed_ids,
    )


@app.post("/tasks/archive_completed", response_model=MutationResponse)
def archive_completed_tasks(
    request: TaskIdsRequest,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
):
    """Archive the given tasks now."""
    return _mutation_response(repo.archive_many(current_user.id, request.task_ids, _real_now(clock)))


@app.post("/tasks/bulk_insert", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
def bulk_insert_tasks(
    request: BulkInsertRequest,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
):
    """Insert many tasks at once, keeping their timestamps."""
    now = _real_now(clock)
    tasks = [create_imported_task(current_user.id, item.model_dump(), now=now) for item in request.tasks]
    try:
        result = repo.bulk_insert(tasks)
    except SQLAlchemyError as e:
        raise HTTPException(status_code=500, detail=f"Failed to insert tasks: {type(e).__name__}")
    return _mutation_response(result)


@app.post("/tasks/purge", response_model=MutationResponse)
def purge_tasks(
    request: TaskIdsRequest,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
):
    """Permanently delete the given tasks."""
    return _mutation_response(repo.purge_many(current_user.id, request.task_ids))


@app.delete("/tasks", response_model=DeleteAllResponse)
def delete_all_tasks(
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
):
    """Permanently delete every task of the caller."""
    return DeleteAllResponse(deleted_count=repo.purge_all(current_user.id))


@app.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """Get an active task."""
    task = repo.get(current_user.id, task_id)
    if not task:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return TaskResponse(task=_task_view(task, evaluate(task, clock.now(), tz)))


@app.get("/tasks/{task_id}/verdict", response_model=Verdict)
def get_task_verdict(
    task_id: str,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """Lifecycle verdict for one task at the caller's current instant."""
    task = repo.get(current_user.id, task_id, include_removed=True)
    if not task:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return evaluate(task, clock.now(), tz)


@app.patch("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """Edit a task. Changing the category restarts its deadline."""
    changes = request.model_dump(exclude_unset=True)
    if changes.get("text") is None:
        changes.pop("text", None)
    if changes.get("category") is None:
        changes.pop("category", None)
    try:
        updated = repo.update(current_user.id, task_id, changes, _real_now(clock))
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return TaskResponse(task=_task_view(updated, evaluate(updated, clock.now(), tz)))


@app.post("/tasks/{task_id}/complete", response_model=TaskResponse)
def complete_task(
    task_id: str,
    request: TaskCompleteRequest,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """Mark a task complete or incomplete."""
    updated = repo.set_completed(current_user.id, task_id, request.completed, _real_now(clock))
    if not updated:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return TaskResponse(task=_task_view(updated, evaluate(updated, clock.now(), tz)))


@app.post("/tasks/{task_id}/archive", response_model=TaskResponse)
def archive_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
):
    """Move a task to the archive."""
    archived = repo.archive(current_user.id, task_id, _real_now(clock))
    if not archived:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return TaskResponse(task=_task_view(archived))


@app.post("/tasks/{task_id}/restore", response_model=TaskResponse)
def restore_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    repo: TaskRepository = Depends(get_task_repository),
    clock: SimulatedClock = Depends(get_clock),
    tz: tzinfo = Depends(get_calendar_tz),
):
    """Bring a task back from the archive as incomplete."""
    restored = repo.restore(current_user.id, task_id, _real_now(clock))
    if not restored:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return TaskResponse(task=_task_view(restored, evaluate(restored, clock.now(), tz)))


# Time travel endpoints

@app.get("/clock", response_model=ClockResponse)
def read_clock(clock: SimulatedClock = Depends(get_clock)):
    """Current reading of the caller's clock."""
    return _clock_response(clock)


@app.put("/clock", response_model=ClockResponse)
def set_clock(request: ClockSetRequest, clock: SimulatedClock = Depends(get_travel_clock)):
    """Pin the caller's clock to an instant (preview mode)."""
    clock.set_simulated(request.at)
    return _clock_response(clock)


@app.post("/clock/advance", response_model=ClockResponse)
def advance_clock(request: ClockAdvanceRequest, clock: SimulatedClock = Depends(get_travel_clock)):
    """Move the caller's simulated clock by whole days/weeks."""
    try:
        clock.advance(days=request.days, weeks=request.weeks)
    except OverflowError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Clock cannot be moved outside the supported date range",
        )
    return _clock_response(clock)


@app.delete("/clock", response_model=ClockResponse)
def reset_clock(request: Request, current_user: User = Depends(get_current_user)):
    """Return the caller's clock to real time."""
    clocks: ClockRegistry = request.app.state.clocks
    clocks.discard(current_user.id)
    return _clock_response(clocks.lookup(current_user.id))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
