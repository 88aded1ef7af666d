"""Request/response models for task, lifecycle and clock endpoints."""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from tidyweek.models.task import Task, TaskCategory
from tidyweek.models.constants import DEFAULT_CATEGORY, MAX_TIMESTAMP_YEAR, MIN_TIMESTAMP_YEAR


def _check_timestamp_range(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and not MIN_TIMESTAMP_YEAR <= value.year <= MAX_TIMESTAMP_YEAR:
        raise ValueError(f"timestamp year must be between {MIN_TIMESTAMP_YEAR} and {MAX_TIMESTAMP_YEAR}")
    return value


class TaskCreateRequest(BaseModel):
    """Request model for creating a task."""
    text: str = Field(..., min_length=1, description="Task text")
    category: TaskCategory = Field(DEFAULT_CATEGORY, description="Task category")
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    urls: List[str] = Field(default_factory=list)


class TaskUpdateRequest(BaseModel):
    """Request model for editing a task (only provided fields change)."""
    text: Optional[str] = Field(None, min_length=1)
    category: Optional[TaskCategory] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    urls: Optional[List[str]] = None


class TaskCompleteRequest(BaseModel):
    """Request model for toggling completion."""
    completed: bool


class TaskIdsRequest(BaseModel):
    """Request model for bulk operations by id."""
    task_ids: List[str] = Field(default_factory=list)


class TaskImportItem(BaseModel):
    """One task in a bulk insert request."""
    text: str = Field(..., min_length=1)
    category: TaskCategory = DEFAULT_CATEGORY
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    urls: List[str] = Field(default_factory=list)
    completed: bool = False
    completed_at: Optional[datetime] = None
    removed: bool = False
    removed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("completed_at", "removed_at", "created_at", "updated_at")
    @classmethod
    def _validate_timestamp(cls, v):
        return _check_timestamp_range(v)


class BulkInsertRequest(BaseModel):
    """Request model for bulk insert."""
    tasks: List[TaskImportItem] = Field(default_factory=list)


class TaskView(Task):
    """Task with its lifecycle state at the caller's current instant."""
    is_overdue: bool = False


class TaskResponse(BaseModel):
    """Response for a single task."""
    task: TaskView


class TaskListResponse(BaseModel):
    """Response for task listings."""
    tasks: List[TaskView]
    count: int
    now: datetime
    simulated: bool = False


class ArchivedCountResponse(BaseModel):
    """Response for archive counts."""
    count: int


class MutationResponse(BaseModel):
    """Response for bulk writes."""
    affected_count: int
    affected_ids: List[str]
    not_found_ids: List[str]
    failed_ids: List[str]


class DeleteAllResponse(BaseModel):
    """Response for deleting every task."""
    deleted_count: int


class ReconcileResponse(BaseModel):
    """Response for an explicit reconciliation pass."""
    mode: str
    now: datetime
    to_archive: List[str]
    to_recategorize: Dict[str, List[str]]
    overdue_ids: List[str]
    committed_ids: List[str]
    failed_ids: List[str]


class ClockSetRequest(BaseModel):
    """Request model for pinning the simulated clock."""
    at: datetime

    @field_validator("at")
    @classmethod
    def _validate_at(cls, v):
        return _check_timestamp_range(v)


class ClockAdvanceRequest(BaseModel):
    """Request model for moving the simulated clock."""
    days: int = 0
    weeks: int = 0


class ClockResponse(BaseModel):
    """Current reading of the caller's clock."""
    now: datetime
    simulated: bool
    simulated_at: Optional[datetime] = None


class CategoryInfo(BaseModel):
    """Display metadata for one category."""
    category: TaskCategory
    label: str
    emoji: str
    rule: str
