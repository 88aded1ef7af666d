"""Bulk mutation result model for tidyWeek."""

from typing import List
from pydantic import BaseModel, Field


class MutationResult(BaseModel):
    """Outcome of a bulk write scoped by task ids.

    A write may succeed for some ids and fail for others; callers rely on the
    next reconciliation pass to retry failed ids.
    """

    affected_ids: List[str] = Field(default_factory=list, description="IDs that were written")
    failed_ids: List[str] = Field(default_factory=list, description="IDs whose batch failed to write")
    not_found_ids: List[str] = Field(default_factory=list, description="IDs that matched no eligible row")

    @property
    def affected_count(self) -> int:
        return len(self.affected_ids)

    @property
    def partial(self) -> bool:
        return bool(self.failed_ids)

    def merge(self, other: "MutationResult") -> "MutationResult":
        return MutationResult(
            affected_ids=self.affected_ids + other.affected_ids,
            failed_ids=self.failed_ids + other.failed_ids,
            not_found_ids=self.not_found_ids + other.not_found_ids,
        )
