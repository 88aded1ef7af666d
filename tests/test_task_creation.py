"""Tests for task creation defaults and imported-task normalization."""

from datetime import datetime

from tidyweek.models.task import Task, TaskCategory, CATEGORY_CONFIG
from tidyweek.models.task_factory import create_imported_task, create_task

NOW = datetime(2024, 1, 3, 12, 0, 0)


class TestTaskCreationDefaults:
    """Test that task creation uses correct default values."""

    def test_default_task_values(self, test_user_id):
        task = create_task(test_user_id, "Buy milk", now=NOW)

        assert task.category == TaskCategory.TODAY.value
        assert task.completed is False
        assert task.completed_at is None
        assert task.removed is False
        assert task.removed_at is None
        assert task.tags == []
        assert task.urls == []
        assert task.created_at == NOW
        assert task.updated_at == NOW

    def test_ids_are_unique(self, test_user_id):
        assert create_task(test_user_id, "a").id != create_task(test_user_id, "a").id

    def test_overrides(self, test_user_id):
        task = create_task(test_user_id, "Plan trip", category=TaskCategory.NEXT_WEEK, tags=["travel"], now=NOW)

        assert task.category == TaskCategory.NEXT_WEEK.value
        assert task.tags == ["travel"]

    def test_every_category_has_display_config(self):
        assert set(CATEGORY_CONFIG) == set(TaskCategory)
        assert all(config.label and config.rule for config in CATEGORY_CONFIG.values())


class TestImportedTasks:
    """Test create_imported_task() normalization."""

    def test_keeps_given_timestamps(self, test_user_id):
        created = datetime(2023, 5, 1, 8, 0, 0)
        task = create_imported_task(test_user_id, {"text": "Old", "created_at": created}, now=NOW)

        assert task.created_at == created
        assert task.updated_at == created

    def test_missing_timestamps_fall_back_to_now(self, test_user_id):
        task = create_imported_task(test_user_id, {"text": "New"}, now=NOW)
        assert task.created_at == NOW

    def test_completion_timestamp_requires_flag(self, test_user_id):
        task = create_imported_task(
            test_user_id,
            {"text": "x", "completed": False, "completed_at": datetime(2024, 1, 1)},
            now=NOW,
        )
        assert task.completed_at is None

    def test_flag_without_timestamp_uses_updated_at(self, test_user_id):
        updated = datetime(2024, 1, 2, 8, 0, 0)
        task = create_imported_task(
            test_user_id,
            {"text": "x", "completed": True, "removed": True, "updated_at": updated},
            now=NOW,
        )
        assert task.completed_at == updated
        assert task.removed_at == updated

    def test_task_model_accepts_string_category(self, sample_task_base):
        task = Task(**{**sample_task_base, "category": "this_week"})
        assert task.category == "this_week"
