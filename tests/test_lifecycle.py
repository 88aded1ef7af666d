"""Tests for the lifecycle evaluator (deterministic, pure).

These tests verify that evaluate() gives the same verdict for the same task
and instant, and that category rules are applied at the exact boundaries.
"""

import pytest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from tidyweek.engine.clock import SimulatedClock, SystemClock
from tidyweek.engine.lifecycle import evaluate, is_overdue
from tidyweek.models.task import TaskCategory

UTC = timezone.utc


def at(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


class TestOverdue:
    """Test overdue flags for incomplete tasks."""

    def test_today_overdue_boundary(self, make_task):
        """Today task created 2024-01-01 10:00 is overdue only after that day ends."""
        task = make_task(category=TaskCategory.TODAY, created_at=datetime(2024, 1, 1, 10, 0, 0))

        assert evaluate(task, at(2024, 1, 1, 23, 59, 59)).is_overdue is False
        assert evaluate(task, at(2024, 1, 2, 0, 0, 1)).is_overdue is True

    def test_this_week_end_of_week_boundary(self, make_task):
        """This Week task created Monday is overdue only after Sunday ends."""
        task = make_task(category=TaskCategory.THIS_WEEK, created_at=datetime(2024, 1, 1, 9, 0, 0))

        assert evaluate(task, at(2024, 1, 7, 23, 59, 58)).is_overdue is False
        assert evaluate(task, at(2024, 1, 8, 0, 0, 1)).is_overdue is True

    def test_next_week_is_never_overdue(self, make_task):
        task = make_task(category=TaskCategory.NEXT_WEEK)
        assert evaluate(task, at(2024, 3, 1, 0, 0, 0)).is_overdue is False

    def test_completed_task_is_not_overdue(self, make_task):
        task = make_task(
            category=TaskCategory.TODAY,
            completed=True,
            completed_at=datetime(2024, 1, 1, 11, 0, 0),
        )
        assert evaluate(task, at(2024, 1, 1, 12, 0, 0)).is_overdue is False

    def test_now_before_creation_is_not_overdue(self, make_task):
        """A clock set before the task existed never marks it overdue."""
        task = make_task(category=TaskCategory.TODAY, created_at=datetime(2024, 1, 5, 10, 0, 0))
        assert evaluate(task, at(2024, 1, 1, 0, 0, 0)).is_overdue is False

    def test_is_overdue_helper(self, make_task):
        task = make_task(category=TaskCategory.TODAY)
        assert is_overdue(task, at(2024, 1, 2, 0, 0, 1)) is True

    def test_calendar_timezone_moves_the_boundary(self, make_task):
        """Created 2024-01-01 23:30 UTC, which is 2024-01-02 in Berlin."""
        berlin = ZoneInfo("Europe/Berlin")
        task = make_task(category=TaskCategory.TODAY, created_at=datetime(2024, 1, 1, 23, 30, 0))
        now = at(2024, 1, 2, 6, 0, 0)

        assert evaluate(task, now).is_overdue is True
        assert evaluate(task, now, berlin).is_overdue is False


class TestRecategorize:
    """Test the automatic Next Week -> This Week move."""

    def test_next_week_moves_after_its_week_ends(self, make_task):
        """Next Week task created on a Wednesday moves the following Monday."""
        task = make_task(category=TaskCategory.NEXT_WEEK, created_at=datetime(2024, 1, 3, 9, 0, 0))

        assert evaluate(task, at(2024, 1, 8, 9, 0, 0)).recategorize_to == TaskCategory.THIS_WEEK
        assert evaluate(task, at(2024, 1, 3, 15, 0, 0)).recategorize_to is None

    def test_completed_next_week_task_is_not_moved(self, make_task):
        task = make_task(
            category=TaskCategory.NEXT_WEEK,
            created_at=datetime(2024, 1, 3, 9, 0, 0),
            completed=True,
            completed_at=datetime(2024, 1, 4, 9, 0, 0),
        )
        verdict = evaluate(task, at(2024, 1, 8, 9, 0, 0))
        assert verdict.recategorize_to is None
        assert verdict.should_archive is True

    @pytest.mark.parametrize("category", [TaskCategory.TODAY, TaskCategory.THIS_WEEK, TaskCategory.OTHERS])
    def test_other_categories_never_move(self, make_task, category):
        task = make_task(category=category)
        assert evaluate(task, at(2024, 6, 1, 0, 0, 0)).recategorize_to is None


class TestArchive:
    """Test automatic archive of completed tasks."""

    def test_today_completed_archive_timing(self, make_task):
        task = make_task(
            category=TaskCategory.TODAY,
            completed=True,
            completed_at=datetime(2024, 1, 1, 14, 0, 0),
        )

        assert evaluate(task, at(2024, 1, 1, 20, 0, 0)).should_archive is False
        assert evaluate(task, at(2024, 1, 2, 0, 0, 1)).should_archive is True

    def test_this_week_completed_survives_its_week(self, make_task):
        task = make_task(
            category=TaskCategory.THIS_WEEK,
            completed=True,
            completed_at=datetime(2024, 1, 2, 14, 0, 0),
        )

        assert evaluate(task, at(2024, 1, 7, 23, 0, 0)).should_archive is False
        assert evaluate(task, at(2024, 1, 8, 0, 0, 1)).should_archive is True

    def test_completed_without_timestamp_is_not_archived(self, make_task):
        task = make_task(category=TaskCategory.TODAY, completed=True, completed_at=None)
        assert evaluate(task, at(2025, 1, 1, 0, 0, 0)).should_archive is False

    def test_incomplete_task_is_never_archived(self, make_task):
        task = make_task(category=TaskCategory.TODAY)
        assert evaluate(task, at(2025, 1, 1, 0, 0, 0)).should_archive is False


class TestNoOpVerdicts:
    """Test inputs that must not produce any change."""

    @pytest.mark.parametrize("completed", [False, True])
    def test_others_are_immutable(self, make_task, completed):
        task = make_task(
            category=TaskCategory.OTHERS,
            completed=completed,
            completed_at=datetime(2024, 1, 1, 12, 0, 0) if completed else None,
        )
        for now in (at(2024, 1, 1, 12, 0, 0), at(2024, 2, 1, 0, 0, 0), at(2030, 1, 1, 0, 0, 0)):
            verdict = evaluate(task, now)
            assert verdict.is_overdue is False
            assert verdict.recategorize_to is None
            assert verdict.should_archive is False

    def test_removed_task_gets_no_op_verdict(self, make_task):
        task = make_task(
            category=TaskCategory.TODAY,
            removed=True,
            removed_at=datetime(2024, 1, 1, 12, 0, 0),
        )
        verdict = evaluate(task, at(2024, 2, 1, 0, 0, 0))
        assert verdict.requires_change is False
        assert verdict.is_overdue is False

    def test_unknown_category_gets_no_op_verdict(self, make_task):
        task = make_task().model_copy(update={"category": "someday"})
        verdict = evaluate(task, at(2024, 2, 1, 0, 0, 0))
        assert verdict.requires_change is False
        assert verdict.is_overdue is False

    @pytest.mark.parametrize("category", list(TaskCategory))
    @pytest.mark.parametrize("completed", [False, True])
    def test_timestamps_at_end_of_datetime_range(self, make_task, category, completed):
        """A Friday 9999-12-31 has no representable end of week."""
        last_day = datetime(9999, 12, 31, 12, 0, 0)
        task = make_task(
            category=category,
            created_at=last_day,
            completed=completed,
            completed_at=last_day if completed else None,
        )
        for now in (at(2024, 1, 1, 0, 0, 0), datetime.max.replace(tzinfo=UTC)):
            verdict = evaluate(task, now, ZoneInfo("America/New_York"))
            assert verdict.requires_change is False
            assert verdict.is_overdue is False


class TestDeterminism:
    """Test that verdicts depend only on the task and the instant."""

    @pytest.mark.parametrize("category", list(TaskCategory))
    @pytest.mark.parametrize("completed", [False, True])
    def test_never_both_move_and_archive(self, make_task, category, completed):
        task = make_task(
            category=category,
            created_at=datetime(2024, 1, 3, 9, 0, 0),
            completed=completed,
            completed_at=datetime(2024, 1, 3, 10, 0, 0) if completed else None,
        )
        now = at(2024, 1, 3, 0, 0, 0)
        for _ in range(30):
            verdict = evaluate(task, now)
            assert not (verdict.recategorize_to is not None and verdict.should_archive)
            now += timedelta(hours=13)

    def test_same_verdict_from_real_and_simulated_clock(self, make_task):
        task = make_task(category=TaskCategory.NEXT_WEEK, created_at=datetime(2024, 1, 3, 9, 0, 0))
        real_now = SystemClock().now()
        simulated = SimulatedClock(simulated_at=real_now)

        assert evaluate(task, real_now) == evaluate(task, simulated.now())

    def test_naive_and_aware_now_agree(self, make_task):
        task = make_task(category=TaskCategory.TODAY)
        assert evaluate(task, datetime(2024, 1, 2, 0, 0, 1)) == evaluate(task, at(2024, 1, 2, 0, 0, 1))
