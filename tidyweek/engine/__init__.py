"""Task lifecycle engine for tidyWeek."""

from tidyweek.engine.clock import Clock, SystemClock, SimulatedClock, ClockRegistry
from tidyweek.engine.deadlines import end_of_day, end_of_week, overdue_deadline, transition_deadline, archive_deadline
from tidyweek.engine.lifecycle import Verdict, evaluate, is_overdue
from tidyweek.engine.planner import TransitionPlan, plan_transitions, chunked
from tidyweek.engine.reconciler import (
    ReconcileMode,
    ReconcileResult,
    ReconcileError,
    ProjectedView,
    LifecycleStore,
    reconcile,
    reconcile_user,
    reconcile_mode_for,
)

__all__ = [
    "Clock",
    "SystemClock",
    "SimulatedClock",
    "ClockRegistry",
    "end_of_day",
    "end_of_week",
    "overdue_deadline",
    "transition_deadline",
    "archive_deadline",
    "Verdict",
    "evaluate",
    "is_overdue",
    "TransitionPlan",
    "plan_transitions",
    "chunked",
    "ReconcileMode",
    "ReconcileResult",
    "ReconcileError",
    "ProjectedView",
    "LifecycleStore",
    "reconcile",
    "reconcile_user",
    "reconcile_mode_for",
]
