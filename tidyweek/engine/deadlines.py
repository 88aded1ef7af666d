"""Deadline rules for tidyWeek.

Pure functions mapping a category and a reference instant (creation or
completion time) to the instant after which something happens to the task.
All calendar arithmetic happens in the caller's calendar timezone; every
returned deadline is timezone-aware UTC.

Weeks run Monday through Sunday. The last instant of a day is the last
representable datetime (23:59:59.999999).
"""

from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from tidyweek.engine.clock import as_utc
from tidyweek.models.task import TaskCategory

UTC = timezone.utc

# Python's weekday(): Monday=0 .. Sunday=6
SUNDAY = 6


def get_calendar_timezone(name: Optional[str]) -> tzinfo:
    """Resolve an IANA timezone name (None or empty means UTC).

    Args:
        name: Timezone name such as "Europe/Berlin"

    Returns:
        tzinfo instance

    Raises:
        ZoneInfoNotFoundError: If the name is unknown
    """
    if not name or name.upper() == "UTC":
        return UTC
    return ZoneInfo(name)


def _end_of_local_date(day, tz: tzinfo) -> datetime:
    return as_utc(datetime.combine(day, time.max, tzinfo=tz))


def end_of_day(instant: datetime, tz: tzinfo = UTC) -> Optional[datetime]:
    """Last instant of the calendar day containing `instant` in `tz`.

    Returns None when the boundary falls outside the datetime range.
    """
    try:
        local = as_utc(instant).astimezone(tz)
        return _end_of_local_date(local.date(), tz)
    except OverflowError:
        return None


def end_of_week(instant: datetime, tz: tzinfo = UTC) -> Optional[datetime]:
    """Last instant of the Sunday that ends the week containing `instant` in `tz`.

    A Sunday reference instant ends its own week. Returns None when that
    Sunday falls outside the datetime range.
    """
    try:
        local = as_utc(instant).astimezone(tz)
        sunday = local.date() + timedelta(days=SUNDAY - local.weekday())
        return _end_of_local_date(sunday, tz)
    except OverflowError:
        return None


def overdue_deadline(category, created_at: Optional[datetime], tz: tzinfo = UTC) -> Optional[datetime]:
    """Deadline after which an incomplete task is overdue.

    Only TODAY and THIS_WEEK tasks can become overdue.
    """
    if created_at is None:
        return None
    category = TaskCategory(category)
    if category == TaskCategory.TODAY:
        return end_of_day(created_at, tz)
    if category == TaskCategory.THIS_WEEK:
        return end_of_week(created_at, tz)
    return None


def transition_deadline(category, created_at: Optional[datetime], tz: tzinfo = UTC) -> Optional[datetime]:
    """Deadline after which an incomplete NEXT_WEEK task moves to THIS_WEEK."""
    if created_at is None:
        return None
    if TaskCategory(category) == TaskCategory.NEXT_WEEK:
        return end_of_week(created_at, tz)
    return None


def archive_deadline(category, completed_at: Optional[datetime], tz: tzinfo = UTC) -> Optional[datetime]:
    """Deadline after which a completed task is archived automatically.

    TODAY tasks survive the day they were completed; THIS_WEEK and NEXT_WEEK
    tasks survive the week they were completed in. OTHERS are never
    archived automatically.
    """
    if completed_at is None:
        return None
    category = TaskCategory(category)
    if category == TaskCategory.TODAY:
        return end_of_day(completed_at, tz)
    if category in (TaskCategory.THIS_WEEK, TaskCategory.NEXT_WEEK):
        return end_of_week(completed_at, tz)
    return None


def is_past(now: datetime, deadline: Optional[datetime]) -> bool:
    """Strictly after the deadline (False when there is no deadline)."""
    if deadline is None:
        return False
    return as_utc(now) > as_utc(deadline)
