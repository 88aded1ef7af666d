"""Constants for tidyWeek.

This module centralizes all magic numbers and default values used throughout the application.
"""

from tidyweek.models.task import TaskCategory


# Task defaults
DEFAULT_CATEGORY = TaskCategory.TODAY

# Storage writes are split into batches of at most this many rows
MUTATION_BATCH_SIZE = 500

# Archive view pagination
ARCHIVE_PAGE_SIZE = 20
MAX_ARCHIVE_PAGE_SIZE = 200

# Calendar timezone used when none is configured
DEFAULT_CALENDAR_TIMEZONE = "UTC"

# Accepted years for client-supplied timestamps; day and week boundaries
# must stay inside the datetime range in every timezone
MIN_TIMESTAMP_YEAR = 2
MAX_TIMESTAMP_YEAR = 9998
