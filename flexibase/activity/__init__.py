"""
Activity log for FlexiBase.

Every mutation appends one or more Activity entries. Reads are filtered
conjunctively and returned newest first. Retention is pluggable and
unbounded by default.
"""

from .log import ActivityLog, RetentionPolicy, keep_all, keep_last, keep_newer_than
from .types import Activity, ActivityType

__all__ = [
    "Activity",
    "ActivityType",
    "ActivityLog",
    "RetentionPolicy",
    "keep_all",
    "keep_last",
    "keep_newer_than",
]
