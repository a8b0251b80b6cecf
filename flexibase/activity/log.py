"""
Append-only activity log for FlexiBase.

The ActivityLog is the audit trail of every schema and record mutation. It
lives inside the Document (document.activities) and is read through filters.

Invariants:
    - Entries are appended in the exact order mutations are issued
    - Entries are immutable once appended
    - Reads are sorted by timestamp descending at read time; the stored order
      is insertion order and is never rewritten by a read
    - The default retention policy keeps every entry

How to change safely:
    - Retention policies only ever drop entries, oldest first
    - Keep filters composable (conjunction) and independent

Example:
    >>> log = ActivityLog(document.activities)
    >>> log.log_activity(ActivityType.TABLE_CREATED, table_id="tbl_1", table_name="Tasks")
    >>> log.get_activities(table_id="tbl_1")
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from typing import Any

from ..ids import generate_id, now_iso, parse_timestamp
from .types import Activity, ActivityType

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "user"

RetentionPolicy = Callable[[list[Activity]], list[Activity]]


def keep_all(activities: list[Activity]) -> list[Activity]:
    """Retention policy that never drops entries."""
    return activities


def keep_last(count: int) -> RetentionPolicy:
    """Retention policy keeping the most recent count entries."""
    if count <= 0:
        raise ValueError(f"count must be positive, got {count}")

    def policy(activities: list[Activity]) -> list[Activity]:
        return activities[-count:]

    return policy


def keep_newer_than(age: timedelta) -> RetentionPolicy:
    """Retention policy dropping entries older than age."""

    def policy(activities: list[Activity]) -> list[Activity]:
        cutoff = datetime.now(timezone.utc) - age
        return [a for a in activities if a.moment >= cutoff]

    return policy


class ActivityLog:
    """Audit trail over a document's activity list.

    The log mutates the list it is given in place so the owning Document
    always carries the current entries.

    Attributes:
        actor: Actor stamped on every entry
        retention: Policy applied after each append
    """

    def __init__(
        self,
        activities: list[Activity],
        actor: str = DEFAULT_ACTOR,
        retention: RetentionPolicy = keep_all,
    ) -> None:
        self._activities = activities
        self.actor = actor
        self.retention = retention

    def __len__(self) -> int:
        return len(self._activities)

    def rebind(self, activities: list[Activity]) -> None:
        """Point the log at a different document's activity list."""
        self._activities = activities

    def log_activity(
        self,
        type: ActivityType,
        table_id: str,
        table_name: str,
        **attrs: Any,
    ) -> Activity:
        """Stamp and append an activity.

        Args:
            type: Kind of mutation
            table_id: Table the mutation touched
            table_name: Table name at the time of the mutation
            **attrs: Type-specific attributes (record_id, field, ...)

        Returns:
            The appended Activity
        """
        activity = Activity(
            id=generate_id("act"),
            timestamp=now_iso(),
            actor=self.actor,
            type=type,
            table_id=table_id,
            table_name=table_name,
            **attrs,
        )
        self._activities.append(activity)

        if self.retention is not keep_all:
            kept = self.retention(list(self._activities))
            if len(kept) != len(self._activities):
                logger.debug(
                    "Retention policy dropped activities",
                    extra={"dropped": len(self._activities) - len(kept)},
                )
                self._activities[:] = kept

        logger.debug(
            "Activity logged",
            extra={"type": type.value, "table_id": table_id, "activity_id": activity.id},
        )
        return activity

    def get_activities(
        self,
        table_id: str | None = None,
        type: ActivityType | str | None = None,
        date: date | str | None = None,
        record_id: str | None = None,
    ) -> list[Activity]:
        """Read activities matching every given filter, newest first.

        Args:
            table_id: Only activities on this table
            type: Only activities of this type
            date: Only activities on this UTC calendar day
            record_id: Only activities about this record

        Returns:
            Matching activities sorted by timestamp descending
        """
        if isinstance(type, str):
            type = ActivityType(type)
        day = _to_day(date) if date is not None else None

        matches = []
        for activity in self._activities:
            if table_id is not None and activity.table_id != table_id:
                continue
            if type is not None and activity.type != type:
                continue
            if record_id is not None and activity.record_id != record_id:
                continue
            if day is not None and activity.moment.date() != day:
                continue
            matches.append(activity)

        # Later insertion first among equal timestamps
        matches.reverse()
        matches.sort(key=lambda a: a.timestamp, reverse=True)
        return matches

    def get_record_history(self, table_id: str, record_id: str) -> list[Activity]:
        """All activities about one record, newest first."""
        return self.get_activities(table_id=table_id, record_id=record_id)


def _to_day(value: date | str) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if len(value) == 10:
        return date.fromisoformat(value)
    return parse_timestamp(value).date()
