"""
Unit tests for the activity log.

Tests cover:
- Wire serialization (camelCase, omitted keys)
- Filtered reads, newest first
- Record history
- Retention policies
"""

from datetime import date, timedelta

import pytest

from flexibase.activity.log import ActivityLog, keep_all, keep_last, keep_newer_than
from flexibase.activity.types import Activity, ActivityType


def _activity(activity_id, timestamp, type=ActivityType.RECORD_CREATED, table_id="tbl_1", **kw):
    return Activity(
        id=activity_id,
        timestamp=timestamp,
        actor="user",
        type=type,
        table_id=table_id,
        table_name="Tasks",
        **kw,
    )


class TestActivitySerialization:
    """Tests for Activity.to_dict/from_dict."""

    def test_camel_case_keys(self):
        activity = _activity(
            "act_1",
            "2024-01-01T00:00:00.000Z",
            type=ActivityType.RECORD_MOVED,
            record_id="rec_1",
            field="Status",
            from_column="Todo",
            to_column="Done",
        )

        assert activity.to_dict() == {
            "id": "act_1",
            "timestamp": "2024-01-01T00:00:00.000Z",
            "actor": "user",
            "type": "record.moved",
            "tableId": "tbl_1",
            "tableName": "Tasks",
            "recordId": "rec_1",
            "field": "Status",
            "fromColumn": "Todo",
            "toColumn": "Done",
        }

    def test_cell_edit_keeps_null_previous_value(self):
        activity = _activity(
            "act_1",
            "2024-01-01T00:00:00.000Z",
            type=ActivityType.CELL_EDITED,
            record_id="rec_1",
            field="Name",
            new_value="x",
        )
        data = activity.to_dict()
        assert data["previousValue"] is None
        assert data["newValue"] == "x"

    def test_from_dict_round_trip_and_unknown_keys(self):
        activity = _activity(
            "act_1",
            "2024-01-01T00:00:00.000Z",
            type=ActivityType.FIELD_DELETED,
            field_name="Status",
        )
        data = {**activity.to_dict(), "futureKey": 1}

        assert Activity.from_dict(data) == activity


class TestActivityLog:
    """Tests for ActivityLog."""

    @pytest.fixture
    def entries(self):
        return [
            _activity("act_1", "2024-01-01T10:00:00.000Z"),
            _activity(
                "act_2",
                "2024-01-02T10:00:00.000Z",
                type=ActivityType.RECORD_UPDATED,
                record_id="rec_1",
            ),
            _activity("act_3", "2024-01-02T10:00:00.000Z", table_id="tbl_2", record_id="rec_1"),
            _activity(
                "act_4", "2024-01-03T09:00:00.000Z", type=ActivityType.CELL_EDITED, record_id="rec_2"
            ),
        ]

    @pytest.fixture
    def log(self, entries):
        return ActivityLog(entries)

    def test_log_activity_appends(self):
        entries = []
        log = ActivityLog(entries, actor="alice")

        activity = log.log_activity(
            ActivityType.TABLE_CREATED, table_id="tbl_1", table_name="Tasks"
        )

        assert entries == [activity]
        assert activity.id.startswith("act_")
        assert activity.actor == "alice"
        assert activity.timestamp.endswith("Z")
        assert len(log) == 1

    def test_reads_newest_first(self, log):
        ids = [a.id for a in log.get_activities()]
        # act_2 and act_3 tie; the later insertion comes first
        assert ids == ["act_4", "act_3", "act_2", "act_1"]

    def test_reads_do_not_reorder_storage(self, log, entries):
        log.get_activities()
        assert [a.id for a in entries] == ["act_1", "act_2", "act_3", "act_4"]

    def test_filter_by_table(self, log):
        assert [a.id for a in log.get_activities(table_id="tbl_2")] == ["act_3"]

    def test_filter_by_type_string(self, log):
        assert [a.id for a in log.get_activities(type="cell.edited")] == ["act_4"]

    def test_filter_by_date(self, log):
        assert [a.id for a in log.get_activities(date="2024-01-02")] == ["act_3", "act_2"]
        assert [a.id for a in log.get_activities(date=date(2024, 1, 3))] == ["act_4"]

    def test_filters_are_conjunctive(self, log):
        result = log.get_activities(table_id="tbl_1", record_id="rec_1")
        assert [a.id for a in result] == ["act_2"]

    def test_record_history(self, log):
        assert [a.id for a in log.get_record_history("tbl_1", "rec_2")] == ["act_4"]

    def test_unknown_type_rejected(self, log):
        with pytest.raises(ValueError):
            log.get_activities(type="record.archived")


class TestRetention:
    """Tests for retention policies."""

    def test_keep_all_is_default(self):
        log = ActivityLog([])
        assert log.retention is keep_all

    def test_keep_last(self):
        entries = []
        log = ActivityLog(entries, retention=keep_last(2))

        for _ in range(5):
            log.log_activity(ActivityType.RECORD_CREATED, table_id="tbl_1", table_name="T")

        assert len(entries) == 2

    def test_keep_last_rejects_non_positive(self):
        with pytest.raises(ValueError):
            keep_last(0)

    def test_keep_newer_than(self):
        entries = [_activity("act_old", "2000-01-01T00:00:00.000Z")]
        log = ActivityLog(entries, retention=keep_newer_than(timedelta(days=1)))

        log.log_activity(ActivityType.RECORD_CREATED, table_id="tbl_1", table_name="T")

        assert len(entries) == 1
        assert entries[0].id != "act_old"
