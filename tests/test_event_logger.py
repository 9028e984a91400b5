"""Tests for the backup EventLogger database module."""

import os
import sqlite3
import threading

import pytest

from src.database.event_logger import EventLogger


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test_events.db")


@pytest.fixture
def logger(db_path):
    el = EventLogger(db_path)
    yield el
    el.close()


class TestDatabaseInit:
    def test_creates_database_file(self, db_path):
        el = EventLogger(db_path)
        assert os.path.exists(db_path)
        el.close()

    def test_creates_parent_directories(self, tmp_path):
        db_path = str(tmp_path / "nested" / "dir" / "events.db")
        el = EventLogger(db_path)
        assert os.path.exists(db_path)
        el.close()

    def test_schema_has_required_columns(self, logger, db_path):
        conn = sqlite3.connect(db_path)
        cursor = conn.execute("PRAGMA table_info(backup_events)")
        columns = {row[1] for row in cursor.fetchall()}
        conn.close()

        assert {"id", "timestamp", "event_type", "backup_path",
                "original_path", "detail"}.issubset(columns)

    def test_indexes_exist(self, logger, db_path):
        conn = sqlite3.connect(db_path)
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND sql IS NOT NULL"
        ).fetchall()
        conn.close()
        index_names = {r[0] for r in rows}
        assert "idx_backup_events_timestamp" in index_names
        assert "idx_backup_events_type" in index_names
        assert "idx_backup_events_original" in index_names


class TestLogEvent:
    def test_log_created_event(self, logger):
        row_id = logger.log_event(
            event_type="backup_created",
            backup_path="/b/app.backup.20250201-143000.json",
            original_path="/srv/app.json",
            detail="20250201-143000",
        )
        assert row_id == 1
        events = logger.get_events(limit=1)
        assert events[0]["event_type"] == "backup_created"
        assert events[0]["original_path"] == "/srv/app.json"
        assert events[0]["detail"] == "20250201-143000"

    def test_timestamp_is_set_automatically(self, logger):
        logger.log_event(event_type="backup_deleted", backup_path="/b/x")
        events = logger.get_events(limit=1)
        assert "T" in events[0]["timestamp"]  # ISO format

    def test_nullable_fields_default_to_none(self, logger):
        logger.log_event(event_type="backup_failed")
        e = logger.get_events(limit=1)[0]
        assert e["backup_path"] is None
        assert e["original_path"] is None
        assert e["detail"] is None


class TestGetEvents:
    def test_filter_by_event_type(self, logger):
        logger.log_event(event_type="backup_created", backup_path="/a")
        logger.log_event(event_type="backup_restored", backup_path="/a")
        logger.log_event(event_type="backup_created", backup_path="/c")

        created = logger.get_events(event_type="backup_created")
        assert len(created) == 2
        assert all(e["event_type"] == "backup_created" for e in created)

    def test_filter_by_original_path(self, logger):
        logger.log_event(event_type="backup_created", original_path="/srv/a.json")
        logger.log_event(event_type="backup_created", original_path="/srv/b.json")
        events = logger.get_events(original_path="/srv/b.json")
        assert [e["original_path"] for e in events] == ["/srv/b.json"]

    def test_filter_by_since(self, logger):
        logger.log_event(event_type="backup_created", backup_path="/a")
        assert len(logger.get_events(since="2000-01-01T00:00:00")) == 1
        assert len(logger.get_events(since="2099-01-01T00:00:00")) == 0

    def test_limit(self, logger):
        for i in range(10):
            logger.log_event(event_type="backup_created", backup_path=f"/file{i}")
        assert len(logger.get_events(limit=3)) == 3

    def test_order_is_newest_first(self, logger):
        logger.log_event(event_type="backup_created", backup_path="/first")
        logger.log_event(event_type="backup_created", backup_path="/second")
        events = logger.get_events(limit=2)
        assert events[0]["backup_path"] == "/second"
        assert events[1]["backup_path"] == "/first"

    def test_offset(self, logger):
        for i in range(5):
            logger.log_event(event_type="backup_created", backup_path=f"/file{i}")
        events = logger.get_events(limit=2, offset=1)
        assert [e["backup_path"] for e in events] == ["/file3", "/file2"]

    def test_count_ignores_limit(self, logger):
        for i in range(7):
            logger.log_event(event_type="backup_created", backup_path=f"/file{i}")
        logger.log_event(event_type="backup_deleted", backup_path="/old")
        assert logger.count_events() == 8
        assert logger.count_events(event_type="backup_created") == 7
        assert logger.count_events(since="2099-01-01T00:00:00") == 0


class TestThreadSafety:
    def test_concurrent_writes(self, db_path):
        el = EventLogger(db_path)
        errors = []

        def writer(n):
            try:
                for i in range(20):
                    el.log_event(event_type="backup_created",
                                 backup_path=f"/thread{n}/file{i}")
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        el_check = EventLogger(db_path)
        events = el_check.get_events(limit=200)
        el_check.close()
        el.close()

        assert len(errors) == 0
        assert len(events) == 80
