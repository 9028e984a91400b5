"""Event logging module for storing backup store events in SQLite."""

import sqlite3
import threading
import logging
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


class EventLogger:
    """Thread-safe SQLite log of backup created/restored/deleted events."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        if not hasattr(self._local, "connection") or self._local.connection is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path), timeout=10
            )
            self._local.connection.row_factory = sqlite3.Row
            self._local.connection.execute("PRAGMA journal_mode=WAL")
            self._local.connection.execute("PRAGMA synchronous=NORMAL")
        return self._local.connection

    def _init_db(self):
        conn = self._get_connection()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS backup_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                event_type TEXT NOT NULL,
                backup_path TEXT,
                original_path TEXT,
                detail TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_backup_events_timestamp
                ON backup_events(timestamp);
            CREATE INDEX IF NOT EXISTS idx_backup_events_type
                ON backup_events(event_type);
            CREATE INDEX IF NOT EXISTS idx_backup_events_original
                ON backup_events(original_path);
        """)
        conn.commit()
        logger.info("Event database initialized at %s", self.db_path)

    def log_event(
        self,
        event_type: str,
        backup_path: str = None,
        original_path: str = None,
        detail: str = None,
    ) -> int:
        """Insert an event record. Returns the row ID."""
        timestamp = datetime.now().isoformat()
        conn = self._get_connection()
        cursor = conn.execute(
            """
            INSERT INTO backup_events (
                timestamp, event_type, backup_path, original_path, detail
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (timestamp, event_type, backup_path, original_path, detail),
        )
        conn.commit()
        logger.debug("Logged %s event for %s", event_type, backup_path)
        return cursor.lastrowid

    def _filters(self, since, event_type, original_path):
        clauses = " WHERE 1=1"
        params = []
        if since:
            clauses += " AND timestamp >= ?"
            params.append(since)
        if event_type:
            clauses += " AND event_type = ?"
            params.append(event_type)
        if original_path:
            clauses += " AND original_path = ?"
            params.append(original_path)
        return clauses, params

    def get_events(
        self,
        since: str = None,
        event_type: str = None,
        original_path: str = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict]:
        """Query events with optional filters, newest first."""
        conn = self._get_connection()
        where, params = self._filters(since, event_type, original_path)
        query = ("SELECT * FROM backup_events" + where
                 + " ORDER BY timestamp DESC, id DESC LIMIT ? OFFSET ?")
        params.extend([limit, offset])

        rows = conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(
        self,
        since: str = None,
        event_type: str = None,
        original_path: str = None,
    ) -> int:
        """Number of events matching the same filters as get_events."""
        conn = self._get_connection()
        where, params = self._filters(since, event_type, original_path)
        row = conn.execute("SELECT COUNT(*) FROM backup_events" + where, params).fetchone()
        return row[0]

    def close(self):
        if hasattr(self._local, "connection") and self._local.connection:
            self._local.connection.close()
            self._local.connection = None
