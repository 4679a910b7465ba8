"""
Notification record stores.

- InMemoryNotificationStore: dict keyed by notification id (default)
- SqliteNotificationStore: portable SQLite persistence for history across restarts

Stores hold records; lifecycle rules live in NotificationManager.
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from .models import NotificationRecord, NotificationStatus, Quiz


def _utc_iso(value: datetime | None) -> str | None:
    # Stored in UTC so ISO strings order the same as instants
    return value.astimezone(timezone.utc).isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# Interface
# =============================================================================


class NotificationStore(ABC):
    """Keyed storage for NotificationRecords."""

    @abstractmethod
    def add(self, record: NotificationRecord) -> None: ...

    @abstractmethod
    def get(self, notification_id: str) -> NotificationRecord | None: ...

    @abstractmethod
    def update(self, record: NotificationRecord) -> None: ...

    @abstractmethod
    def list_for_user(
        self,
        user_id: str,
        since: datetime | None = None,
    ) -> list[NotificationRecord]:
        """Records of a user sent at or after ``since``, oldest first."""

    @abstractmethod
    def list_by_status(self, status: NotificationStatus) -> list[NotificationRecord]: ...

    def count_sent_since(self, user_id: str, since: datetime) -> int:
        return len(self.list_for_user(user_id, since))

    def close(self) -> None:
        """Release resources."""


# =============================================================================
# In-memory
# =============================================================================


class InMemoryNotificationStore(NotificationStore):
    """Dict-backed store. Records are copied in and out, like rows."""

    def __init__(self):
        self._records: dict[str, NotificationRecord] = {}

    def add(self, record: NotificationRecord) -> None:
        self._records[record.notification_id] = replace(record)

    def get(self, notification_id: str) -> NotificationRecord | None:
        record = self._records.get(notification_id)
        return replace(record) if record is not None else None

    def update(self, record: NotificationRecord) -> None:
        self._records[record.notification_id] = replace(record)

    def list_for_user(
        self,
        user_id: str,
        since: datetime | None = None,
    ) -> list[NotificationRecord]:
        records = [
            replace(r)
            for r in self._records.values()
            if r.user_id == user_id
            and r.sent_time is not None
            and (since is None or r.sent_time >= since)
        ]
        records.sort(key=lambda r: r.sent_time)
        return records

    def list_by_status(self, status: NotificationStatus) -> list[NotificationRecord]:
        return [replace(r) for r in self._records.values() if r.status == status]

    def __len__(self) -> int:
        return len(self._records)


# =============================================================================
# SQLite
# =============================================================================


class SqliteNotificationStore(NotificationStore):
    """
    SQLite-backed record store.

    One row per notification; the quiz snapshot is kept as JSON.
    """

    DEFAULT_DB_PATH = Path.home() / ".locklearn" / "notifications.db"

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the store.

        Args:
            db_path: Database file (defaults to ~/.locklearn/notifications.db),
                ":memory:" for a throwaway database
        """
        self.db_path = str(db_path) if db_path else str(self.DEFAULT_DB_PATH)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info("SqliteNotificationStore initialized at {}", self.db_path)

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS notifications (
                notification_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                quiz_json TEXT NOT NULL,
                scheduled_time TEXT NOT NULL,
                sent_time TEXT,
                responded_time TEXT,
                user_answer INTEGER,
                is_correct INTEGER,
                response_latency_ms INTEGER,
                status TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_notifications_user_sent
            ON notifications(user_id, sent_time)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_notifications_status
            ON notifications(status)
        """)

        self.conn.commit()

    def _row_to_record(self, row: sqlite3.Row) -> NotificationRecord:
        is_correct = row["is_correct"]
        return NotificationRecord(
            notification_id=row["notification_id"],
            user_id=row["user_id"],
            quiz=Quiz.from_dict(json.loads(row["quiz_json"])),
            scheduled_time=_parse(row["scheduled_time"]),
            sent_time=_parse(row["sent_time"]),
            responded_time=_parse(row["responded_time"]),
            user_answer=row["user_answer"],
            is_correct=None if is_correct is None else bool(is_correct),
            response_latency_ms=row["response_latency_ms"],
            status=NotificationStatus(row["status"]),
        )

    def _values(self, record: NotificationRecord) -> tuple:
        return (
            record.user_id,
            json.dumps(record.quiz.to_dict(), ensure_ascii=False),
            _utc_iso(record.scheduled_time),
            _utc_iso(record.sent_time),
            _utc_iso(record.responded_time),
            record.user_answer,
            None if record.is_correct is None else int(record.is_correct),
            record.response_latency_ms,
            record.status.value,
            record.notification_id,
        )

    def add(self, record: NotificationRecord) -> None:
        self.conn.execute(
            """
            INSERT INTO notifications (
                user_id, quiz_json, scheduled_time, sent_time, responded_time,
                user_answer, is_correct, response_latency_ms, status, notification_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            self._values(record),
        )
        self.conn.commit()

    def update(self, record: NotificationRecord) -> None:
        self.conn.execute(
            """
            UPDATE notifications SET
                user_id = ?,
                quiz_json = ?,
                scheduled_time = ?,
                sent_time = ?,
                responded_time = ?,
                user_answer = ?,
                is_correct = ?,
                response_latency_ms = ?,
                status = ?
            WHERE notification_id = ?
        """,
            self._values(record),
        )
        self.conn.commit()

    def get(self, notification_id: str) -> NotificationRecord | None:
        row = self.conn.execute(
            "SELECT * FROM notifications WHERE notification_id = ?",
            (notification_id,),
        ).fetchone()
        return self._row_to_record(row) if row else None

    def list_for_user(
        self,
        user_id: str,
        since: datetime | None = None,
    ) -> list[NotificationRecord]:
        if since is None:
            rows = self.conn.execute(
                """
                SELECT * FROM notifications
                WHERE user_id = ? AND sent_time IS NOT NULL
                ORDER BY sent_time ASC
            """,
                (user_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                """
                SELECT * FROM notifications
                WHERE user_id = ? AND sent_time >= ?
                ORDER BY sent_time ASC
            """,
                (user_id, _utc_iso(since)),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def list_by_status(self, status: NotificationStatus) -> list[NotificationRecord]:
        rows = self.conn.execute(
            "SELECT * FROM notifications WHERE status = ?",
            (status.value,),
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count_sent_since(self, user_id: str, since: datetime) -> int:
        row = self.conn.execute(
            """
            SELECT COUNT(*) AS cnt FROM notifications
            WHERE user_id = ? AND sent_time >= ?
        """,
            (user_id, _utc_iso(since)),
        ).fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
