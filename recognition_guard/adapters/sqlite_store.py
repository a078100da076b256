"""SQLite recognition store.

Implements the history, flag and audit ports with a SQLite backend. Each
call opens its own connection, so the store can be queried from the
evaluator's fetch threads. A file path is required; ":memory:" would give
every connection a separate empty database.
"""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Final
from uuid import uuid4

import pytz

from recognition_guard.config.logging_config import get_logger
from recognition_guard.domain.exceptions import (
    FlagPersistenceError,
    HistoryProviderError,
)
from recognition_guard.domain.models import (
    AbuseFlag,
    AuditEntry,
    HistoryDirection,
    PairStatistics,
    RecognitionEvent,
    StoredFlag,
)
from recognition_guard.services.identity import hash_identity

logger = get_logger(__name__)

_TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%S.%f"


def _to_db_timestamp(value: datetime) -> str:
    """Fixed-width UTC timestamp so text comparison matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=pytz.UTC)
    return value.astimezone(pytz.UTC).strftime(_TIMESTAMP_FORMAT)


def _from_db_timestamp(value: str) -> datetime:
    return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=pytz.UTC)


class SQLiteRecognitionStore:
    """SQLite-backed recognitions, abuse flags and audit entries."""

    def __init__(self, db_path: str) -> None:
        """Initialize store and ensure schema.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._create_schema()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_schema(self) -> None:
        logger.info("sqlite_schema_creation_started", db_path=str(self.db_path))
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS recognitions (
                    recognition_id TEXT PRIMARY KEY,
                    giver_id TEXT NOT NULL,
                    recipient_id TEXT NOT NULL,
                    reason TEXT NOT NULL DEFAULT '',
                    weight REAL NOT NULL,
                    evidence_count INTEGER NOT NULL DEFAULT 0,
                    giver_role TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_recognitions_giver_created
                ON recognitions (giver_id, created_at)
            """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_recognitions_recipient_created
                ON recognitions (recipient_id, created_at)
            """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS abuse_flags (
                    flag_id TEXT PRIMARY KEY,
                    recognition_id TEXT NOT NULL,
                    flag_type TEXT NOT NULL,
                    severity TEXT NOT NULL,
                    description TEXT NOT NULL,
                    detection_method TEXT NOT NULL,
                    flagged_by TEXT NOT NULL,
                    status TEXT NOT NULL,
                    metadata TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS audit_entries (
                    entry_id TEXT PRIMARY KEY,
                    event_code TEXT NOT NULL,
                    actor_id TEXT NOT NULL,
                    target_id TEXT,
                    metadata TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """
            )
            conn.commit()
        finally:
            conn.close()

    def add_recognition(self, event: RecognitionEvent) -> None:
        """Insert a recognition (used to seed history)."""
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO recognitions (
                    recognition_id, giver_id, recipient_id, reason, weight,
                    evidence_count, giver_role, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.recognition_id,
                    event.giver_id,
                    event.recipient_id,
                    event.reason,
                    event.weight,
                    event.evidence_count,
                    event.giver_role.value,
                    _to_db_timestamp(event.created_at),
                ),
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise HistoryProviderError(f"Failed to save recognition: {exc}") from exc
        finally:
            conn.close()

    def count_events(
        self,
        user_id: str,
        counterpart_id: str | None,
        direction: HistoryDirection,
        since: datetime,
    ) -> int:
        if direction is HistoryDirection.GIVEN:
            own_column, other_column = "giver_id", "recipient_id"
        else:
            own_column, other_column = "recipient_id", "giver_id"

        query = f"SELECT COUNT(*) FROM recognitions WHERE {own_column} = ? AND created_at >= ?"
        params: list[Any] = [user_id, _to_db_timestamp(since)]
        if counterpart_id is not None:
            query += f" AND {other_column} = ?"
            params.append(counterpart_id)

        conn = self._get_connection()
        try:
            row = conn.execute(query, params).fetchone()
            return int(row[0])
        except sqlite3.Error as exc:
            raise HistoryProviderError(f"Failed to count recognitions: {exc}") from exc
        finally:
            conn.close()

    def list_recent_reasons(self, giver_id: str, since: datetime) -> list[str]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT reason FROM recognitions
                WHERE giver_id = ? AND created_at >= ?
                ORDER BY created_at DESC
                """,
                (giver_id, _to_db_timestamp(since)),
            ).fetchall()
            return [row["reason"] for row in rows]
        except sqlite3.Error as exc:
            raise HistoryProviderError(f"Failed to list reasons: {exc}") from exc
        finally:
            conn.close()

    def pair_statistics(
        self, giver_id: str, recipient_id: str, since: datetime
    ) -> PairStatistics:
        conn = self._get_connection()
        try:
            row = conn.execute(
                """
                SELECT AVG(weight) AS average_weight, MAX(created_at) AS last_created_at
                FROM recognitions
                WHERE created_at >= ?
                  AND ((giver_id = ? AND recipient_id = ?)
                       OR (giver_id = ? AND recipient_id = ?))
                """,
                (
                    _to_db_timestamp(since),
                    giver_id,
                    recipient_id,
                    recipient_id,
                    giver_id,
                ),
            ).fetchone()
        except sqlite3.Error as exc:
            raise HistoryProviderError(f"Failed to aggregate pair: {exc}") from exc
        finally:
            conn.close()

        if row is None or row["last_created_at"] is None:
            return PairStatistics()
        return PairStatistics(
            average_weight=float(row["average_weight"]),
            last_recognition_at=_from_db_timestamp(row["last_created_at"]),
        )

    def persist_flag(self, flag: AbuseFlag, recognition_id: str) -> None:
        record = flag.to_record(recognition_id)
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO abuse_flags (
                    flag_id, recognition_id, flag_type, severity, description,
                    detection_method, flagged_by, status, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(uuid4()),
                    record["recognition_id"],
                    record["flag_type"],
                    record["severity"],
                    record["description"],
                    record["detection_method"],
                    record["flagged_by"],
                    record["status"],
                    json.dumps(record["metadata"], sort_keys=True),
                    _to_db_timestamp(flag.created_at),
                ),
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise FlagPersistenceError(f"Failed to persist flag: {exc}") from exc
        finally:
            conn.close()

    def emit_audit_event(
        self,
        event_code: str,
        actor_id: str,
        target_id: str | None,
        metadata: dict[str, Any],
    ) -> None:
        entry = AuditEntry(
            event_code=event_code,
            actor_id=hash_identity(actor_id),
            target_id=target_id,
            metadata=dict(metadata),
        )
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO audit_entries (
                    entry_id, event_code, actor_id, target_id, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(uuid4()),
                    entry.event_code,
                    entry.actor_id,
                    entry.target_id,
                    json.dumps(entry.metadata, sort_keys=True),
                    _to_db_timestamp(entry.created_at),
                ),
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error(
                "audit_entry_save_failed", event_code=event_code, error=str(exc)
            )
            raise
        finally:
            conn.close()

    def list_flags(self) -> list[StoredFlag]:
        """All stored flags, oldest first."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM abuse_flags ORDER BY created_at, rowid"
            ).fetchall()
        finally:
            conn.close()
        return [
            StoredFlag(
                flag_id=row["flag_id"],
                recognition_id=row["recognition_id"],
                flag=AbuseFlag(
                    flag_type=row["flag_type"],
                    severity=row["severity"],
                    description=row["description"],
                    detection_method=row["detection_method"],
                    status=row["status"],
                    metadata=json.loads(row["metadata"]),
                    created_at=_from_db_timestamp(row["created_at"]),
                ),
            )
            for row in rows
        ]

    def list_audit_entries(self) -> list[AuditEntry]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM audit_entries ORDER BY created_at, rowid"
            ).fetchall()
        finally:
            conn.close()
        return [
            AuditEntry(
                event_code=row["event_code"],
                actor_id=row["actor_id"],
                target_id=row["target_id"],
                metadata=json.loads(row["metadata"]),
                created_at=_from_db_timestamp(row["created_at"]),
            )
            for row in rows
        ]
