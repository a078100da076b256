"""Tests for the SQLite recognition store."""

import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytz

from recognition_guard.adapters.sqlite_store import SQLiteRecognitionStore
from recognition_guard.domain.exceptions import FlagPersistenceError, HistoryProviderError
from recognition_guard.domain.models import (
    DetectionThresholds,
    FlagSeverity,
    FlagStatus,
    FlagType,
    HistoryDirection,
    PairStatistics,
    ReciprocityMetadata,
)
from recognition_guard.services.detectors import ReciprocityDetector
from recognition_guard.services.identity import hash_identity
from tests.conftest import BASE_TIME, create_context, create_flag, create_test_event


def test_schema_created(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "guard.sqlite"

    SQLiteRecognitionStore(str(db_path))

    conn = sqlite3.connect(db_path)
    try:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
    finally:
        conn.close()
    assert {"recognitions", "abuse_flags", "audit_entries"} <= tables


def test_count_events_window_boundaries(sqlite_store: SQLiteRecognitionStore) -> None:
    sqlite_store.add_recognition(
        create_test_event(recognition_id="edge", created_at=BASE_TIME - timedelta(days=1))
    )
    sqlite_store.add_recognition(
        create_test_event(
            recognition_id="outside",
            created_at=BASE_TIME - timedelta(days=1, microseconds=1),
        )
    )

    count = sqlite_store.count_events(
        "alice@example.com",
        "bob@example.com",
        HistoryDirection.GIVEN,
        BASE_TIME - timedelta(days=1),
    )

    assert count == 1


def test_count_events_received(sqlite_store: SQLiteRecognitionStore) -> None:
    sqlite_store.add_recognition(
        create_test_event(
            recognition_id="reverse",
            giver_id="bob@example.com",
            recipient_id="alice@example.com",
        )
    )

    since = BASE_TIME - timedelta(days=7)
    assert (
        sqlite_store.count_events(
            "alice@example.com", "bob@example.com", HistoryDirection.RECEIVED, since
        )
        == 1
    )
    assert (
        sqlite_store.count_events(
            "alice@example.com", "bob@example.com", HistoryDirection.GIVEN, since
        )
        == 0
    )


def test_non_utc_timestamps_compare_correctly(
    sqlite_store: SQLiteRecognitionStore,
) -> None:
    berlin = pytz.timezone("Europe/Berlin")
    local = berlin.localize(datetime(2025, 10, 15, 13, 30))  # 11:30 UTC
    sqlite_store.add_recognition(create_test_event(created_at=local))

    count = sqlite_store.count_events(
        "alice@example.com",
        None,
        HistoryDirection.GIVEN,
        datetime(2025, 10, 15, 11, 0, tzinfo=pytz.UTC),
    )

    assert count == 1


def test_list_recent_reasons_newest_first(sqlite_store: SQLiteRecognitionStore) -> None:
    sqlite_store.add_recognition(
        create_test_event(
            recognition_id="a", reason="older", created_at=BASE_TIME - timedelta(days=3)
        )
    )
    sqlite_store.add_recognition(
        create_test_event(
            recognition_id="b", reason="newer", created_at=BASE_TIME - timedelta(days=1)
        )
    )

    reasons = sqlite_store.list_recent_reasons(
        "alice@example.com", BASE_TIME - timedelta(days=30)
    )

    assert reasons == ["newer", "older"]


def test_pair_statistics(sqlite_store: SQLiteRecognitionStore) -> None:
    sqlite_store.add_recognition(
        create_test_event(
            recognition_id="a", weight=1.0, created_at=BASE_TIME - timedelta(days=2)
        )
    )
    sqlite_store.add_recognition(
        create_test_event(
            recognition_id="b",
            giver_id="bob@example.com",
            recipient_id="alice@example.com",
            weight=2.0,
            created_at=BASE_TIME - timedelta(days=1),
        )
    )

    stats = sqlite_store.pair_statistics(
        "alice@example.com", "bob@example.com", BASE_TIME - timedelta(days=7)
    )

    assert stats.average_weight == pytest.approx(1.5)
    assert stats.last_recognition_at == BASE_TIME - timedelta(days=1)


def test_pair_statistics_empty(sqlite_store: SQLiteRecognitionStore) -> None:
    assert sqlite_store.pair_statistics("x", "y", BASE_TIME) == PairStatistics()


def test_persisted_flags_round_trip(sqlite_store: SQLiteRecognitionStore) -> None:
    flags = ReciprocityDetector(DetectionThresholds()).detect(
        create_context(direct_count=6)
    )

    sqlite_store.persist_flag(flags[0], "rec-1")
    stored = sqlite_store.list_flags()

    assert len(stored) == 1
    assert stored[0].recognition_id == "rec-1"
    restored = stored[0].flag
    assert restored.flag_type is FlagType.RECIPROCITY
    assert restored.severity is FlagSeverity.MEDIUM
    assert restored.status is FlagStatus.PENDING
    assert restored.metadata == ReciprocityMetadata(frequency=6, threshold=5, window_days=7)
    assert restored.created_at == BASE_TIME


def test_audit_entries_hash_actor(sqlite_store: SQLiteRecognitionStore) -> None:
    sqlite_store.emit_audit_event(
        "ABUSE_FLAGGED", "system", "rec-1", {"flag_count": 2, "flag_types": ["content"]}
    )

    entries = sqlite_store.list_audit_entries()

    assert len(entries) == 1
    assert entries[0].actor_id == hash_identity("system")
    assert entries[0].target_id == "rec-1"
    assert entries[0].metadata == {"flag_count": 2, "flag_types": ["content"]}


def test_history_errors_are_wrapped(sqlite_store: SQLiteRecognitionStore) -> None:
    conn = sqlite3.connect(sqlite_store.db_path)
    try:
        conn.execute("DROP TABLE recognitions")
        conn.commit()
    finally:
        conn.close()

    with pytest.raises(HistoryProviderError):
        sqlite_store.count_events("a", None, HistoryDirection.GIVEN, BASE_TIME)


def test_flag_persistence_errors_are_wrapped(
    sqlite_store: SQLiteRecognitionStore,
) -> None:
    conn = sqlite3.connect(sqlite_store.db_path)
    try:
        conn.execute("DROP TABLE abuse_flags")
        conn.commit()
    finally:
        conn.close()

    with pytest.raises(FlagPersistenceError):
        sqlite_store.persist_flag(create_flag(), "rec-1")
