"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import threading
from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import pytz

from recognition_guard.adapters.in_memory_store import InMemoryRecognitionStore
from recognition_guard.adapters.sqlite_store import SQLiteRecognitionStore
from recognition_guard.domain.models import (
    AbuseFlag,
    DetectionContext,
    DetectionThresholds,
    FlagSeverity,
    FlagType,
    FrequencyMetadata,
    GiverRole,
    HistoryDirection,
    HistoryWindow,
    RecognitionEvent,
    RecognitionPattern,
)

BASE_TIME = datetime(2025, 10, 15, 12, 0, tzinfo=pytz.UTC)
LONG_REASON = "Shipped the billing migration two days early"


def create_test_event(
    recognition_id: str = "rec-1",
    giver_id: str = "alice@example.com",
    recipient_id: str = "bob@example.com",
    reason: str = LONG_REASON,
    weight: float = 1.0,
    evidence_count: int = 1,
    giver_role: GiverRole = GiverRole.MEMBER,
    created_at: datetime = BASE_TIME,
) -> RecognitionEvent:
    """Create a recognition event with quiet defaults (no detector fires)."""
    return RecognitionEvent(
        recognition_id=recognition_id,
        giver_id=giver_id,
        recipient_id=recipient_id,
        reason=reason,
        weight=weight,
        evidence_count=evidence_count,
        giver_role=giver_role,
        created_at=created_at,
    )


def create_context(
    event: RecognitionEvent | None = None,
    direct_count: int = 0,
    mutual_count: int = 0,
    daily_count: int = 0,
    weekly_count: int = 0,
    reasons: tuple[str, ...] = (),
) -> DetectionContext:
    """Build a detection context from plain counts."""
    return DetectionContext(
        event=event or create_test_event(),
        history=HistoryWindow(
            pattern=RecognitionPattern(
                direct_count=direct_count,
                mutual_count=mutual_count,
                reasons=reasons,
            ),
            daily_count=daily_count,
            weekly_count=weekly_count,
        ),
    )


def create_flag(
    flag_type: FlagType = FlagType.FREQUENCY,
    severity: FlagSeverity = FlagSeverity.MEDIUM,
) -> AbuseFlag:
    """Flag with throwaway metadata, for aggregation tests."""
    return AbuseFlag(
        flag_type=flag_type,
        severity=severity,
        description=f"{flag_type.value} flag",
        metadata=FrequencyMetadata(count=11, limit=10, period="daily"),
        created_at=BASE_TIME,
    )


class FakeHistoryProvider:
    """Scripted history answers keyed by query shape.

    Pair queries (counterpart given) return direct/mutual counts; giver-wide
    queries return the daily count for windows of one day or less and the
    weekly count otherwise.
    """

    def __init__(
        self,
        direct: int = 0,
        mutual: int = 0,
        daily: int = 0,
        weekly: int = 0,
        reasons: list[str] | None = None,
        anchor: datetime = BASE_TIME,
        error: Exception | None = None,
        block: threading.Event | None = None,
    ) -> None:
        self.direct = direct
        self.mutual = mutual
        self.daily = daily
        self.weekly = weekly
        self.reasons = reasons or []
        self.anchor = anchor
        self.error = error
        self.block = block
        self.calls: list[tuple[Any, ...]] = []
        self._lock = threading.Lock()

    def _before_answer(self, call: tuple[Any, ...]) -> None:
        with self._lock:
            self.calls.append(call)
        if self.block is not None:
            self.block.wait(timeout=5)
        if self.error is not None:
            raise self.error

    def count_events(
        self,
        user_id: str,
        counterpart_id: str | None,
        direction: HistoryDirection,
        since: datetime,
    ) -> int:
        self._before_answer(("count_events", user_id, counterpart_id, direction, since))
        if counterpart_id is not None:
            return self.direct if direction is HistoryDirection.GIVEN else self.mutual
        if self.anchor - since <= timedelta(days=1):
            return self.daily
        return self.weekly

    def list_recent_reasons(self, giver_id: str, since: datetime) -> list[str]:
        self._before_answer(("list_recent_reasons", giver_id, since))
        return list(self.reasons)


class RecordingSink:
    """Flag and audit sink that keeps everything it receives."""

    def __init__(
        self,
        flag_error: Exception | None = None,
        audit_error: Exception | None = None,
    ) -> None:
        self.flags: list[tuple[AbuseFlag, str]] = []
        self.audit_events: list[dict[str, Any]] = []
        self.flag_error = flag_error
        self.audit_error = audit_error

    def persist_flag(self, flag: AbuseFlag, recognition_id: str) -> None:
        if self.flag_error is not None:
            raise self.flag_error
        self.flags.append((flag, recognition_id))

    def emit_audit_event(
        self,
        event_code: str,
        actor_id: str,
        target_id: str | None,
        metadata: dict[str, Any],
    ) -> None:
        if self.audit_error is not None:
            raise self.audit_error
        self.audit_events.append(
            {
                "event_code": event_code,
                "actor_id": actor_id,
                "target_id": target_id,
                "metadata": metadata,
            }
        )


@pytest.fixture
def thresholds() -> DetectionThresholds:
    """Default detection tuning."""
    return DetectionThresholds()


@pytest.fixture
def sample_event() -> RecognitionEvent:
    """Quiet recognition event."""
    return create_test_event()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def memory_store() -> InMemoryRecognitionStore:
    return InMemoryRecognitionStore()


@pytest.fixture
def sqlite_store(tmp_path: Path) -> SQLiteRecognitionStore:
    return SQLiteRecognitionStore(str(tmp_path / "recognitions.sqlite"))


@pytest.fixture
def release_event() -> Generator[threading.Event, None, None]:
    """Event that unblocks slow fake providers at teardown."""
    event = threading.Event()
    try:
        yield event
    finally:
        event.set()
