"""In-memory recognition store for tests and local runs.

Implements the history, flag and audit ports plus pair statistics.
"""

import threading
from datetime import datetime
from typing import Any

from recognition_guard.domain.models import (
    AbuseFlag,
    AuditEntry,
    HistoryDirection,
    PairStatistics,
    RecognitionEvent,
    StoredFlag,
)
from recognition_guard.services.identity import hash_identity


class InMemoryRecognitionStore:
    """List-backed store; every operation takes a lock."""

    def __init__(self, recognitions: list[RecognitionEvent] | None = None) -> None:
        self._recognitions: list[RecognitionEvent] = list(recognitions or [])
        self._flags: list[StoredFlag] = []
        self._audit_entries: list[AuditEntry] = []
        self._lock = threading.RLock()

    def add_recognition(self, event: RecognitionEvent) -> None:
        with self._lock:
            self._recognitions.append(event)

    def _matching(
        self,
        user_id: str,
        counterpart_id: str | None,
        direction: HistoryDirection,
        since: datetime,
    ) -> list[RecognitionEvent]:
        matches = []
        for event in self._recognitions:
            if event.created_at < since:
                continue
            if direction is HistoryDirection.GIVEN:
                own, other = event.giver_id, event.recipient_id
            else:
                own, other = event.recipient_id, event.giver_id
            if own != user_id:
                continue
            if counterpart_id is not None and other != counterpart_id:
                continue
            matches.append(event)
        return matches

    def count_events(
        self,
        user_id: str,
        counterpart_id: str | None,
        direction: HistoryDirection,
        since: datetime,
    ) -> int:
        with self._lock:
            return len(self._matching(user_id, counterpart_id, direction, since))

    def list_recent_reasons(self, giver_id: str, since: datetime) -> list[str]:
        with self._lock:
            events = self._matching(giver_id, None, HistoryDirection.GIVEN, since)
            return [event.reason for event in events]

    def pair_statistics(
        self, giver_id: str, recipient_id: str, since: datetime
    ) -> PairStatistics:
        with self._lock:
            events = self._matching(
                giver_id, recipient_id, HistoryDirection.GIVEN, since
            ) + self._matching(giver_id, recipient_id, HistoryDirection.RECEIVED, since)
        if not events:
            return PairStatistics()
        return PairStatistics(
            average_weight=sum(event.weight for event in events) / len(events),
            last_recognition_at=max(event.created_at for event in events),
        )

    def persist_flag(self, flag: AbuseFlag, recognition_id: str) -> None:
        with self._lock:
            self._flags.append(StoredFlag(recognition_id=recognition_id, flag=flag))

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
        with self._lock:
            self._audit_entries.append(entry)

    def list_flags(self) -> list[StoredFlag]:
        with self._lock:
            return list(self._flags)

    def list_audit_entries(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._audit_entries)
