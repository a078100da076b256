"""Protocol definitions for dependency inversion.

The detection engine never talks to storage directly. These interfaces are
implemented by whatever persistence layer hosts recognitions, flags and the
audit trail.
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from recognition_guard.domain.models import (
    AbuseFlag,
    HistoryDirection,
    PairStatistics,
)


class HistoryProviderProtocol(Protocol):
    """Read-only queries over stored recognitions."""

    def count_events(
        self,
        user_id: str,
        counterpart_id: str | None,
        direction: HistoryDirection,
        since: datetime,
    ) -> int:
        """Count recognitions involving a user since a timestamp.

        Args:
            user_id: User whose history is queried
            counterpart_id: Restrict to recognitions with this other party (None = anyone)
            direction: GIVEN counts recognitions user_id gave,
                RECEIVED counts recognitions user_id received
            since: Inclusive lower bound on created_at

        Returns:
            Number of matching recognitions

        Raises:
            HistoryProviderError: On storage errors
        """
        ...

    def list_recent_reasons(self, giver_id: str, since: datetime) -> list[str]:
        """Return reason texts the giver wrote since a timestamp.

        Raises:
            HistoryProviderError: On storage errors
        """
        ...


@runtime_checkable
class PairStatisticsProviderProtocol(Protocol):
    """Optional extension: weight/time aggregates for a giver↔recipient pair."""

    def pair_statistics(
        self, giver_id: str, recipient_id: str, since: datetime
    ) -> PairStatistics:
        """Average weight and latest timestamp across both directions."""
        ...


class FlagSinkProtocol(Protocol):
    """Persistence for detected flags."""

    def persist_flag(self, flag: AbuseFlag, recognition_id: str) -> None:
        """Store one flag.

        Raises:
            FlagPersistenceError: On storage errors
        """
        ...


class AuditSinkProtocol(Protocol):
    """Structured audit trail.

    Implementations must only ever receive hashed identifiers and
    numeric/enum metadata.
    """

    def emit_audit_event(
        self,
        event_code: str,
        actor_id: str,
        target_id: str | None,
        metadata: dict[str, Any],
    ) -> None: ...


class RecognitionStoreProtocol(
    HistoryProviderProtocol, FlagSinkProtocol, AuditSinkProtocol, Protocol
):
    """A single collaborator implementing every port."""
