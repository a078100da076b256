"""Abuse flag statistics for the moderation dashboard."""

from collections import Counter
from collections.abc import Iterable

from recognition_guard.domain.models import (
    AbuseStatistics,
    FlagSeverity,
    FlagStatus,
    FlagType,
    StoredFlag,
)


def summarize_flags(records: Iterable[StoredFlag]) -> AbuseStatistics:
    """Count stored flags by type, severity and review status.

    Every flag type and severity appears in the breakdowns, with zero when
    absent, so dashboards render a stable set of rows.

    Args:
        records: Stored flags (any mix of recognitions)

    Returns:
        AbuseStatistics

    Example:
        >>> stats = summarize_flags(store.list_flags())
        >>> stats.flags_by_type["reciprocity"]
        2
    """
    by_type: Counter[str] = Counter()
    by_severity: Counter[str] = Counter()
    recognitions: set[str] = set()
    pending = 0
    total = 0

    for record in records:
        total += 1
        flag = record.flag
        by_type[flag.flag_type.value] += 1
        by_severity[flag.severity.value] += 1
        recognitions.add(record.recognition_id)
        if flag.status is FlagStatus.PENDING:
            pending += 1

    return AbuseStatistics(
        total_flags=total,
        pending_review=pending,
        critical_flags=by_severity[FlagSeverity.CRITICAL.value],
        recognitions_affected=len(recognitions),
        flags_by_type={
            flag_type.value: by_type[flag_type.value] for flag_type in FlagType
        },
        flags_by_severity={
            severity.value: by_severity[severity.value] for severity in FlagSeverity
        },
    )
