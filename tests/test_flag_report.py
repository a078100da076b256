"""Tests for abuse flag statistics."""

from recognition_guard.domain.models import (
    FlagSeverity,
    FlagStatus,
    FlagType,
    StoredFlag,
)
from recognition_guard.services.flag_report import summarize_flags
from tests.conftest import create_flag


def test_empty_report_lists_every_bucket() -> None:
    stats = summarize_flags([])

    assert stats.total_flags == 0
    assert stats.flags_by_type == {flag_type.value: 0 for flag_type in FlagType}
    assert stats.flags_by_severity == {severity.value: 0 for severity in FlagSeverity}


def test_counts_by_type_severity_and_status() -> None:
    dismissed = create_flag(FlagType.CONTENT, FlagSeverity.LOW).model_copy(
        update={"status": FlagStatus.DISMISSED}
    )
    records = [
        StoredFlag(
            recognition_id="rec-1",
            flag=create_flag(FlagType.RECIPROCITY, FlagSeverity.MEDIUM),
        ),
        StoredFlag(
            recognition_id="rec-1",
            flag=create_flag(FlagType.RECIPROCITY, FlagSeverity.HIGH),
        ),
        StoredFlag(
            recognition_id="rec-2",
            flag=create_flag(FlagType.FREQUENCY, FlagSeverity.CRITICAL),
        ),
        StoredFlag(recognition_id="rec-3", flag=dismissed),
    ]

    stats = summarize_flags(records)

    assert stats.total_flags == 4
    assert stats.pending_review == 3
    assert stats.critical_flags == 1
    assert stats.recognitions_affected == 3
    assert stats.flags_by_type == {
        "reciprocity": 2,
        "frequency": 1,
        "content": 1,
        "weight_manipulation": 0,
    }
    assert stats.flags_by_severity == {
        "low": 1,
        "medium": 1,
        "high": 1,
        "critical": 1,
    }
