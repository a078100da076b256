"""Severity aggregation across detector flags.

Each flag contributes points by its severity (Low=1, Medium=5, High=10,
Critical=20 by default). The total is bucketed high to low:
score >= 20 → Critical, >= 10 → High, >= 5 → Medium, else Low.
"""

from collections.abc import Iterable

from recognition_guard.domain.detection_constants import (
    CRITICAL_SCORE_THRESHOLD,
    HIGH_SCORE_THRESHOLD,
    MEDIUM_SCORE_THRESHOLD,
)
from recognition_guard.domain.models import (
    AbuseFlag,
    DetectionThresholds,
    FlagSeverity,
    SeverityAssessment,
)

_DEFAULT_THRESHOLDS = DetectionThresholds()


def severity_for_score(score: int) -> FlagSeverity:
    """Map an aggregate score to its severity bucket.

    Example:
        >>> severity_for_score(12)
        <FlagSeverity.HIGH: 'high'>
    """
    if score >= CRITICAL_SCORE_THRESHOLD:
        return FlagSeverity.CRITICAL
    if score >= HIGH_SCORE_THRESHOLD:
        return FlagSeverity.HIGH
    if score >= MEDIUM_SCORE_THRESHOLD:
        return FlagSeverity.MEDIUM
    return FlagSeverity.LOW


def assess_severity(
    flags: Iterable[AbuseFlag],
    thresholds: DetectionThresholds | None = None,
) -> SeverityAssessment:
    """Combine flags into one severity class and numeric score.

    Args:
        flags: Flags from all detectors
        thresholds: Tuning providing points per severity

    Returns:
        SeverityAssessment; an empty flag list scores 0 / Low
    """
    points = (thresholds or _DEFAULT_THRESHOLDS).severity_points
    score = sum(points[flag.severity] for flag in flags)
    return SeverityAssessment(severity=severity_for_score(score), score=score)
