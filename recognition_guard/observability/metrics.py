"""Prometheus metrics for recognition evaluation."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram

OUTCOME_CLEAN: Final[str] = "clean"
OUTCOME_FLAGGED: Final[str] = "flagged"
OUTCOME_FAILED_OPEN: Final[str] = "failed_open"

EVALUATIONS_TOTAL: Final[Counter] = Counter(
    "recognition_evaluations_total",
    "Recognitions evaluated for abuse, by outcome",
    labelnames=("outcome",),
)

ABUSE_FLAGS_TOTAL: Final[Counter] = Counter(
    "abuse_flags_total",
    "Abuse flags raised by detectors",
    labelnames=("flag_type", "severity"),
)

EVALUATION_DURATION_SECONDS: Final[Histogram] = Histogram(
    "recognition_evaluation_duration_seconds",
    "Time spent evaluating one recognition, history fetch included",
)


__all__ = [
    "ABUSE_FLAGS_TOTAL",
    "EVALUATIONS_TOTAL",
    "EVALUATION_DURATION_SECONDS",
    "OUTCOME_CLEAN",
    "OUTCOME_FAILED_OPEN",
    "OUTCOME_FLAGGED",
]
