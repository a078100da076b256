"""Evaluate recognition use case.

Runs every abuse detector for one recognition and decides its trust weight.

1. Fetch history windows concurrently (direct/mutual pair counts, daily and
   weekly giver counts, giver's recent reasons), bounded by a deadline
2. Run detectors in fixed order: reciprocity, frequency, content, weight
3. Aggregate severity; adjust weight only when something was flagged
4. Persist flags and emit an ABUSE_FLAGGED audit event
5. Return the DetectionResult

Any failure in steps 1-4 other than the audit write is turned into an
ABUSE_DETECTION_ERROR audit event and a clean (non-abusive) result. A
failing audit sink is logged and never changes the result. Detection problems
must never block recognition creation.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timedelta
from time import perf_counter
from typing import Any, Generic, TypeVar

from recognition_guard.config.logging_config import get_logger
from recognition_guard.domain.detection_constants import (
    AUDIT_ACTOR_SYSTEM,
    AUDIT_EVENT_ABUSE_FLAGGED,
    AUDIT_EVENT_DETECTION_ERROR,
    DAILY_WINDOW_DAYS,
    WEEKLY_WINDOW_DAYS,
)
from recognition_guard.domain.exceptions import (
    HistoryProviderError,
    HistoryTimeoutError,
    RecognitionGuardError,
)
from recognition_guard.domain.models import (
    AbuseFlag,
    DetectionContext,
    DetectionResult,
    DetectionThresholds,
    HistoryDirection,
    HistoryWindow,
    PairStatistics,
    RecognitionEvent,
    RecognitionPattern,
)
from recognition_guard.domain.protocols import (
    AuditSinkProtocol,
    FlagSinkProtocol,
    HistoryProviderProtocol,
    PairStatisticsProviderProtocol,
    RecognitionStoreProtocol,
)
from recognition_guard.observability.metrics import (
    ABUSE_FLAGS_TOTAL,
    EVALUATION_DURATION_SECONDS,
    EVALUATIONS_TOTAL,
    OUTCOME_CLEAN,
    OUTCOME_FAILED_OPEN,
    OUTCOME_FLAGGED,
)
from recognition_guard.observability.tracing import correlation_scope
from recognition_guard.services.detectors import Detector, build_default_detectors
from recognition_guard.services.identity import hash_identity
from recognition_guard.services.severity import assess_severity
from recognition_guard.services.weight_adjuster import adjust_weight, distinct_flag_types

logger = get_logger(__name__)

T = TypeVar("T")

_STAGE_HISTORY = "history_fetch"
_STAGE_DETECTION = "detection"
_STAGE_PERSISTENCE = "persistence"
_STAGE_EVALUATION = "evaluation"


@dataclass(frozen=True)
class StepOutcome(Generic[T]):
    """Result of one fallible step: either a value or the error that stopped it."""

    value: T | None = None
    error: Exception | None = None
    stage: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, stage: str) -> StepOutcome[T]:
        return cls(value=value, stage=stage)

    @classmethod
    def failure(cls, error: Exception, stage: str) -> StepOutcome[T]:
        return cls(error=error, stage=stage)


class RecognitionEvaluator:
    """Decides whether a recognition looks like gaming and how much it should count."""

    def __init__(
        self,
        history_provider: HistoryProviderProtocol,
        flag_sink: FlagSinkProtocol,
        audit_sink: AuditSinkProtocol,
        thresholds: DetectionThresholds | None = None,
        detectors: Sequence[Detector] | None = None,
    ) -> None:
        """Initialize evaluator.

        Args:
            history_provider: Read access to stored recognitions
            flag_sink: Where detected flags are persisted
            audit_sink: Structured audit trail
            thresholds: Detection tuning (defaults if omitted)
            detectors: Override the detector chain (defaults to all four, in order)
        """
        self.history_provider = history_provider
        self.flag_sink = flag_sink
        self.audit_sink = audit_sink
        self.thresholds = thresholds or DetectionThresholds()
        self.detectors = list(
            detectors if detectors is not None else build_default_detectors(self.thresholds)
        )

    @classmethod
    def from_store(
        cls,
        store: RecognitionStoreProtocol,
        thresholds: DetectionThresholds | None = None,
    ) -> RecognitionEvaluator:
        """Build an evaluator whose every port is served by one store."""
        return cls(store, store, store, thresholds=thresholds)

    def evaluate(
        self,
        event: RecognitionEvent,
        *,
        correlation_id: str | None = None,
    ) -> DetectionResult:
        """Evaluate one recognition. Never raises on collaborator or detector failure.

        Args:
            event: Recognition about to be created
            correlation_id: Optional id to bind into log context

        Returns:
            DetectionResult; clean when detection could not complete
        """
        with correlation_scope(
            correlation_id, recognition_id=event.recognition_id
        ) as bound_correlation_id:
            started = perf_counter()
            try:
                try:
                    outcome = self._evaluate_steps(event, bound_correlation_id)
                except Exception as exc:  # noqa: BLE001 - fail open on unexpected errors
                    outcome = StepOutcome.failure(exc, _STAGE_EVALUATION)

                if outcome.ok and outcome.value is not None:
                    result = outcome.value
                    EVALUATIONS_TOTAL.labels(
                        outcome=OUTCOME_FLAGGED if result.is_abusive else OUTCOME_CLEAN
                    ).inc()
                    logger.info(
                        "recognition_evaluated",
                        correlation_id=bound_correlation_id,
                        recognition_id=event.recognition_id,
                        is_abusive=result.is_abusive,
                        flag_count=len(result.flags),
                        severity=result.severity.value,
                        score=result.score,
                        original_weight=result.original_weight,
                        adjusted_weight=result.adjusted_weight,
                    )
                    return result

                self._record_failure(event, outcome, bound_correlation_id)
                EVALUATIONS_TOTAL.labels(outcome=OUTCOME_FAILED_OPEN).inc()
                return DetectionResult.clean(event.weight)
            finally:
                EVALUATION_DURATION_SECONDS.observe(perf_counter() - started)

    def _evaluate_steps(
        self, event: RecognitionEvent, correlation_id: str
    ) -> StepOutcome[DetectionResult]:
        history = self.fetch_history(event)
        if not history.ok or history.value is None:
            return StepOutcome.failure(
                history.error or HistoryProviderError("history unavailable"),
                history.stage,
            )

        detection = self.run_detectors(
            DetectionContext(event=event, history=history.value)
        )
        if not detection.ok or detection.value is None:
            return StepOutcome.failure(
                detection.error or RecognitionGuardError("detection failed"),
                detection.stage,
            )

        result = self.build_result(event, detection.value)
        if result.is_abusive:
            persisted = self._persist(event, result)
            if not persisted.ok:
                return StepOutcome.failure(
                    persisted.error or RecognitionGuardError("persistence failed"),
                    persisted.stage,
                )
            self._record_flagged(event, result, correlation_id)

        return StepOutcome.success(result, _STAGE_DETECTION)

    def fetch_history(self, event: RecognitionEvent) -> StepOutcome[HistoryWindow]:
        """Query every history window concurrently within the configured deadline.

        Windows are anchored at event.created_at so results depend only on
        the event and the provider's answers.
        """
        provider = self.history_provider
        anchor: datetime = event.created_at
        reciprocity_since = anchor - timedelta(days=self.thresholds.reciprocity_window_days)
        daily_since = anchor - timedelta(days=DAILY_WINDOW_DAYS)
        weekly_since = anchor - timedelta(days=WEEKLY_WINDOW_DAYS)
        content_since = anchor - timedelta(days=self.thresholds.content_window_days)

        queries: dict[str, Callable[[], Any]] = {
            "direct": lambda: provider.count_events(
                event.giver_id, event.recipient_id, HistoryDirection.GIVEN, reciprocity_since
            ),
            "mutual": lambda: provider.count_events(
                event.giver_id,
                event.recipient_id,
                HistoryDirection.RECEIVED,
                reciprocity_since,
            ),
            "daily": lambda: provider.count_events(
                event.giver_id, None, HistoryDirection.GIVEN, daily_since
            ),
            "weekly": lambda: provider.count_events(
                event.giver_id, None, HistoryDirection.GIVEN, weekly_since
            ),
            "reasons": lambda: provider.list_recent_reasons(event.giver_id, content_since),
        }
        if isinstance(provider, PairStatisticsProviderProtocol):
            queries["pair"] = lambda: provider.pair_statistics(
                event.giver_id, event.recipient_id, reciprocity_since
            )

        timeout = self.thresholds.history_timeout_seconds
        executor = ThreadPoolExecutor(
            max_workers=len(queries), thread_name_prefix="history-fetch"
        )
        try:
            futures: dict[str, Future[Any]] = {
                name: executor.submit(query) for name, query in queries.items()
            }
            done, not_done = wait(
                futures.values(), timeout=timeout, return_when=FIRST_EXCEPTION
            )
            for future in done:
                error = future.exception()
                if error is not None:
                    if not isinstance(error, HistoryProviderError):
                        wrapped = HistoryProviderError(str(error))
                        wrapped.__cause__ = error
                        error = wrapped
                    return StepOutcome.failure(error, _STAGE_HISTORY)
            if not_done:
                return StepOutcome.failure(HistoryTimeoutError(timeout), _STAGE_HISTORY)

            answers = {name: future.result() for name, future in futures.items()}
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        try:
            stats: PairStatistics = answers.get("pair") or PairStatistics()
            pattern = RecognitionPattern(
                direct_count=int(answers["direct"]),
                mutual_count=int(answers["mutual"]),
                average_weight=stats.average_weight,
                last_recognition_at=stats.last_recognition_at,
                reasons=tuple(answers["reasons"]),
            )
            window = HistoryWindow(
                pattern=pattern,
                daily_count=int(answers["daily"]),
                weekly_count=int(answers["weekly"]),
            )
        except (TypeError, ValueError, AttributeError) as exc:
            malformed = HistoryProviderError(f"malformed history response: {exc}")
            malformed.__cause__ = exc
            return StepOutcome.failure(malformed, _STAGE_HISTORY)
        return StepOutcome.success(window, _STAGE_HISTORY)

    def run_detectors(self, context: DetectionContext) -> StepOutcome[list[AbuseFlag]]:
        """Run detectors in order and concatenate their flags."""
        flags: list[AbuseFlag] = []
        for detector in self.detectors:
            try:
                flags.extend(detector.detect(context))
            except Exception as exc:  # noqa: BLE001 - converted to fail-open outcome
                return StepOutcome.failure(exc, _STAGE_DETECTION)
        return StepOutcome.success(flags, _STAGE_DETECTION)

    def build_result(
        self, event: RecognitionEvent, flags: list[AbuseFlag]
    ) -> DetectionResult:
        """Aggregate flags into a DetectionResult. Pure."""
        assessment = assess_severity(flags, self.thresholds)
        return DetectionResult(
            is_abusive=bool(flags),
            flags=flags,
            severity=assessment.severity,
            score=assessment.score,
            original_weight=event.weight,
            adjusted_weight=adjust_weight(event.weight, flags, self.thresholds),
            reason_codes=[flag.flag_type.reason_code for flag in flags],
        )

    def _persist(
        self, event: RecognitionEvent, result: DetectionResult
    ) -> StepOutcome[None]:
        try:
            for flag in result.flags:
                self.flag_sink.persist_flag(flag, event.recognition_id)
                ABUSE_FLAGS_TOTAL.labels(
                    flag_type=flag.flag_type.value, severity=flag.severity.value
                ).inc()
        except Exception as exc:  # noqa: BLE001 - converted to fail-open outcome
            return StepOutcome.failure(exc, _STAGE_PERSISTENCE)
        return StepOutcome.success(None, _STAGE_PERSISTENCE)

    def _emit_audit(
        self,
        event_code: str,
        event: RecognitionEvent,
        metadata: dict[str, Any],
        correlation_id: str,
    ) -> None:
        """Write one audit entry; a failing audit sink is logged, never raised."""
        try:
            self.audit_sink.emit_audit_event(
                event_code, AUDIT_ACTOR_SYSTEM, event.recognition_id, metadata
            )
        except Exception as exc:  # noqa: BLE001 - audit trail must not break creation
            logger.error(
                "audit_event_emit_failed",
                correlation_id=correlation_id,
                recognition_id=event.recognition_id,
                event_code=event_code,
                error_type=type(exc).__name__,
            )

    def _record_flagged(
        self, event: RecognitionEvent, result: DetectionResult, correlation_id: str
    ) -> None:
        self._emit_audit(
            AUDIT_EVENT_ABUSE_FLAGGED,
            event,
            {
                "flag_count": len(result.flags),
                "severity": result.severity.value,
                "severity_score": result.score,
                "original_weight": result.original_weight,
                "adjusted_weight": result.adjusted_weight,
                "flag_types": [
                    flag_type.value for flag_type in distinct_flag_types(result.flags)
                ],
                "reason_codes": result.reason_codes,
            },
            correlation_id,
        )

    def _record_failure(
        self,
        event: RecognitionEvent,
        outcome: StepOutcome[DetectionResult],
        correlation_id: str,
    ) -> None:
        error = outcome.error
        error_type = type(error).__name__ if error is not None else "UnknownError"
        # Collaborator messages may quote the identities they queried
        logger.error(
            "abuse_detection_failed",
            correlation_id=correlation_id,
            recognition_id=event.recognition_id,
            stage=outcome.stage,
            error_type=error_type,
        )
        self._emit_audit(
            AUDIT_EVENT_DETECTION_ERROR,
            event,
            {
                "stage": outcome.stage,
                "error_type": error_type,
                "giver_id": hash_identity(event.giver_id),
                "recipient_id": hash_identity(event.recipient_id),
            },
            correlation_id,
        )


def evaluate_recognition_use_case(
    event: RecognitionEvent,
    store: RecognitionStoreProtocol,
    thresholds: DetectionThresholds | None = None,
    *,
    correlation_id: str | None = None,
) -> DetectionResult:
    """Evaluate one recognition against a single store implementing every port.

    Example:
        >>> result = evaluate_recognition_use_case(event, store)
        >>> result.effective_weight
        0.8
    """
    evaluator = RecognitionEvaluator.from_store(store, thresholds)
    return evaluator.evaluate(event, correlation_id=correlation_id)
