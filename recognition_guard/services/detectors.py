"""Abuse pattern detectors.

Each detector inspects a pre-fetched DetectionContext and returns zero or
more flags. Detectors never query storage themselves, so they can be
exercised with hand-built history windows.

Detectors:
- ReciprocityDetector: giver→recipient excess and two-way exchanges
- FrequencyDetector: daily and weekly volume per giver
- ContentDetector: short reasons and near-duplicate reasons
- WeightManipulationDetector: evidenceless high weight, role deviation
"""

from typing import Protocol

from recognition_guard.domain.detection_constants import (
    DAILY_HIGH_SEVERITY_MULTIPLIER,
    RECIPROCITY_HIGH_SEVERITY_MULTIPLIER,
)
from recognition_guard.domain.models import (
    AbuseFlag,
    DetectionContext,
    DetectionThresholds,
    DuplicateContentMetadata,
    EvidencelessWeightMetadata,
    FlagSeverity,
    FlagType,
    FrequencyMetadata,
    MutualExchangeMetadata,
    ReciprocityMetadata,
    ShortReasonMetadata,
    WeightVarianceMetadata,
)
from recognition_guard.services.identity import hash_identity
from recognition_guard.services.similarity import count_similar


class Detector(Protocol):
    """Common shape of every detector."""

    flag_type: FlagType

    def detect(self, context: DetectionContext) -> list[AbuseFlag]: ...


class ReciprocityDetector:
    """Flags pairs that recognize each other excessively."""

    flag_type = FlagType.RECIPROCITY

    def __init__(self, thresholds: DetectionThresholds) -> None:
        self.thresholds = thresholds

    def detect(self, context: DetectionContext) -> list[AbuseFlag]:
        pattern = context.history.pattern
        threshold = self.thresholds.reciprocity_threshold
        mutual_threshold = self.thresholds.mutual_exchange_threshold
        window_days = self.thresholds.reciprocity_window_days
        flags: list[AbuseFlag] = []

        if pattern.direct_count >= threshold:
            severity = (
                FlagSeverity.HIGH
                if pattern.direct_count >= threshold * RECIPROCITY_HIGH_SEVERITY_MULTIPLIER
                else FlagSeverity.MEDIUM
            )
            giver = hash_identity(context.event.giver_id)
            recipient = hash_identity(context.event.recipient_id)
            flags.append(
                AbuseFlag(
                    flag_type=self.flag_type,
                    severity=severity,
                    description=(
                        f"{pattern.direct_count} recognitions from {giver} to "
                        f"{recipient} in {window_days} days (threshold: {threshold})"
                    ),
                    metadata=ReciprocityMetadata(
                        frequency=pattern.direct_count,
                        threshold=threshold,
                        window_days=window_days,
                    ),
                    created_at=context.event.created_at,
                )
            )

        # Exchange in both directions outranks one-directional excess
        if (
            pattern.mutual_count >= mutual_threshold
            and pattern.direct_count >= mutual_threshold
        ):
            flags.append(
                AbuseFlag(
                    flag_type=self.flag_type,
                    severity=FlagSeverity.HIGH,
                    description=(
                        "Mutual recognition exchange detected: "
                        f"{pattern.direct_count} direct, {pattern.mutual_count} reverse"
                    ),
                    metadata=MutualExchangeMetadata(
                        direct_count=pattern.direct_count,
                        mutual_count=pattern.mutual_count,
                        total_exchanges=pattern.direct_count + pattern.mutual_count,
                        threshold=mutual_threshold,
                    ),
                    created_at=context.event.created_at,
                )
            )

        return flags


class FrequencyDetector:
    """Flags givers that send too many recognitions per day or week."""

    flag_type = FlagType.FREQUENCY

    def __init__(self, thresholds: DetectionThresholds) -> None:
        self.thresholds = thresholds

    def detect(self, context: DetectionContext) -> list[AbuseFlag]:
        daily_count = context.history.daily_count
        weekly_count = context.history.weekly_count
        daily_limit = self.thresholds.daily_limit
        weekly_limit = self.thresholds.weekly_limit
        flags: list[AbuseFlag] = []

        if daily_count >= daily_limit:
            severity = (
                FlagSeverity.HIGH
                if daily_count >= daily_limit * DAILY_HIGH_SEVERITY_MULTIPLIER
                else FlagSeverity.MEDIUM
            )
            flags.append(
                AbuseFlag(
                    flag_type=self.flag_type,
                    severity=severity,
                    description=(
                        f"Daily recognition limit exceeded: {daily_count}/{daily_limit}"
                    ),
                    metadata=FrequencyMetadata(
                        count=daily_count, limit=daily_limit, period="daily"
                    ),
                    created_at=context.event.created_at,
                )
            )

        if weekly_count >= weekly_limit:
            flags.append(
                AbuseFlag(
                    flag_type=self.flag_type,
                    severity=FlagSeverity.CRITICAL,
                    description=(
                        f"Weekly recognition limit exceeded: {weekly_count}/{weekly_limit}"
                    ),
                    metadata=FrequencyMetadata(
                        count=weekly_count, limit=weekly_limit, period="weekly"
                    ),
                    created_at=context.event.created_at,
                )
            )

        return flags


class ContentDetector:
    """Flags low-effort or copy-pasted recognition reasons."""

    flag_type = FlagType.CONTENT

    def __init__(self, thresholds: DetectionThresholds) -> None:
        self.thresholds = thresholds

    def detect(self, context: DetectionContext) -> list[AbuseFlag]:
        reason = context.event.reason
        min_length = self.thresholds.min_reason_length
        flags: list[AbuseFlag] = []

        if len(reason) < min_length:
            flags.append(
                AbuseFlag(
                    flag_type=self.flag_type,
                    severity=FlagSeverity.LOW,
                    description=(
                        f"Recognition reason too short: {len(reason)} characters "
                        f"(minimum: {min_length})"
                    ),
                    metadata=ShortReasonMetadata(
                        reason_length=len(reason), min_length=min_length
                    ),
                    created_at=context.event.created_at,
                )
            )

        similar_count = count_similar(
            reason,
            context.history.pattern.reasons,
            self.thresholds.duplicate_similarity,
        )
        if similar_count >= self.thresholds.max_duplicate_reasons:
            window_days = self.thresholds.content_window_days
            flags.append(
                AbuseFlag(
                    flag_type=self.flag_type,
                    severity=FlagSeverity.MEDIUM,
                    description=(
                        f"Duplicate/similar content detected: {similar_count} similar "
                        f"reasons in last {window_days} days"
                    ),
                    metadata=DuplicateContentMetadata(
                        similar_count=similar_count,
                        threshold=self.thresholds.max_duplicate_reasons,
                        similarity_threshold=self.thresholds.duplicate_similarity,
                        window_days=window_days,
                    ),
                    created_at=context.event.created_at,
                )
            )

        return flags


class WeightManipulationDetector:
    """Flags weights that are out of line with evidence or giver role."""

    flag_type = FlagType.WEIGHT_MANIPULATION

    def __init__(self, thresholds: DetectionThresholds) -> None:
        self.thresholds = thresholds

    def detect(self, context: DetectionContext) -> list[AbuseFlag]:
        event = context.event
        weight = event.weight
        high_weight_threshold = self.thresholds.evidenceless_high_weight_threshold
        flags: list[AbuseFlag] = []

        if weight > high_weight_threshold and event.evidence_count == 0:
            severity = (
                FlagSeverity.HIGH
                if weight > self.thresholds.evidenceless_high_severity_weight
                else FlagSeverity.MEDIUM
            )
            flags.append(
                AbuseFlag(
                    flag_type=self.flag_type,
                    severity=severity,
                    description=(
                        f"High weight ({weight:g}) without evidence "
                        f"(role: {event.giver_role.value})"
                    ),
                    metadata=EvidencelessWeightMetadata(
                        weight=weight,
                        evidence_count=event.evidence_count,
                        giver_role=event.giver_role,
                        threshold=high_weight_threshold,
                    ),
                    created_at=event.created_at,
                )
            )

        expected = self.thresholds.expected_weight_by_role[event.giver_role]
        variance = weight - expected
        # Only upward deviation is suspicious
        if variance > self.thresholds.weight_variance_threshold:
            flags.append(
                AbuseFlag(
                    flag_type=self.flag_type,
                    severity=FlagSeverity.MEDIUM,
                    description=(
                        f"Unusual weight pattern: {weight:g} vs expected {expected:g} "
                        f"for {event.giver_role.value}"
                    ),
                    metadata=WeightVarianceMetadata(
                        actual_weight=weight,
                        expected_weight=expected,
                        variance=round(variance, 4),
                        giver_role=event.giver_role,
                    ),
                    created_at=event.created_at,
                )
            )

        return flags


def build_default_detectors(thresholds: DetectionThresholds) -> list[Detector]:
    """Detectors in evaluation order.

    Order is fixed: reciprocity, frequency, content, weight manipulation.
    Severity and weight computation depend on it being stable.
    """
    return [
        ReciprocityDetector(thresholds),
        FrequencyDetector(thresholds),
        ContentDetector(thresholds),
        WeightManipulationDetector(thresholds),
    ]
