"""Domain models for the recognition guard.

All models use Pydantic v2 for validation and serialization.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import uuid4

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from recognition_guard.domain.detection_constants import (
    DEFAULT_CONTENT_WINDOW_DAYS,
    DEFAULT_DAILY_LIMIT,
    DEFAULT_DUPLICATE_SIMILARITY,
    DEFAULT_EVIDENCELESS_HIGH_SEVERITY_WEIGHT,
    DEFAULT_EVIDENCELESS_HIGH_WEIGHT_THRESHOLD,
    DEFAULT_EXPECTED_WEIGHT_BY_ROLE,
    DEFAULT_HISTORY_TIMEOUT_SECONDS,
    DEFAULT_MAX_DUPLICATE_REASONS,
    DEFAULT_MIN_REASON_LENGTH,
    DEFAULT_MUTUAL_EXCHANGE_THRESHOLD,
    DEFAULT_PENALTY_FACTORS,
    DEFAULT_RECIPROCITY_THRESHOLD,
    DEFAULT_RECIPROCITY_WINDOW_DAYS,
    DEFAULT_SEVERITY_POINTS,
    DEFAULT_WEEKLY_LIMIT,
    DEFAULT_WEIGHT_VARIANCE_THRESHOLD,
    MINIMUM_ADJUSTED_WEIGHT,
)


def _utcnow() -> datetime:
    return datetime.now(tz=pytz.UTC)


class GiverRole(str, Enum):
    """Role of the person giving a recognition."""

    MEMBER = "member"
    MANAGER = "manager"
    ADMIN = "admin"


class FlagType(str, Enum):
    """Kind of abuse signal."""

    RECIPROCITY = "reciprocity"
    FREQUENCY = "frequency"
    CONTENT = "content"
    WEIGHT_MANIPULATION = "weight_manipulation"

    @property
    def reason_code(self) -> str:
        return REASON_CODES[self]

    @property
    def reason_text(self) -> str:
        return REASON_TEXTS[self]


REASON_CODES: dict[FlagType, str] = {
    FlagType.RECIPROCITY: "RECIPROCITY_DETECTED",
    FlagType.FREQUENCY: "FREQUENCY_ABUSE",
    FlagType.CONTENT: "DUPLICATE_CONTENT",
    FlagType.WEIGHT_MANIPULATION: "WEIGHT_MANIPULATION",
}

REASON_TEXTS: dict[FlagType, str] = {
    FlagType.RECIPROCITY: "Excessive reciprocity pattern detected",
    FlagType.FREQUENCY: "Recognition frequency exceeds normal patterns",
    FlagType.CONTENT: "Similar or duplicate recognition content",
    FlagType.WEIGHT_MANIPULATION: "Unusual weight patterns detected",
}


class FlagSeverity(str, Enum):
    """Severity of a single flag or of an aggregate assessment."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordinal position, LOW=0 .. CRITICAL=3."""
        return list(FlagSeverity).index(self)


class DetectionMethod(str, Enum):
    """How a flag came to exist."""

    AUTOMATIC = "automatic"
    REPORTED = "reported"
    MANUAL_REVIEW = "manual_review"


class FlagStatus(str, Enum):
    """Review status. Only the external review workflow moves it past PENDING."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"


class HistoryDirection(str, Enum):
    """Which side of a recognition the queried user is on."""

    GIVEN = "given"
    RECEIVED = "received"


class RecognitionEvent(BaseModel):
    """One peer-recognition instance, as submitted for evaluation."""

    model_config = ConfigDict(frozen=True)

    recognition_id: str
    giver_id: str
    recipient_id: str
    reason: str = ""
    weight: float = Field(default=1.0, ge=0.0)
    evidence_count: int = Field(default=0, ge=0)
    giver_role: GiverRole = GiverRole.MEMBER
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=pytz.UTC)
        return value


# Typed flag metadata. Identities never appear here, only counts,
# thresholds and enums.


class ReciprocityMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["reciprocity"] = "reciprocity"
    frequency: int
    threshold: int
    window_days: int


class MutualExchangeMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["mutual_exchange"] = "mutual_exchange"
    direct_count: int
    mutual_count: int
    total_exchanges: int
    threshold: int


class FrequencyMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["frequency"] = "frequency"
    count: int
    limit: int
    period: Literal["daily", "weekly"]


class ShortReasonMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["short_reason"] = "short_reason"
    reason_length: int
    min_length: int


class DuplicateContentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["duplicate_content"] = "duplicate_content"
    similar_count: int
    threshold: int
    similarity_threshold: float
    window_days: int


class EvidencelessWeightMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["evidenceless_weight"] = "evidenceless_weight"
    weight: float
    evidence_count: int
    giver_role: GiverRole
    threshold: float


class WeightVarianceMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["weight_variance"] = "weight_variance"
    actual_weight: float
    expected_weight: float
    variance: float
    giver_role: GiverRole


FlagMetadata = Annotated[
    ReciprocityMetadata
    | MutualExchangeMetadata
    | FrequencyMetadata
    | ShortReasonMetadata
    | DuplicateContentMetadata
    | EvidencelessWeightMetadata
    | WeightVarianceMetadata,
    Field(discriminator="kind"),
]


class AbuseFlag(BaseModel):
    """A single detected abuse signal."""

    model_config = ConfigDict(frozen=True)

    flag_type: FlagType
    severity: FlagSeverity
    description: str
    detection_method: DetectionMethod = DetectionMethod.AUTOMATIC
    metadata: FlagMetadata
    status: FlagStatus = FlagStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)

    def metadata_dict(self) -> dict[str, Any]:
        """Metadata as a generic key/value mapping for storage."""
        return self.metadata.model_dump(mode="json")

    def to_record(self, recognition_id: str) -> dict[str, Any]:
        """Serialize for the persistence boundary.

        Args:
            recognition_id: Recognition the flag belongs to

        Returns:
            Flat dictionary with enum values and JSON-safe metadata
        """
        return {
            "recognition_id": recognition_id,
            "flag_type": self.flag_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "detection_method": self.detection_method.value,
            "flagged_by": "SYSTEM",
            "status": self.status.value,
            "metadata": self.metadata_dict(),
            "created_at": self.created_at.isoformat(),
        }


class StoredFlag(BaseModel):
    """Flag as persisted by a store, keyed to its recognition."""

    flag_id: str = Field(default_factory=lambda: str(uuid4()))
    recognition_id: str
    flag: AbuseFlag


class AuditEntry(BaseModel):
    """Structured audit trail record. Actor and target are hashed."""

    event_code: str
    actor_id: str
    target_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)


class PairStatistics(BaseModel):
    """Weight/time aggregate over a giver↔recipient pair in both directions."""

    model_config = ConfigDict(frozen=True)

    average_weight: float = 1.0
    last_recognition_at: datetime | None = None


class RecognitionPattern(BaseModel):
    """Relationship between giver and recipient in the trailing window.

    Request-scoped; rebuilt for every evaluation and never persisted.
    """

    model_config = ConfigDict(frozen=True)

    direct_count: int = 0
    mutual_count: int = 0
    average_weight: float = 1.0
    last_recognition_at: datetime | None = None
    reasons: tuple[str, ...] = ()


class HistoryWindow(BaseModel):
    """Everything the detectors need from history, pre-fetched."""

    model_config = ConfigDict(frozen=True)

    pattern: RecognitionPattern = Field(default_factory=RecognitionPattern)
    daily_count: int = 0
    weekly_count: int = 0


class DetectionContext(BaseModel):
    """Input handed to every detector."""

    model_config = ConfigDict(frozen=True)

    event: RecognitionEvent
    history: HistoryWindow = Field(default_factory=HistoryWindow)


class SeverityAssessment(BaseModel):
    """Aggregate severity for a list of flags."""

    model_config = ConfigDict(frozen=True)

    severity: FlagSeverity = FlagSeverity.LOW
    score: int = 0


class DetectionResult(BaseModel):
    """Outcome of evaluating one recognition."""

    model_config = ConfigDict(frozen=True)

    is_abusive: bool
    flags: list[AbuseFlag] = Field(default_factory=list)
    severity: FlagSeverity = FlagSeverity.LOW
    score: int = 0
    original_weight: float
    adjusted_weight: float | None = None
    reason_codes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_abusive_matches_flags(self) -> "DetectionResult":
        if self.is_abusive != bool(self.flags):
            raise ValueError("is_abusive must be True exactly when flags exist")
        if not self.is_abusive and self.adjusted_weight is not None:
            raise ValueError("adjusted_weight is only set for abusive results")
        return self

    @property
    def effective_weight(self) -> float:
        """Weight the caller should store."""
        if self.adjusted_weight is None:
            return self.original_weight
        return self.adjusted_weight

    @classmethod
    def clean(cls, original_weight: float) -> "DetectionResult":
        """Non-abusive result, also used when failing open."""
        return cls(is_abusive=False, original_weight=original_weight)


class DetectionThresholds(BaseModel):
    """Immutable tuning for one detection engine instance.

    Defaults mirror detection_constants; Settings overrides them from YAML.
    """

    model_config = ConfigDict(frozen=True)

    reciprocity_window_days: int = Field(default=DEFAULT_RECIPROCITY_WINDOW_DAYS, gt=0)
    reciprocity_threshold: int = Field(default=DEFAULT_RECIPROCITY_THRESHOLD, gt=0)
    mutual_exchange_threshold: int = Field(
        default=DEFAULT_MUTUAL_EXCHANGE_THRESHOLD, gt=0
    )
    daily_limit: int = Field(default=DEFAULT_DAILY_LIMIT, gt=0)
    weekly_limit: int = Field(default=DEFAULT_WEEKLY_LIMIT, gt=0)
    content_window_days: int = Field(default=DEFAULT_CONTENT_WINDOW_DAYS, gt=0)
    min_reason_length: int = Field(default=DEFAULT_MIN_REASON_LENGTH, ge=0)
    duplicate_similarity: float = Field(
        default=DEFAULT_DUPLICATE_SIMILARITY, gt=0.0, le=1.0
    )
    max_duplicate_reasons: int = Field(default=DEFAULT_MAX_DUPLICATE_REASONS, gt=0)
    evidenceless_high_weight_threshold: float = Field(
        default=DEFAULT_EVIDENCELESS_HIGH_WEIGHT_THRESHOLD, gt=0.0
    )
    evidenceless_high_severity_weight: float = Field(
        default=DEFAULT_EVIDENCELESS_HIGH_SEVERITY_WEIGHT, gt=0.0
    )
    weight_variance_threshold: float = Field(
        default=DEFAULT_WEIGHT_VARIANCE_THRESHOLD, ge=0.0
    )
    expected_weight_by_role: dict[GiverRole, float] = Field(
        default_factory=lambda: {
            GiverRole(role): weight
            for role, weight in DEFAULT_EXPECTED_WEIGHT_BY_ROLE.items()
        }
    )
    penalty_factors: dict[FlagType, float] = Field(
        default_factory=lambda: {
            FlagType(flag_type): factor
            for flag_type, factor in DEFAULT_PENALTY_FACTORS.items()
        }
    )
    severity_points: dict[FlagSeverity, int] = Field(
        default_factory=lambda: {
            FlagSeverity(severity): points
            for severity, points in DEFAULT_SEVERITY_POINTS.items()
        }
    )
    minimum_weight: float = Field(default=MINIMUM_ADJUSTED_WEIGHT, gt=0.0)
    history_timeout_seconds: float = Field(
        default=DEFAULT_HISTORY_TIMEOUT_SECONDS, gt=0.0
    )

    @field_validator("expected_weight_by_role")
    @classmethod
    def validate_roles_covered(
        cls, value: dict[GiverRole, float]
    ) -> dict[GiverRole, float]:
        missing = set(GiverRole) - set(value)
        if missing:
            names = sorted(role.value for role in missing)
            raise ValueError(f"expected_weight_by_role missing roles: {names}")
        return value

    @field_validator("penalty_factors")
    @classmethod
    def validate_penalties(cls, value: dict[FlagType, float]) -> dict[FlagType, float]:
        missing = set(FlagType) - set(value)
        if missing:
            names = sorted(flag_type.value for flag_type in missing)
            raise ValueError(f"penalty_factors missing flag types: {names}")
        for flag_type, factor in value.items():
            if not 0.0 < factor <= 1.0:
                raise ValueError(
                    f"penalty factor for {flag_type.value} must be in (0, 1], got {factor}"
                )
        return value

    @field_validator("severity_points")
    @classmethod
    def validate_points(
        cls, value: dict[FlagSeverity, int]
    ) -> dict[FlagSeverity, int]:
        missing = set(FlagSeverity) - set(value)
        if missing:
            names = sorted(severity.value for severity in missing)
            raise ValueError(f"severity_points missing severities: {names}")
        return value


class AbuseStatistics(BaseModel):
    """Summary of stored flags for the review dashboard."""

    total_flags: int = 0
    pending_review: int = 0
    critical_flags: int = 0
    recognitions_affected: int = 0
    flags_by_type: dict[str, int] = Field(default_factory=dict)
    flags_by_severity: dict[str, int] = Field(default_factory=dict)
