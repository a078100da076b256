"""Business rules and default thresholds for recognition abuse detection.

These are the reference defaults. The values actually used at runtime live
in DetectionThresholds, which Settings builds from config/*.yaml so that
each deployment can tune them.
"""

from typing import Final

# Reciprocity
DEFAULT_RECIPROCITY_WINDOW_DAYS: Final[int] = 7
"""Trailing window for giver/recipient pair counts."""

DEFAULT_RECIPROCITY_THRESHOLD: Final[int] = 5
"""Direct recognitions giver→recipient within the window that trigger a flag.

Business rule: the flag is High once the count reaches twice this value.

Example:
    - 5 direct → Medium
    - 10 direct → High
"""

DEFAULT_MUTUAL_EXCHANGE_THRESHOLD: Final[int] = 3
"""Minimum count in BOTH directions for an exchange pattern.

Business rule: an exchange (A→B and B→A) is always High, because two people
trading recognitions is worse than one person over-recognizing another.
"""

# Frequency
DEFAULT_DAILY_LIMIT: Final[int] = 10
"""Recognitions a giver may send in a trailing day before being flagged.

High severity at 1.5× the limit, Medium otherwise.
"""

DEFAULT_WEEKLY_LIMIT: Final[int] = 50
"""Recognitions a giver may send in a trailing week.

A weekly breach is always Critical: it indicates sustained abuse rather than
a single burst.
"""

DAILY_HIGH_SEVERITY_MULTIPLIER: Final[float] = 1.5
RECIPROCITY_HIGH_SEVERITY_MULTIPLIER: Final[int] = 2

# Content
DEFAULT_CONTENT_WINDOW_DAYS: Final[int] = 30
DEFAULT_MIN_REASON_LENGTH: Final[int] = 20
DEFAULT_DUPLICATE_SIMILARITY: Final[float] = 0.8
"""Similarity strictly above which a prior reason counts as a duplicate."""

DEFAULT_MAX_DUPLICATE_REASONS: Final[int] = 3

# Weight manipulation
DEFAULT_EVIDENCELESS_HIGH_WEIGHT_THRESHOLD: Final[float] = 2.5
"""Weight above which a recognition without evidence is suspicious."""

DEFAULT_EVIDENCELESS_HIGH_SEVERITY_WEIGHT: Final[float] = 4.0
"""Evidenceless weight above which the flag becomes High."""

DEFAULT_WEIGHT_VARIANCE_THRESHOLD: Final[float] = 0.5
"""Allowed upward deviation from the role's expected weight."""

DEFAULT_EXPECTED_WEIGHT_BY_ROLE: Final[dict[str, float]] = {
    "member": 1.0,
    "manager": 1.5,
    "admin": 2.0,
}

# Weight adjustment
DEFAULT_PENALTY_FACTORS: Final[dict[str, float]] = {
    "reciprocity": 0.7,
    "frequency": 0.8,
    "content": 0.9,
    "weight_manipulation": 0.5,
}
"""Multiplicative penalty per distinct flag type."""

MINIMUM_ADJUSTED_WEIGHT: Final[float] = 0.1
ADJUSTED_WEIGHT_PRECISION: Final[int] = 2

# Severity scoring
DEFAULT_SEVERITY_POINTS: Final[dict[str, int]] = {
    "low": 1,
    "medium": 5,
    "high": 10,
    "critical": 20,
}

CRITICAL_SCORE_THRESHOLD: Final[int] = 20
HIGH_SCORE_THRESHOLD: Final[int] = 10
MEDIUM_SCORE_THRESHOLD: Final[int] = 5

# History fetch
DEFAULT_HISTORY_TIMEOUT_SECONDS: Final[float] = 0.3
"""Deadline for the combined history fetch; exceeded → fail open."""

# Audit
AUDIT_ACTOR_SYSTEM: Final[str] = "system"
AUDIT_EVENT_ABUSE_FLAGGED: Final[str] = "ABUSE_FLAGGED"
AUDIT_EVENT_DETECTION_ERROR: Final[str] = "ABUSE_DETECTION_ERROR"

HASHED_IDENTITY_LENGTH: Final[int] = 16

# Frequency windows
DAILY_WINDOW_DAYS: Final[int] = 1
WEEKLY_WINDOW_DAYS: Final[int] = 7
