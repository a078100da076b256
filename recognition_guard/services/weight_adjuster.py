"""Trust weight penalties for flagged recognitions.

One multiplicative factor is applied per distinct flag type present, in
the order types first appear. Repeated flags of one type do not compound.
The result is rounded to two decimals and floored at the minimum weight,
and never exceeds the original weight.
"""

from collections.abc import Sequence

from recognition_guard.domain.detection_constants import ADJUSTED_WEIGHT_PRECISION
from recognition_guard.domain.models import (
    AbuseFlag,
    DetectionThresholds,
    FlagType,
)

_DEFAULT_THRESHOLDS = DetectionThresholds()


def distinct_flag_types(flags: Sequence[AbuseFlag]) -> list[FlagType]:
    """Flag types in order of first appearance."""
    seen: list[FlagType] = []
    for flag in flags:
        if flag.flag_type not in seen:
            seen.append(flag.flag_type)
    return seen


def adjust_weight(
    original_weight: float,
    flags: Sequence[AbuseFlag],
    thresholds: DetectionThresholds | None = None,
) -> float | None:
    """Compute the adjusted trust weight.

    Args:
        original_weight: Weight submitted with the recognition
        flags: Flags from all detectors
        thresholds: Tuning providing penalty factors and the floor

    Returns:
        Adjusted weight in [minimum_weight, original_weight], or None when
        there are no flags (the caller keeps the original weight)

    Example:
        >>> adjust_weight(2.0, [reciprocity_flag, reciprocity_flag])
        1.4
    """
    if not flags:
        return None

    config = thresholds or _DEFAULT_THRESHOLDS
    adjusted = original_weight
    for flag_type in distinct_flag_types(flags):
        adjusted *= config.penalty_factors[flag_type]

    adjusted = max(config.minimum_weight, round(adjusted, ADJUSTED_WEIGHT_PRECISION))
    # A weight already below the floor is left as submitted
    return min(adjusted, original_weight)
