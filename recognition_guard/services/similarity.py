"""Edit-distance similarity for duplicate reason detection."""

from rapidfuzz.distance import Levenshtein


def reason_similarity(first: str, second: str) -> float:
    """Levenshtein similarity normalized by the longer string.

    Comparison is case-sensitive; callers lower-case both sides first.

    Args:
        first: First text
        second: Second text

    Returns:
        1.0 for identical strings (including two empty ones),
        0.0 when every character must change

    Example:
        >>> reason_similarity("great work", "great work!")
        0.9090909090909091
    """
    if not first and not second:
        return 1.0
    return float(Levenshtein.normalized_similarity(first, second))


def count_similar(
    reason: str, prior_reasons: list[str] | tuple[str, ...], threshold: float
) -> int:
    """Count prior reasons whose similarity to reason is strictly above threshold.

    Both sides are lower-cased before comparison.
    """
    normalized = reason.lower()
    return sum(
        1
        for prior in prior_reasons
        if reason_similarity(normalized, prior.lower()) > threshold
    )
