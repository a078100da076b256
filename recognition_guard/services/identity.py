"""Identity hashing for logs, flag descriptions and audit records."""

import hashlib

from recognition_guard.domain.detection_constants import HASHED_IDENTITY_LENGTH


def hash_identity(identity: str) -> str:
    """Return a short, stable, non-reversible token for an identity.

    Args:
        identity: Raw user identifier (id, email, ...)

    Returns:
        First 16 hex characters of the SHA-256 digest

    Example:
        >>> len(hash_identity("alice@example.com"))
        16
    """
    digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()
    return digest[:HASHED_IDENTITY_LENGTH]
