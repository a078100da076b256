"""Custom exception hierarchy for the recognition guard.

Following error taxonomy: retryable, non-retryable, configuration.
"""


class RecognitionGuardError(Exception):
    """Base exception for all application errors."""

    pass


class RetryableError(RecognitionGuardError):
    """Errors that can be retried (storage hiccups, slow queries)."""

    pass


class NonRetryableError(RecognitionGuardError):
    """Errors that should not be retried (configuration, logic errors)."""

    pass


class ConfigurationError(NonRetryableError):
    """Detection configuration is invalid."""

    pass


class HistoryProviderError(RetryableError):
    """Recognition history could not be queried."""

    pass


class HistoryTimeoutError(HistoryProviderError):
    """Combined history fetch exceeded its deadline."""

    def __init__(self, timeout_seconds: float) -> None:
        """Initialize with the deadline that was exceeded."""
        self.timeout_seconds = timeout_seconds
        super().__init__(f"History fetch exceeded {timeout_seconds}s deadline")


class FlagPersistenceError(RetryableError):
    """Abuse flag could not be stored."""

    pass
