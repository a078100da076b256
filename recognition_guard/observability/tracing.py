"""Correlation context for one recognition evaluation."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

from recognition_guard.config.logging_config import bind_context, unbind_context

CORRELATION_ID_KEY = "correlation_id"
RECOGNITION_ID_KEY = "recognition_id"


@contextmanager
def correlation_scope(
    existing_id: str | None = None, recognition_id: str | None = None
) -> Iterator[str]:
    """Bind a correlation id (and the recognition being evaluated) to every log line.

    Args:
        existing_id: Caller's correlation id; a fresh uuid4 when omitted
        recognition_id: Recognition under evaluation, if known

    Yields:
        The bound correlation id
    """
    correlation_id = existing_id or str(uuid4())
    context = {CORRELATION_ID_KEY: correlation_id}
    if recognition_id is not None:
        context[RECOGNITION_ID_KEY] = recognition_id
    bind_context(**context)
    try:
        yield correlation_id
    finally:
        unbind_context(*context)


__all__ = ["CORRELATION_ID_KEY", "RECOGNITION_ID_KEY", "correlation_scope"]
