"""Tests for correlation context binding."""

import structlog

from recognition_guard.observability.tracing import correlation_scope


def test_scope_binds_and_unbinds() -> None:
    with correlation_scope("corr-1", recognition_id="rec-1") as correlation_id:
        bound = structlog.contextvars.get_contextvars()
        assert correlation_id == "corr-1"
        assert bound["correlation_id"] == "corr-1"
        assert bound["recognition_id"] == "rec-1"

    bound = structlog.contextvars.get_contextvars()
    assert "correlation_id" not in bound
    assert "recognition_id" not in bound


def test_scope_generates_id_when_missing() -> None:
    with correlation_scope() as correlation_id:
        assert correlation_id
        assert "recognition_id" not in structlog.contextvars.get_contextvars()
