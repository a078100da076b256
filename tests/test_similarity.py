"""Tests for reason similarity."""

import pytest

from recognition_guard.services.similarity import count_similar, reason_similarity


def test_identical_reasons_are_fully_similar() -> None:
    assert reason_similarity("great work", "great work") == 1.0


def test_two_empty_reasons_are_fully_similar() -> None:
    assert reason_similarity("", "") == 1.0


def test_empty_against_text_is_dissimilar() -> None:
    assert reason_similarity("abc", "") == 0.0


def test_similarity_normalized_by_longer_string() -> None:
    """kitten → sitting is 3 edits over 7 characters."""
    assert reason_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_similarity_is_case_sensitive() -> None:
    assert reason_similarity("Great", "great") < 1.0


def test_count_similar_ignores_case() -> None:
    prior = ["GREAT WORK ON THE LAUNCH", "great work on the launch!"]

    assert count_similar("Great work on the launch", prior, 0.8) == 2


def test_count_similar_threshold_is_strict() -> None:
    """A reason exactly at the threshold is not counted."""
    # one edit over ten characters → similarity exactly 0.9
    assert count_similar("abcdefghij", ["abcdefghiX"], 0.9) == 0
    assert count_similar("abcdefghij", ["abcdefghiX"], 0.89) == 1


def test_count_similar_with_no_history() -> None:
    assert count_similar("anything", [], 0.8) == 0
