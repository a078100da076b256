"""Tests for YAML + environment configuration loading."""

import json
from pathlib import Path

import pytest

from recognition_guard.config.settings import Settings, deep_merge, load_all_configs
from recognition_guard.domain.exceptions import ConfigurationError
from recognition_guard.domain.models import FlagType, GiverRole

REPO_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


def _write(directory: Path, name: str, content: str) -> None:
    (directory / name).write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep developer .env files and GUARD_* variables out of these tests."""
    monkeypatch.chdir(tmp_path)
    for name in ("GUARD_DAILY_LIMIT", "GUARD_DB_PATH", "GUARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_config_dir(tmp_path: Path) -> None:
    settings = Settings(config_dir=str(tmp_path / "missing"))

    thresholds = settings.detection_thresholds()
    assert thresholds.daily_limit == 10
    assert thresholds.weekly_limit == 50
    assert thresholds.penalty_factors[FlagType.WEIGHT_MANIPULATION] == 0.5
    assert settings.db_path == "data/recognitions.sqlite"


def test_repository_config_is_valid() -> None:
    settings = Settings(config_dir=str(REPO_CONFIG_DIR))

    thresholds = settings.detection_thresholds()
    assert thresholds.reciprocity_threshold == 5
    assert thresholds.expected_weight_by_role[GiverRole.ADMIN] == 2.0


def test_yaml_overrides_defaults(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "main.yaml",
        """
detection:
  daily_limit: 12
  min_reason_length: 10
storage:
  db_path: /tmp/guard.sqlite
logging:
  level: DEBUG
""",
    )

    settings = Settings(config_dir=str(tmp_path))

    assert settings.daily_limit == 12
    assert settings.detection_thresholds().min_reason_length == 10
    assert settings.db_path == "/tmp/guard.sqlite"
    assert settings.log_level == "DEBUG"


def test_yaml_values_are_coerced_to_field_types(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "main.yaml",
        'detection:\n  daily_limit: "12"\n  duplicate_similarity: "0.75"\n',
    )

    settings = Settings(config_dir=str(tmp_path))

    assert settings.daily_limit == 12
    assert isinstance(settings.daily_limit, int)
    assert settings.duplicate_similarity == 0.75


def test_uncoercible_yaml_value_rejected(tmp_path: Path) -> None:
    _write(tmp_path, "main.yaml", "detection:\n  daily_limit: many\n")

    with pytest.raises(ConfigurationError):
        Settings(config_dir=str(tmp_path))


def test_later_files_override_main(tmp_path: Path) -> None:
    _write(tmp_path, "main.yaml", "detection:\n  daily_limit: 12\n")
    _write(tmp_path, "overrides.yaml", "detection:\n  daily_limit: 20\n")

    assert Settings(config_dir=str(tmp_path)).daily_limit == 20


def test_env_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(tmp_path, "main.yaml", "detection:\n  daily_limit: 12\n")
    monkeypatch.setenv("GUARD_DAILY_LIMIT", "25")

    assert Settings(config_dir=str(tmp_path)).daily_limit == 25


def test_partial_penalty_table_keeps_other_defaults(tmp_path: Path) -> None:
    _write(tmp_path, "main.yaml", "detection:\n  penalty_factors:\n    reciprocity: 0.6\n")

    thresholds = Settings(config_dir=str(tmp_path)).detection_thresholds()

    assert thresholds.penalty_factors[FlagType.RECIPROCITY] == 0.6
    assert thresholds.penalty_factors[FlagType.FREQUENCY] == 0.8


def test_out_of_range_penalty_rejected(tmp_path: Path) -> None:
    _write(tmp_path, "main.yaml", "detection:\n  penalty_factors:\n    content: 1.5\n")

    with pytest.raises(ConfigurationError):
        Settings(config_dir=str(tmp_path))


def test_non_positive_threshold_rejected(tmp_path: Path) -> None:
    _write(tmp_path, "main.yaml", "detection:\n  reciprocity_threshold: 0\n")

    with pytest.raises(ConfigurationError):
        Settings(config_dir=str(tmp_path))


def test_schema_violation_rejected(tmp_path: Path) -> None:
    schemas = tmp_path / "schemas"
    schemas.mkdir()
    schema = json.loads(
        (REPO_CONFIG_DIR / "schemas" / "main.schema.json").read_text(encoding="utf-8")
    )
    (schemas / "main.schema.json").write_text(json.dumps(schema), encoding="utf-8")
    _write(tmp_path, "main.yaml", "detection:\n  dialy_limit: 12\n")

    with pytest.raises(ConfigurationError):
        load_all_configs(str(tmp_path))


def test_deep_merge_nested() -> None:
    base = {"detection": {"daily_limit": 10, "weekly_limit": 50}}
    override = {"detection": {"daily_limit": 12}}

    assert deep_merge(base, override) == {
        "detection": {"daily_limit": 12, "weekly_limit": 50}
    }
