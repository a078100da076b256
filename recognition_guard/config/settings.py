"""Application settings with Pydantic Settings validation.

Environment variables (prefix GUARD_) and .env take precedence.
Detection tuning is loaded from config/main.yaml and config/*.yaml files.
All configs are merged and validated against JSON schemas when present.
"""

import json
from pathlib import Path
from typing import Any, Final, cast

import yaml
from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate
from pydantic import Field, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from recognition_guard.config.logging_config import get_logger
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
from recognition_guard.domain.exceptions import ConfigurationError
from recognition_guard.domain.models import DetectionThresholds

DEFAULT_CONFIG_DIR: Final[str] = "config"

# YAML detection keys that map 1:1 onto Settings fields
_DETECTION_KEYS: Final[tuple[str, ...]] = (
    "reciprocity_window_days",
    "reciprocity_threshold",
    "mutual_exchange_threshold",
    "daily_limit",
    "weekly_limit",
    "content_window_days",
    "min_reason_length",
    "duplicate_similarity",
    "max_duplicate_reasons",
    "evidenceless_high_weight_threshold",
    "evidenceless_high_severity_weight",
    "weight_variance_threshold",
    "expected_weight_by_role",
    "penalty_factors",
    "severity_points",
    "minimum_weight",
    "history_timeout_seconds",
)

logger = cast(Any, get_logger(__name__))


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge into base (takes precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_schema(schema_name: str, config_dir: str = DEFAULT_CONFIG_DIR) -> dict[str, Any]:
    """Load JSON Schema from <config_dir>/schemas/.

    Args:
        schema_name: Schema name without extension (e.g., "main")
        config_dir: Configuration directory

    Returns:
        JSON Schema dictionary or empty dict if not found
    """
    schema_path = Path(config_dir) / "schemas" / f"{schema_name}.schema.json"
    if not schema_path.exists():
        return {}

    try:
        with open(schema_path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(
            "config_schema_load_failed",
            schema=schema_name,
            error=str(e),
        )
        return {}


def validate_config_section(
    config: dict[str, Any],
    schema_name: str,
    file_path: str = "",
    config_dir: str = DEFAULT_CONFIG_DIR,
) -> None:
    """Validate config section against JSON Schema.

    Raises:
        ConfigurationError: If validation fails
    """
    schema = load_schema(schema_name, config_dir)
    if not schema:
        return

    try:
        validate(instance=config, schema=schema)
        logger.debug("config_validation_succeeded", schema=schema_name)
    except JSONSchemaValidationError as e:
        error_msg = f"Config validation failed for {schema_name}"
        if file_path:
            error_msg += f" (file: {file_path})"
        error_msg += f": {e.message}"
        raise ConfigurationError(error_msg) from e


def load_all_configs(config_dir: str = DEFAULT_CONFIG_DIR) -> dict[str, Any]:
    """Load and merge all YAML configs from the config directory.

    Loading order (later overrides earlier):
    1. main.yaml
    2. All other *.yaml files (sorted alphabetically)

    Each file is validated against its JSON Schema if available.

    Returns:
        Merged configuration dictionary
    """
    merged_config: dict[str, Any] = {}
    directory = Path(config_dir)
    if not directory.is_dir():
        return merged_config

    main_path = directory / "main.yaml"
    yaml_files = sorted(f for f in directory.glob("*.yaml") if f.name != "main.yaml")
    if main_path.exists():
        yaml_files.insert(0, main_path)

    for yaml_file in yaml_files:
        schema_name = yaml_file.stem
        try:
            with open(yaml_file, encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning(
                "config_file_load_failed",
                path=str(yaml_file),
                error=str(e),
            )
            continue

        try:
            validate_config_section(file_config, schema_name, str(yaml_file), config_dir)
        except ConfigurationError as e:
            logger.error(
                "config_validation_failed",
                path=str(yaml_file),
                schema=schema_name,
                error=str(e),
            )
            raise

        merged_config = deep_merge(merged_config, file_config)
        logger.debug("config_file_loaded", path=str(yaml_file), schema=schema_name)

    logger.info("config_load_complete", file_count=len(yaml_files))
    return merged_config


class Settings(BaseSettings):
    """Application settings.

    Environment variables override YAML; YAML overrides field defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="GUARD_",
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    config_dir: str = Field(
        default=DEFAULT_CONFIG_DIR, description="Directory holding *.yaml configs"
    )

    # Storage
    db_path: str = Field(
        default="data/recognitions.sqlite", description="SQLite database path"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Emit JSON logs")

    # Detection
    reciprocity_window_days: int = Field(default=DEFAULT_RECIPROCITY_WINDOW_DAYS)
    reciprocity_threshold: int = Field(default=DEFAULT_RECIPROCITY_THRESHOLD)
    mutual_exchange_threshold: int = Field(default=DEFAULT_MUTUAL_EXCHANGE_THRESHOLD)
    daily_limit: int = Field(default=DEFAULT_DAILY_LIMIT)
    weekly_limit: int = Field(default=DEFAULT_WEEKLY_LIMIT)
    content_window_days: int = Field(default=DEFAULT_CONTENT_WINDOW_DAYS)
    min_reason_length: int = Field(default=DEFAULT_MIN_REASON_LENGTH)
    duplicate_similarity: float = Field(default=DEFAULT_DUPLICATE_SIMILARITY)
    max_duplicate_reasons: int = Field(default=DEFAULT_MAX_DUPLICATE_REASONS)
    evidenceless_high_weight_threshold: float = Field(
        default=DEFAULT_EVIDENCELESS_HIGH_WEIGHT_THRESHOLD
    )
    evidenceless_high_severity_weight: float = Field(
        default=DEFAULT_EVIDENCELESS_HIGH_SEVERITY_WEIGHT
    )
    weight_variance_threshold: float = Field(default=DEFAULT_WEIGHT_VARIANCE_THRESHOLD)
    expected_weight_by_role: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_EXPECTED_WEIGHT_BY_ROLE),
        description="Expected recognition weight per giver role",
    )
    penalty_factors: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_PENALTY_FACTORS),
        description="Weight multiplier per flag type",
    )
    severity_points: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_POINTS),
        description="Aggregate score points per flag severity",
    )
    minimum_weight: float = Field(default=MINIMUM_ADJUSTED_WEIGHT)
    history_timeout_seconds: float = Field(default=DEFAULT_HISTORY_TIMEOUT_SECONDS)

    def __init__(self, **data: Any):
        """Initialize settings, then layer YAML config under env-provided values."""
        super().__init__(**data)
        config = load_all_configs(self.config_dir)
        self._apply_yaml_defaults(config)
        # Fail fast on thresholds the engine would reject
        self.detection_thresholds()

    def _apply_yaml_defaults(self, config: dict[str, Any]) -> None:
        """Apply YAML-sourced defaults without overriding env-provided values."""

        fields_from_env = set(self.model_fields_set)

        def _assign(field_name: str, value: Any) -> None:
            if value is None:
                return
            if field_name in fields_from_env:
                return

            annotation = type(self).model_fields[field_name].annotation
            try:
                coerced = TypeAdapter(annotation).validate_python(value)
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid value for {field_name} in YAML config: {exc}"
                ) from exc
            object.__setattr__(self, field_name, coerced)
            self.model_fields_set.add(field_name)

        detection_config = config.get("detection") or {}
        for key in _DETECTION_KEYS:
            value = detection_config.get(key)
            current = getattr(self, key)
            # Partial tables override individual entries, not the whole table
            if isinstance(value, dict) and isinstance(current, dict):
                value = {**current, **value}
            _assign(key, value)

        storage_config = config.get("storage") or {}
        _assign("db_path", storage_config.get("db_path"))

        logging_config = config.get("logging") or {}
        _assign("log_level", logging_config.get("level"))
        _assign("log_json", logging_config.get("json"))

    def detection_thresholds(self) -> DetectionThresholds:
        """Build the immutable tuning struct handed to the evaluator.

        Raises:
            ConfigurationError: If any threshold is out of range or incomplete
        """
        try:
            return DetectionThresholds(
                **{key: getattr(self, key) for key in _DETECTION_KEYS}
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid detection thresholds: {exc}") from exc


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
