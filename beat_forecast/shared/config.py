"""
Beat Forecast - Configuration Loader

Settings are read from configs/environments/base.yaml, overlaid with the
selected environment file (dev or prod), then validated by pydantic. BF_
prefixed environment variables fill in anything the YAML leaves unset.

Time zone, time-of-day buckets, category table, rolling windows, split
fraction and the CV plan all live here and are passed explicitly into each
stage.

Usage:
    from beat_forecast.shared.config import get_config

    config = get_config()  # Uses BF_ENVIRONMENT env var
    config = get_config("dev")  # Explicit environment

    windows = config.history.crime_windows
    folds = config.modeling.cv_folds
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from beat_forecast.shared.errors import ConfigurationError

# =============================================================================
# Configuration Models
# =============================================================================


class ProjectConfig(BaseModel):
    """Name and version stamped on run outputs."""

    name: str = "beat-forecast"
    version: str = "0.1.0"
    description: str = "Daily crime count forecasting per patrol beat"


class DataConfig(BaseModel):
    """Input/output locations for the driver script."""

    input_path: str = "data/raw/crimes.csv"
    output_dir: str = "data/processed"
    formats: dict[str, str] = Field(
        default_factory=lambda: {"panel": "parquet", "summary": "parquet", "ranking": "csv"}
    )


class TimeBucketConfig(BaseModel):
    """A half-open [start_hour, end_hour) slice of the 24-hour clock."""

    label: str
    start_hour: int = Field(ge=0, le=24)
    end_hour: int = Field(ge=0, le=24)

    @model_validator(mode="after")
    def check_order(self) -> TimeBucketConfig:
        if self.end_hour <= self.start_hour:
            raise ValueError(f"Bucket {self.label!r} must end after it starts")
        return self


def _default_buckets() -> list[TimeBucketConfig]:
    return [
        TimeBucketConfig(label="00-06", start_hour=0, end_hour=6),
        TimeBucketConfig(label="06-12", start_hour=6, end_hour=12),
        TimeBucketConfig(label="12-18", start_hour=12, end_hour=18),
        TimeBucketConfig(label="18-24", start_hour=18, end_hour=24),
    ]


class TemporalConfig(BaseModel):
    """Civil time zone and time-of-day buckets."""

    timezone: str = "America/Chicago"
    time_buckets: list[TimeBucketConfig] = Field(default_factory=_default_buckets)

    @field_validator("time_buckets")
    @classmethod
    def validate_partition(cls, v: list[TimeBucketConfig]) -> list[TimeBucketConfig]:
        """Buckets must tile [0, 24) with no gaps and no overlaps."""
        ordered = sorted(v, key=lambda b: b.start_hour)
        cursor = 0
        for bucket in ordered:
            if bucket.start_hour != cursor:
                raise ValueError(
                    f"Time buckets must partition the day; gap or overlap at hour {cursor}"
                )
            cursor = bucket.end_hour
        if cursor != 24:
            raise ValueError("Time buckets must end at hour 24")
        return ordered


class CategoriesConfig(BaseModel):
    """Offense category mapping table location."""

    mapping_file: str = "categories.yaml"


class HistoryConfig(BaseModel):
    """Rolling crime-history feature configuration."""

    entity_col: str = "beat"
    crime_windows: list[int] = Field(default_factory=lambda: [1, 7, 30])
    arrest_window: int = 30
    # crime_trend = past_crime_{trend_window} / past_crime_{arrest_window}
    trend_window: int = 7
    require_full_window: bool = False
    n_jobs: int = 1

    @field_validator("crime_windows")
    @classmethod
    def validate_windows(cls, v: list[int]) -> list[int]:
        if not v or any(w < 1 for w in v):
            raise ValueError("crime_windows must be positive day counts")
        return sorted(set(v))

    @model_validator(mode="after")
    def check_ratio_windows(self) -> HistoryConfig:
        for window in (self.arrest_window, self.trend_window):
            if window not in self.crime_windows:
                raise ValueError(f"Ratio window {window} must be one of crime_windows")
        return self


class SplitConfig(BaseModel):
    """Chronological train/validation split."""

    train_fraction: float = Field(default=0.9, gt=0.0, lt=1.0)


class ModelingConfig(BaseModel):
    """Model comparison harness configuration."""

    candidates: list[str] = Field(
        default_factory=lambda: [
            "elastic_net",
            "negative_binomial",
            "hinge_spline",
            "gam",
            "decision_tree",
        ]
    )
    cv_folds: int = Field(default=10, ge=2)
    cv_repeats: int = Field(default=1, ge=1)
    tune_length: int = Field(default=3, ge=1)
    max_iter: int = 200
    random_state: int = 42
    n_jobs: int = 1


class QualityConfig(BaseModel):
    """Thresholds for panel and snapshot quality checks."""

    min_row_count: int = 1
    max_duplicate_ratio: float = 0.01


class ValidationConfig(BaseModel):
    """Panel validation settings."""

    quality: QualityConfig = Field(default_factory=QualityConfig)


class LoggingConfig(BaseModel):
    """Root log level and line format for driver scripts."""

    level: str = "INFO"
    format: Literal["json", "text"] = "text"


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """Validated settings for one environment; build with get_config()."""

    model_config = SettingsConfigDict(
        env_prefix="BF_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "prod"] = "dev"

    # Configuration sections
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    temporal: TemporalConfig = Field(default_factory=TemporalConfig)
    categories: CategoriesConfig = Field(default_factory=CategoriesConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    split: SplitConfig = Field(default_factory=SplitConfig)
    modeling: ModelingConfig = Field(default_factory=ModelingConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("environment", mode="before")
    @classmethod
    def known_environment(cls, v: str) -> str:
        if v not in ("dev", "prod"):
            raise ValueError(f"Unknown environment {v!r}; expected dev or prod")
        return v


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _config_root() -> Path:
    """The ``configs`` directory of the checkout, falling back to the working directory."""
    for candidate in (Path(__file__).resolve().parents[2] / "configs", Path.cwd() / "configs"):
        if candidate.is_dir():
            return candidate
    raise FileNotFoundError("No configs/ directory found next to the package or in the working directory")


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay one mapping on another; overlay wins on conflicts."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _environment_values(environment: str) -> dict[str, Any]:
    """base.yaml with the environment's file layered on top."""
    env_dir = _config_root() / "environments"
    overlay = _read_yaml(env_dir / f"{environment}.yaml")
    overlay.pop("_inherit", None)
    values = _merge(_read_yaml(env_dir / "base.yaml"), overlay)
    values["environment"] = environment
    return values


@lru_cache(maxsize=4)
def get_config(environment: str | None = None) -> Settings:
    """
    Load and validate settings for an environment.

    Args:
        environment: "dev" or "prod"; defaults to BF_ENVIRONMENT, then "dev"

    Returns:
        Cached Settings instance
    """
    environment = environment or os.getenv("BF_ENVIRONMENT", "dev")
    return Settings(**_environment_values(environment))


def reload_config(environment: str | None = None) -> Settings:
    """Drop cached settings and mapping tables, then load again."""
    get_config.cache_clear()
    get_category_mapping.cache_clear()
    return get_config(environment)


@lru_cache(maxsize=4)
def get_category_mapping(mapping_file: str = "categories.yaml") -> dict[str, Any]:
    """
    Load the raw offense category mapping table.

    Relative paths resolve against the configs directory. Structural
    validation happens in ``beat_forecast.datasets.crime.categories``.

    Raises:
        ConfigurationError: If the table is missing or empty.
    """
    path = Path(mapping_file)
    if not path.is_absolute():
        path = _config_root() / path

    table = _read_yaml(path)
    if not table.get("categories"):
        raise ConfigurationError(f"Category mapping table at {path} is missing or empty")
    return table
