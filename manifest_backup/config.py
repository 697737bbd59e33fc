"""Configuration management for the manifest-backup system."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_DESTINATION_SENTINEL = "-na"
DEFAULT_DESTINATION_NAME = "BACKUP"


class DestinationMissing(ValueError):
    """Backup destination directory does not exist."""


class ManifestInvalid(ValueError):
    """Manifest file is missing or empty."""


class ScheduleTimes(BaseModel):
    """Fixed times used by the daily, weekly and monthly cadences."""

    model_config = ConfigDict(frozen=True)

    hour: int = Field(default=2, ge=0, le=23, description="Hour of day the job fires")
    minute: int = Field(default=0, ge=0, le=59, description="Minute of the hour the job fires")
    weekday: int = Field(
        default=0, ge=0, le=6, description="Day of week for weekly backups (0 = Sunday)"
    )
    day_of_month: int = Field(
        default=1, ge=1, le=28, description="Day of month for monthly backups"
    )


class SetupConfig(BaseModel):
    """Settings for one setup invocation, built once and passed to every step."""

    model_config = ConfigDict(frozen=True)

    destination: Path = Field(description="Absolute path of the backup folder")
    manifest: Path = Field(description="Absolute path of the manifest file")
    interval: Optional[str] = Field(
        default=None, description="Cadence token: d, w, m or a number of minutes"
    )
    run_now: bool = Field(default=False, description="Run one backup pass after setup")
    remove_jobs: Literal["none", "installed", "all"] = Field(
        default="none",
        description="Remove jobs after setup: none, only ours (installed) or every user job (all)",
    )
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    schedule: ScheduleTimes = Field(default_factory=ScheduleTimes)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator("destination", "manifest")
    @classmethod
    def validate_absolute(cls, v: Path) -> Path:
        """Cron runs from another working directory, so paths must be absolute."""
        if not v.is_absolute():
            raise ValueError(f"path must be absolute: {v}")
        return v

    @field_validator("log_file")
    @classmethod
    def absolute_log_file(cls, v: Optional[str]) -> Optional[str]:
        """Scheduled runs share the log file, so anchor it to the setup directory."""
        if not v:
            return None
        return str(Path(v).expanduser().resolve())

    @field_validator("interval", mode="before")
    @classmethod
    def strip_interval(cls, v: Any) -> Optional[str]:
        # YAML reads "interval: 30" as an int
        if v is None:
            return None
        return str(v).strip() or None


def load_config(config_path: str) -> dict:
    """Load setup options from a YAML file.

    Returns the raw mapping so command-line flags can be layered on top before
    the immutable ``SetupConfig`` is built.
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML format in config file: {e}")

    if config_data is None:
        return {}
    if not isinstance(config_data, dict):
        raise ValueError("Configuration file must contain a mapping")
    return config_data


def resolve_destination(value: str, cwd: Optional[Path] = None) -> Path:
    """
    Turn the destination argument into an existing absolute directory.

    Args:
        value: Destination path, or ``-na`` to use ``./BACKUP``
        cwd: Directory the default folder is created under (defaults to cwd)

    Returns:
        Absolute path of the destination directory

    Raises:
        DestinationMissing: The given directory does not exist
    """
    if value == DEFAULT_DESTINATION_SENTINEL:
        base = cwd if cwd is not None else Path.cwd()
        destination = base / DEFAULT_DESTINATION_NAME
        destination.mkdir(parents=True, exist_ok=True)
        return destination.resolve()

    destination = Path(value).expanduser()
    if not destination.is_dir():
        raise DestinationMissing(f"Backup folder '{value}' does not exist.")
    return destination.resolve()


def validate_manifest(value: str) -> Path:
    """Check that the manifest exists and has content, returning its absolute path."""
    manifest = Path(value).expanduser()
    if not manifest.is_file():
        raise ManifestInvalid(f"Input file '{value}' does not exist.")
    if manifest.stat().st_size == 0:
        raise ManifestInvalid(f"Input file '{value}' is empty.")
    return manifest.resolve()
