"""Console settings.

Settings come from an optional JSON file plus a couple of environment
overrides. Bad settings never stop the console: they are logged and the
defaults are used instead.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SETTINGS_ENV = "LOG_CONSOLE_SETTINGS"
MAX_RECORDS_ENV = "LOG_CONSOLE_MAX_RECORDS"
LOG_DIR_ENV = "LOG_CONSOLE_LOG_DIR"


class CleanupPolicy(BaseModel):
    """Retention thresholds for old log files. A negative value disables one."""

    max_files: int = Field(default=-1, description="Max number of matching files to keep.")
    max_total_bytes: int = Field(default=-1, description="Max total size of matching files.")
    max_age_hours: float = Field(default=-1.0, description="Max age of a matching file.")


class PersistenceSettings(BaseModel):
    enabled: bool = True
    directory: str = "logs"
    file_prefix: str = Field(default="LOG-CONSOLE", min_length=1)
    session_timestamp_format: str = Field(default="%y%m%dT%H%M%S", min_length=1)
    write_info_file: bool = True
    write_warning_file: bool = True
    write_error_file: bool = True
    cleanup: CleanupPolicy = Field(default_factory=CleanupPolicy)


class AggregatorSettings(BaseModel):
    max_records: int = Field(default=300, ge=1, description="Max groups held by the view.")


class SilenceSettings(BaseModel):
    sources: list[str] = Field(default_factory=list)
    prefixes: list[str] = Field(default_factory=list)


class ConsoleSettings(BaseModel):
    raw: AggregatorSettings = Field(default_factory=AggregatorSettings)
    collapsed: AggregatorSettings = Field(default_factory=AggregatorSettings)
    smart: AggregatorSettings = Field(default_factory=AggregatorSettings)
    persistence: PersistenceSettings = Field(default_factory=PersistenceSettings)
    silence: SilenceSettings = Field(default_factory=SilenceSettings)
    flush_period_seconds: float = Field(default=0.2, gt=0.0)
    install_root: str | None = None


def _read_settings(path: Path) -> ConsoleSettings:
    if not path.is_file():
        raise ConfigurationError(f"Settings file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read settings file {path}: {exc}") from exc
    try:
        return ConsoleSettings.model_validate_json(text)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings in {path}: {exc}") from exc


def _env_max_records() -> int | None:
    env = os.getenv(MAX_RECORDS_ENV)
    if env is None or env == "":
        return None
    try:
        value = int(env)
    except ValueError as exc:
        raise ConfigurationError(f"{MAX_RECORDS_ENV} must be an integer") from exc
    if value < 1:
        raise ConfigurationError(f"{MAX_RECORDS_ENV} must be >= 1")
    return value


def apply_env_overrides(settings: ConsoleSettings) -> ConsoleSettings:
    """Return settings with environment overrides applied."""
    update: dict[str, object] = {}
    try:
        max_records = _env_max_records()
    except ConfigurationError as exc:
        logger.warning("Ignoring environment override: %s", exc)
        max_records = None
    if max_records is not None:
        view = AggregatorSettings(max_records=max_records)
        update.update(raw=view, collapsed=view, smart=view)

    log_dir = os.getenv(LOG_DIR_ENV)
    if log_dir:
        update["persistence"] = settings.persistence.model_copy(update={"directory": log_dir})

    if not update:
        return settings
    return settings.model_copy(update=update)


def load_settings(path: str | Path | None = None) -> ConsoleSettings:
    """Load settings from ``path`` (or $LOG_CONSOLE_SETTINGS), falling back to defaults."""
    raw = path if path is not None else os.getenv(SETTINGS_ENV)
    settings = ConsoleSettings()
    if raw:
        try:
            settings = _read_settings(Path(raw))
        except ConfigurationError as exc:
            logger.warning("Using default settings: %s", exc)
    return apply_env_overrides(settings)
