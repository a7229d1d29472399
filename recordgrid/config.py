"""Configuration system for recordgrid using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.recordgrid] section (project-level)
3. ./recordgrid.toml (project-level, explicit)
4. RECORDGRID_CONFIG_FILE (explicit file path)
5. Environment variables (highest priority)

Environment variables use RECORDGRID_ prefix with nested delimiter __.
Example: RECORDGRID_GRID__PAGE_SIZE, RECORDGRID_PREFERENCES__BACKEND
"""

from __future__ import annotations

import os
import sys

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .log import set_level, warn


if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib  # type: ignore[import-not-found]
    except ImportError:
        tomllib = None


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    recordgrid_toml = Path("recordgrid.toml")
    if recordgrid_toml.exists():
        files.append(recordgrid_toml)

    env_config = os.environ.get("RECORDGRID_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    if tomllib is None:
        return {}

    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            warn(f"Ignoring unreadable config file {config_file}: {exc}")
            continue

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("recordgrid", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class GridSettings(BaseSettings):
    """Grid defaults applied when a grid mounts.

    Environment prefix: RECORDGRID_GRID__
    Example: RECORDGRID_GRID__PAGE_SIZE=25
    """

    model_config = SettingsConfigDict(
        env_prefix="RECORDGRID_GRID__",
        extra="ignore",
    )

    # Not range-checked here; the controller rejects non-positive sizes
    # with a GridConfigurationError.
    page_size: int = Field(default=10, description="Rows per page on a fresh grid")
    page_size_options: Annotated[list[int], NoDecode] = Field(
        default_factory=lambda: [10, 20, 30, 40, 50, 100],
        description="Page sizes offered by the page size selector",
    )
    default_column_size: float = Field(
        default=150, gt=0, description="Width used when a column declares no size"
    )
    selection_column: bool = Field(
        default=True, description="Prepend the sticky row-selection checkbox column"
    )
    selection_column_width: float = Field(default=50, gt=0)
    row_id_key: str | None = Field(
        default=None,
        description="Record key used as row id; the row index is used when unset",
    )

    @field_validator("page_size_options", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: Any) -> list[int]:
        """Parse comma-separated strings from env vars."""
        if isinstance(v, str):
            return [int(s.strip()) for s in v.split(",") if s.strip()]
        return v or []


class PreferenceSettings(BaseSettings):
    """Preference persistence settings.

    Environment prefix: RECORDGRID_PREFERENCES__
    Example: RECORDGRID_PREFERENCES__BACKEND=redis
    Example: RECORDGRID_PREFERENCES__REDIS_URL=redis://localhost:6379/0
    """

    model_config = SettingsConfigDict(
        env_prefix="RECORDGRID_PREFERENCES__",
        extra="ignore",
    )

    backend: Literal["memory", "file", "redis"] = Field(
        default="memory",
        description=(
            "Key-value backend: 'memory' (process lifetime), 'file' (JSON document "
            "on disk) or 'redis' (shared between processes)"
        ),
    )
    key_prefix: str = Field(
        default="erp_table_preferences_",
        description="Fixed prefix prepended to every table id",
    )
    file_path: str = Field(
        default="~/.config/recordgrid/preferences.json",
        description="Document used by the 'file' backend",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL used by the 'redis' backend",
    )


class ExportSettings(BaseSettings):
    """Export settings.

    Environment prefix: RECORDGRID_EXPORT__
    Example: RECORDGRID_EXPORT__SHEET_NAME=Records
    """

    model_config = SettingsConfigDict(
        env_prefix="RECORDGRID_EXPORT__",
        extra="ignore",
    )

    sheet_name: str = Field(default="Sheet1", min_length=1, max_length=31)
    csv_mime_type: str = "text/csv;charset=utf-8;"
    xlsx_mime_type: str = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: RECORDGRID_LOG__
    Example: RECORDGRID_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="RECORDGRID_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


class RecordGridSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: RECORDGRID__

    Configuration sources (in order of precedence):
    1. Built-in defaults
    2. pyproject.toml [tool.recordgrid] section
    3. ./recordgrid.toml (project-level)
    4. RECORDGRID_CONFIG_FILE
    5. Environment variables (highest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="RECORDGRID__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    grid: GridSettings = Field(default_factory=GridSettings)
    preferences: PreferenceSettings = Field(default_factory=PreferenceSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    def __init__(self, **data: Any) -> None:
        toml_config = _load_toml_config()

        # Env vars outrank TOML values within a section
        for name, section_cls in _SECTIONS.items():
            section = toml_config.get(name)
            if isinstance(section, dict):
                toml_config[name] = _deep_merge(section, _section_env(section_cls))

        # Explicit keyword data takes precedence over everything
        merged = _deep_merge(toml_config, data)
        for name, section_cls in _SECTIONS.items():
            section = merged.get(name)
            if isinstance(section, dict):
                merged[name] = section_cls(**section)

        super().__init__(**merged)


_SECTIONS: dict[str, type[BaseSettings]] = {
    "grid": GridSettings,
    "preferences": PreferenceSettings,
    "export": ExportSettings,
    "log": LogSettings,
}


def _section_env(section_cls: type[BaseSettings]) -> dict[str, Any]:
    """Collect values for a section that are set in the environment."""
    prefix = section_cls.model_config.get("env_prefix", "")
    env_values: dict[str, Any] = {}
    for field_name in section_cls.model_fields:
        value = os.environ.get(f"{prefix}{field_name.upper()}")
        if value is not None:
            env_values[field_name] = value
    return env_values


@lru_cache(maxsize=1)
def get_settings() -> RecordGridSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration. Loading settings also
    applies the configured log level to the recordgrid logger.
    """
    settings = RecordGridSettings()
    set_level(settings.log.level)
    return settings


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()


def reload_settings() -> RecordGridSettings:
    """Reload settings from all sources."""
    clear_settings()
    return get_settings()
