"""Application configuration management.

Handles loading and validating configuration from multiple sources:
    - TOML/JSON config files
    - Environment variables (NOTER_* prefix)
    - Default values

Key components:
    - AppConfig: Main configuration model
    - load_config(): Safe config loading with fallback
    - ConfigLoadResult: Metadata about config source
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import patch

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_ENV_VAR = "NOTER_CONFIG"

DEFAULT_EXECUTABLE = "/usr/local/bin/opencode"
DEFAULT_MODEL = "opencode/big-pickle"
MAX_RETRIES = 5
HISTORY_LIMIT = 50


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or validated."""


# -----------------------------------------------------------------------------
# Sub-configuration Models
# -----------------------------------------------------------------------------


class ToolConfig(BaseModel):
    """External formatting tool settings."""

    executable_path: str = Field(
        default=DEFAULT_EXECUTABLE, description="Path to the opencode executable."
    )
    model: str = Field(default=DEFAULT_MODEL, description="Model identifier passed to --model.")
    available_models: list[str] = Field(
        default_factory=lambda: [
            "opencode/big-pickle",
            "anthropic/claude-sonnet-4-20250514",
            "anthropic/claude-3-5-haiku-20241022",
            "openai/gpt-4o",
            "openai/gpt-4o-mini",
        ],
        description="Models offered for quick selection.",
    )


class UserConfig(BaseModel):
    """User preferences and storage locations."""

    target_directory: Path | None = Field(
        default=None, description="Directory the tool operates in (e.g. an Obsidian vault)."
    )
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "noter",
        description="Directory holding queue.json and history.json.",
    )
    log_level: str = Field(default="INFO", description="Log level for noter output.")


class QueueConfig(BaseModel):
    """Retry queue pacing."""

    retry_delay: float = Field(
        default=1.0, ge=0.0, description="Seconds to pause between queued attempts."
    )


@dataclass
class ConfigLoadResult:
    path: Path
    file_loaded: bool
    env_overrides: set[str]
    error: str | None = None


def _ensure_directory(path: Path, name: str) -> Path:
    """Ensure directory exists, creating if necessary. Raises on failure."""
    expanded = path.expanduser().resolve()
    try:
        expanded.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ValueError(f"Cannot create {name} directory {expanded}: {exc}") from exc
    return expanded


class AppConfig(BaseSettings):
    """Application-wide configuration with nested sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="NOTER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    tool: ToolConfig = Field(default_factory=ToolConfig)
    user: UserConfig = Field(default_factory=UserConfig, validate_default=True)
    queue: QueueConfig = Field(default_factory=QueueConfig)

    @field_validator("user", mode="after")
    @classmethod
    def ensure_user_directories(cls, v: UserConfig) -> UserConfig:
        """Ensure the data directory exists and the target directory is absolute."""
        v.data_dir = _ensure_directory(v.data_dir, "data")
        if v.target_directory is not None:
            v.target_directory = v.target_directory.expanduser().resolve()
        return v

    @property
    def queue_path(self) -> Path:
        return self.user.data_dir / "queue.json"

    @property
    def history_path(self) -> Path:
        return self.user.data_dir / "history.json"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
    ]:
        # Environment variables override config file entries.
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


def _resolve_config_path(config_path: Path | None, env_vars: Mapping[str, str]) -> Path:
    candidate = config_path or env_vars.get(CONFIG_ENV_VAR) or (Path.home() / ".noterconfig")
    return Path(candidate).expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    raw = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    parser = json.loads if suffix == ".json" else tomllib.loads

    try:
        data = parser(raw)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Syntax error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping.")

    return data


def _detect_env_overrides(env_vars: Mapping[str, str]) -> set[str]:
    """Detect which fields are overridden by environment variables.

    For nested models, detects vars like NOTER_TOOL__MODEL, NOTER_USER__DATA_DIR.
    """
    prefix = AppConfig.model_config.get("env_prefix", "")
    delimiter = AppConfig.model_config.get("env_nested_delimiter", "__")
    overrides: set[str] = set()

    nested_models: dict[str, type[BaseModel]] = {
        "tool": ToolConfig,
        "user": UserConfig,
        "queue": QueueConfig,
    }

    for group_name, model_cls in nested_models.items():
        for field in model_cls.model_fields:
            env_key = f"{prefix}{group_name}{delimiter}{field}".upper()
            if env_key in env_vars:
                overrides.add(f"{group_name}.{field}")

    return overrides


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[AppConfig, ConfigLoadResult]:
    """
    Load configuration with Safe Mode fallback.
    If the file is invalid, returns default config + error message.
    """
    env_vars: Mapping[str, str] = os.environ if env is None else {**os.environ, **env}
    resolved_path = _resolve_config_path(config_path, env_vars)
    env_overrides = _detect_env_overrides(env_vars)

    error: str | None = None
    file_loaded = False
    file_data: dict[str, Any] = {}

    try:
        file_data = _read_config_file(resolved_path)
        file_loaded = resolved_path.exists()
    except ConfigError as exc:
        error = str(exc)

    context_manager = (
        patch.dict(os.environ, env_vars, clear=False) if env is not None else nullcontext()
    )

    try:
        with context_manager:
            config = AppConfig(**file_data)
    except ValidationError as exc:
        error = str(exc)
        config = AppConfig()

    load_result = ConfigLoadResult(
        path=resolved_path,
        file_loaded=file_loaded,
        env_overrides=env_overrides,
        error=error,
    )

    return config, load_result
