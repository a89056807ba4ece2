"""Configuration management using Pydantic Settings.

Loads configuration from multiple sources with the following priority (highest first):
1. Explicit keyword arguments
2. Environment variables (WISH_* prefix)
3. .env file
4. config.local.yaml (if exists)
5. config.yaml
6. Default values
"""

from contextvars import ContextVar
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class RetrySettings(BaseModel):
    """Backoff configuration for idempotent schema fetches."""

    max_retries: int = Field(default=3, ge=1, le=10)
    base_delay: float = Field(default=0.5, ge=0)
    max_delay: float = Field(default=8.0, ge=0)


def _load_yaml_config(config_dir: Path) -> dict:
    """Load configuration from YAML files.

    Loads config.yaml and optionally overlays config.local.yaml.
    """
    config = {}

    config_file = config_dir / "config.yaml"
    if config_file.exists():
        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

    local_config_file = config_dir / "config.local.yaml"
    if local_config_file.exists():
        with open(local_config_file) as f:
            local_config = yaml.safe_load(f) or {}
            config = _deep_merge(config, local_config)

    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class YamlConfigSource(PydanticBaseSettingsSource):
    """Settings source for values read from config.yaml / config.local.yaml.

    Ranked below init kwargs, environment variables and .env so a YAML file
    only fills in what nothing else sets.
    """

    def __init__(self, settings_cls: type[BaseSettings], config: dict):
        super().__init__(settings_cls)
        self.config = config

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self.config.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {name: value for name, value in self.config.items() if value is not None}


# YAML overlay for the Settings instance being built
_yaml_config_var: ContextVar[dict] = ContextVar("wish_yaml_config", default={})


class Settings(BaseSettings):
    """SDK settings loaded from environment, .env, and config files."""

    model_config = SettingsConfigDict(
        env_prefix="WISH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_url: str | None = None
    api_token: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)
    # Maximum wait between two stream fragments; None waits indefinitely
    stream_timeout_seconds: float | None = Field(default=None, gt=0)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    def __init__(self, config_dir: Path | None = None, **data):
        """Initialize settings, loading from YAML if config_dir provided."""
        yaml_config = _load_yaml_config(config_dir) if config_dir is not None else {}
        token = _yaml_config_var.set(yaml_config)
        try:
            super().__init__(**data)
        finally:
            _yaml_config_var.reset(token)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Rank YAML values below kwargs, environment and .env."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            YamlConfigSource(settings_cls, _yaml_config_var.get()),
        )

    @field_validator("api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalize the base URL so paths can be appended directly."""
        if isinstance(v, str):
            v = v.strip().rstrip("/")
            return v or None
        return v

    @field_validator("api_token", mode="before")
    @classmethod
    def blank_token_is_none(cls, v):
        """Treat an empty token as not configured."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def validate_required(self) -> None:
        """Validate that required settings are present.

        Raises:
            ValueError: If required settings are missing.
        """
        if not self.api_url:
            raise ValueError(
                "API URL not configured. Set WISH_API_URL, add api_url to "
                "config.yaml, or pass api_url explicitly."
            )


@lru_cache
def get_settings(config_dir: Path | None = None) -> Settings:
    """Get cached settings instance.

    Args:
        config_dir: Optional path to config directory. If None, the current
                   working directory's ``config`` folder is used when present.

    Returns:
        Settings instance.
    """
    if config_dir is None:
        default_config_dir = Path.cwd() / "config"
        if default_config_dir.exists():
            config_dir = default_config_dir

    return Settings(config_dir=config_dir)
