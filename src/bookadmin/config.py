"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (BOOKADMIN__API__BASE_URL=http://host/api)
  2. bookadmin.yaml         (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("bookadmin")
_DEFAULT_TOKEN_PATH = str(Path(_DEFAULT_DATA_DIR) / "token")


def _find_config_file() -> str | None:
    """Return the path of the first bookadmin.yaml found, or None."""
    candidates = [
        Path("bookadmin.yaml"),
        Path(platformdirs.user_config_dir("bookadmin")) / "bookadmin.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ApiSettings(BaseModel):
    base_url: str = "http://localhost:8080/api"
    timeout_seconds: float = Field(default=10.0, gt=0)


class AuthSettings(BaseModel):
    token: str | None = None  # Pre-issued bearer token, e.g. BOOKADMIN__AUTH__TOKEN
    persist_token: bool = False
    token_path: str = _DEFAULT_TOKEN_PATH


class CacheSettings(BaseModel):
    default_stale_seconds: float = Field(default=0.0, ge=0)
    gc_seconds: float = Field(default=300.0, ge=0)
    # Keyed by "/"-joined resource key prefix: "transactions", "transactions/user"
    stale_overrides: dict[str, float] = {
        "transactions": 300.0,
        "transactions/user": 120.0,
        "auth/me": 300.0,
    }


class RetrySettings(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    base_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)
    jitter: bool = True


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: BOOKADMIN__RETRY__MAX_ATTEMPTS=5
        env_prefix="BOOKADMIN__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    api: ApiSettings = ApiSettings()
    auth: AuthSettings = AuthSettings()
    cache: CacheSettings = CacheSettings()
    retry: RetrySettings = RetrySettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # No dotenv or secrets-dir sources
        )
