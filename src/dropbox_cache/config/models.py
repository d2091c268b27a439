from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

DEFAULT_CACHE_DIR_NAME = "dropbox_cache"


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = FileRotationSettings()


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = FileLoggingSettings()

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown logging level {value!r}")
        return normalized


class CredentialsSettings(BaseModel):
    """OAuth2 app credentials and the long-lived refresh token."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    client_id: str = Field(min_length=1)
    client_secret: SecretStr
    refresh_token: SecretStr

    @field_validator("client_secret", "refresh_token")
    @classmethod
    def _require_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be empty")
        return value


class StorageSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    token_url: str = "https://api.dropbox.com/oauth2/token"
    api_base_url: str = "https://api.dropboxapi.com/2"
    content_base_url: str = "https://content.dropboxapi.com/2"
    request_timeout_seconds: float = Field(default=60.0, gt=0)


class CacheSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Empty means <system temp dir>/dropbox_cache.
    cache_dir: str = ""
    max_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=0.0, ge=0)
    # None keeps every entry forever.
    max_entries: Optional[int] = Field(default=None, ge=1)

    def resolved_cache_dir(self) -> Path:
        if self.cache_dir.strip():
            return Path(self.cache_dir).expanduser()
        return Path(tempfile.gettempdir()) / DEFAULT_CACHE_DIR_NAME


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: LoggingSettings = LoggingSettings()
    credentials: CredentialsSettings
    storage: StorageSettings = StorageSettings()
    cache: CacheSettings = CacheSettings()


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    Implementations may use these to control where configuration is read from.
    """

    yaml_path: str = "config.yaml"
    env_prefix: str = "DROPBOX_CACHE__"
    dotenv_path: Optional[str] = ".env"
