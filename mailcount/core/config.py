"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app and the operator CLI share a
consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GmailSettings(BaseSettings):
    """Configuration required for reading the Gmail mailbox."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    application_name: str = Field(
        "Mail Sender Counter", validation_alias="GMAIL_APPLICATION_NAME"
    )
    client_secret_file: Path = Field(
        Path("credentials.json"),
        validation_alias="GMAIL_CLIENT_SECRET_FILE",
        description="Fallback client secret document used when none was uploaded.",
    )
    tokens_directory: Path = Field(
        Path("tokens"),
        validation_alias="GMAIL_TOKENS_DIRECTORY",
        description="Directory holding the encryption key and encrypted credentials.",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("https://www.googleapis.com/auth/gmail.readonly",),
        validation_alias="GMAIL_SCOPES",
    )
    identity: str = Field("user", validation_alias="GMAIL_IDENTITY")
    page_size: int = Field(500, ge=1, le=500, validation_alias="GMAIL_PAGE_SIZE")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class OAuthSettings(BaseSettings):
    """Installed-app OAuth flow configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    callback_host: str = Field("localhost", validation_alias="OAUTH_CALLBACK_HOST")
    callback_port: int = Field(8888, ge=0, le=65535, validation_alias="OAUTH_CALLBACK_PORT")
    callback_port_attempts: int = Field(
        3, ge=1, validation_alias="OAUTH_CALLBACK_PORT_ATTEMPTS"
    )
    refresh_margin_seconds: int = Field(
        300, ge=0, validation_alias="OAUTH_REFRESH_MARGIN_SECONDS"
    )
    open_browser: bool = Field(
        True,
        validation_alias="OAUTH_OPEN_BROWSER",
        description="When false the consent URL is only logged (headless hosts).",
    )
    http_timeout_seconds: float = Field(10.0, gt=0, validation_alias="OAUTH_HTTP_TIMEOUT")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    count_cache_ttl_seconds: int = Field(
        300,
        ge=0,
        validation_alias="COUNT_CACHE_TTL_SECONDS",
        description="Freshness window for cached sender counts; 0 disables caching.",
    )
    gmail: GmailSettings = Field(default_factory=GmailSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "GmailSettings",
    "OAuthSettings",
    "get_settings",
]
