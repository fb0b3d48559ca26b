"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Trakt Lists", alias="APP_NAME")
    addon_id: str = Field(default="com.traktlists.python", alias="ADDON_ID")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=8080, alias="PORT")

    trakt_client_id: str | None = Field(default=None, alias="TRAKT_CLIENT_ID")
    trakt_access_token: str | None = Field(default=None, alias="TRAKT_ACCESS_TOKEN")
    trakt_api_url: HttpUrl = Field(
        default="https://api.trakt.tv", alias="TRAKT_API_URL"
    )
    trakt_retry_limit: int = Field(
        default=3, alias="TRAKT_RETRY_LIMIT", ge=0, le=10
    )

    metadata_addon_url: HttpUrl | None = Field(
        default="https://v3-cinemeta.strem.io",
        alias="METADATA_ADDON_URL",
        validation_alias=AliasChoices("METADATA_ADDON_URL", "CINEMETA_API_URL"),
    )

    catalog_cache_seconds: int = Field(
        default=300, alias="CACHE_TTL", ge=10, le=86_400
    )
    catalog_cache_size: int = Field(
        default=4_096, alias="CACHE_SIZE", ge=16, le=1_000_000
    )
    default_type_label: str = Field(default="MyTrakt", alias="DEFAULT_TYPE_LABEL")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./traktlists.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        """Accept lower-case level names such as ``debug``."""

        if value is None:
            return "INFO"
        text = str(value).strip().upper()
        if text not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError("LOG_LEVEL must be a standard logging level name")
        return text

    @field_validator("default_type_label")
    @classmethod
    def _require_alphanumeric_label(cls, value: str) -> str:
        cleaned = "".join(char for char in value if char.isascii() and char.isalnum())
        if not cleaned:
            raise ValueError("DEFAULT_TYPE_LABEL must contain letters or digits")
        return cleaned

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
