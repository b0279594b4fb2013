"""Settings for the expense bot, read from the environment and `.env`."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Iterable, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


class Settings(BaseSettings):
    """Runtime configuration; field aliases are the environment variable names."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    default_currency: str = Field(default="USD", alias="DEFAULT_CURRENCY")
    timezone: str = Field(default="America/Panama", alias="TIMEZONE")

    whatsapp_token: SecretStr | None = Field(default=None, alias="WHATSAPP_TOKEN")
    whatsapp_phone_number_id: str | None = Field(
        default=None, alias="WHATSAPP_PHONE_NUMBER_ID"
    )
    whatsapp_verify_token: SecretStr | None = Field(
        default=None, alias="WHATSAPP_VERIFY_TOKEN"
    )
    whatsapp_api_version: str = Field(default="v21.0", alias="WHATSAPP_API_VERSION")
    whatsapp_api_base_url: str = Field(
        default="https://graph.facebook.com", alias="WHATSAPP_API_BASE_URL"
    )

    telegram_token: SecretStr | None = Field(default=None, alias="TELEGRAM_TOKEN")
    telegram_webhook_secret: str | None = Field(
        default=None, alias="TELEGRAM_WEBHOOK_SECRET"
    )
    telegram_allowed_users: Annotated[list[int], NoDecode] = Field(
        default_factory=list, alias="TELEGRAM_ALLOWED_USERS"
    )

    storage_backend: Literal["firestore", "sqlite"] = Field(
        default="firestore", alias="STORAGE_BACKEND"
    )
    firestore_collection: str = Field(default="gastos", alias="FIRESTORE_COLLECTION")
    firestore_project: str | None = Field(default=None, alias="FIRESTORE_PROJECT")
    google_credentials_json: SecretStr | None = Field(
        default=None, alias="GOOGLE_APPLICATION_CREDENTIALS_JSON"
    )
    expenses_db: Path = Field(
        default=Path("var/data/gastos.sqlite"), alias="EXPENSES_DB"
    )

    port: int = Field(default=10000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("default_currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: str | None) -> str:
        normalized = (value or "USD").strip().upper()
        if not _CURRENCY_RE.match(normalized):
            raise ValueError("DEFAULT_CURRENCY must be a 3-letter currency code")
        return normalized

    @field_validator("timezone", mode="after")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown TIMEZONE: {value}") from exc
        return value

    @field_validator("telegram_allowed_users", mode="before")
    @classmethod
    def _parse_allowed_users(cls, value: object) -> list[int]:
        if value in (None, ""):
            return []
        if isinstance(value, int):
            return [value]
        if isinstance(value, str):
            chunks = [chunk.strip() for chunk in value.split(",")]
            return [int(chunk) for chunk in chunks if chunk]
        if isinstance(value, Iterable):
            return [int(item) for item in value]
        raise TypeError("TELEGRAM_ALLOWED_USERS must be a CSV string or list")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str | None) -> str:
        return (value or "INFO").upper()

    @field_validator("whatsapp_api_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def tzinfo(self) -> ZoneInfo:
        """Reference timezone used for server timestamps and periods."""
        return ZoneInfo(self.timezone)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
