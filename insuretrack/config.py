from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import EmailStr, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Central configuration for the InsureTrack backend.

    - Reads from .env (local) and the process environment.
    - Every value is optional: a missing MONGODB_URI selects file storage,
      missing SMTP credentials select simulated email delivery.
    - Ignores extra env vars so adding new ones doesn't break startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Core app
    # -------------------------------------------------------------------------
    app_name: str = Field(default="InsureTrack Backend", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    port: int = Field(default=5000, alias="PORT")
    api_prefix: str = Field(default="", alias="API_PREFIX")

    # Comma-separated list, e.g. "http://localhost:3000,https://app.example.com"
    cors_origins_raw: Optional[str] = Field(default=None, alias="CORS_ORIGINS")

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    mongodb_uri: Optional[str] = Field(default=None, alias="MONGODB_URI")
    database_name: str = Field(default="insuretrack", alias="DATABASE_NAME")
    mongodb_timeout_ms: int = Field(default=5000, alias="MONGODB_TIMEOUT_MS")

    data_dir: Path = Field(default=Path("data"), alias="DATA_DIR")

    # -------------------------------------------------------------------------
    # Email (SMTP) + optional SendGrid
    # -------------------------------------------------------------------------
    email_enabled: bool = Field(default=True, alias="ENABLE_EMAIL")

    email_smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    email_smtp_port: int = Field(default=587, alias="SMTP_PORT")
    # true: implicit TLS (port 465); false: STARTTLS upgrade
    email_smtp_secure: bool = Field(default=False, alias="SMTP_SECURE")
    email_smtp_timeout: float = Field(default=30.0, alias="SMTP_TIMEOUT")
    email_smtp_username: Optional[str] = Field(default=None, alias="EMAIL_USER")
    email_smtp_password: Optional[str] = Field(default=None, alias="EMAIL_PASSWORD")

    email_from_address: Optional[EmailStr] = Field(default=None, alias="EMAIL_FROM")
    email_from_name: str = Field(default="InsureTrack Team", alias="EMAIL_FROM_NAME")

    sendgrid_api_key: Optional[str] = Field(default=None, alias="SENDGRID_API_KEY")

    # -------------------------------------------------------------------------
    # Reminders
    # -------------------------------------------------------------------------
    reminder_days: int = Field(default=7, alias="REMINDER_DAYS")
    reminder_hour: int = Field(default=8, alias="REMINDER_HOUR")
    reminder_minute: int = Field(default=0, alias="REMINDER_MINUTE")
    scheduler_enabled: bool = Field(default=True, alias="ENABLE_SCHEDULER")

    reminder_subject_template: Optional[str] = Field(
        default=None,
        alias="REMINDER_SUBJECT_TEMPLATE",
    )
    reminder_body_template: Optional[str] = Field(
        default=None,
        alias="REMINDER_BODY_TEMPLATE",
    )

    @field_validator("mongodb_uri", "email_from_address", "sendgrid_api_key", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat `FOO=` in .env the same as an unset variable."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("reminder_days")
    @classmethod
    def validate_reminder_days(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("REMINDER_DAYS must be > 0")
        return v

    @field_validator("reminder_hour")
    @classmethod
    def validate_reminder_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("REMINDER_HOUR must be between 0 and 23")
        return v

    @field_validator("reminder_minute")
    @classmethod
    def validate_reminder_minute(cls, v: int) -> int:
        if not 0 <= v <= 59:
            raise ValueError("REMINDER_MINUTE must be between 0 and 59")
        return v

    @property
    def cors_origins(self) -> list[str]:
        """
        Returns a list of allowed origins from the comma-separated env string.
        Defaults to the local React dev servers when unset.
        """
        if not self.cors_origins_raw:
            return ["http://localhost:3000", "http://127.0.0.1:3000"]
        return [
            origin.strip()
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader so config is evaluated once per process.
    """
    settings = Settings()
    logger.info(
        "Settings loaded (env=%s, debug=%s, mongodb=%s, reminder_days=%s)",
        settings.environment,
        settings.debug,
        "configured" if settings.mongodb_uri else "not configured",
        settings.reminder_days,
    )
    return settings


# Singleton used everywhere else
settings: Settings = get_settings()
