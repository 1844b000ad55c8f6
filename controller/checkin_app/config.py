"""Central configuration for the check-in kiosk controller."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = ROOT_DIR / ".env"


# ============================================================
# Nested Configuration Classes
# ============================================================

class CheckInSettings(BaseModel):
    """Phone entry and welcome screen configuration."""
    default_region: str = Field("US", description="Region assumed when the number has no country code")
    min_phone_digits: int = Field(10, description="Digits required before a number can be considered valid")
    welcome_dismiss_seconds: float = Field(30.0, description="Welcome celebration auto-dismiss delay")
    strict_validation: bool = Field(False, description="Require per-type numbering plan match (is_valid_number)")

    @field_validator("default_region", mode="before")
    @classmethod
    def _normalize_region(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class BrandingSettings(BaseModel):
    """Background image configuration."""
    page_name: str = Field("Login", description="Page setting whose image is used as the kiosk background")
    default_image: str = Field("/images/auth.png", description="Bundled asset shown when no image is available")


class Settings(BaseSettings):
    """Environment-driven settings for controller subsystems."""

    # Check-in service
    service_base_url: str = Field("https://api.mypsyguide.io", description="Origin of the check-in REST API")
    http_timeout_seconds: float = Field(15.0, description="Timeout applied to every service request")

    # UI
    ui_event_queue_size: int = Field(4, description="Max buffered UI events per subscriber")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_directory: Path = Field(ROOT_DIR / "logs", description="Log directory path")
    log_retention_days: int = Field(14, description="Number of log files to retain")

    # Nested Configuration Objects
    checkin: CheckInSettings = Field(default_factory=CheckInSettings, description="Check-in flow settings")
    branding: BrandingSettings = Field(default_factory=BrandingSettings, description="Branding image settings")

    @field_validator("service_base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: object) -> object:
        if isinstance(value, str):
            parsed = value.strip().rstrip("/")
            if not parsed:
                raise ValueError("SERVICE_BASE_URL must not be empty")
            return parsed
        return value

    model_config = SettingsConfigDict(
        env_file=str(DEFAULT_ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings(override_env_file: Optional[Path] = None) -> Settings:
    """Cached Settings instance; accepts optional env override for tests."""

    if override_env_file:
        return Settings(_env_file=str(override_env_file))
    return Settings()
