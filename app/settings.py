"""Application settings and configuration (Pydantic v2)."""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings."""

    # Database (SQLite file by default, Postgres DSN in deployment)
    database_url: str = Field(
        default="sqlite:///./crewclock.db",
        description="SQLAlchemy database URL",
    )

    # Geofence / capture tuning
    geofence_radius_km: float = Field(default=1.0, gt=0)
    photo_quality: float = Field(default=0.7, gt=0, le=1)
    location_timeout_seconds: float = Field(default=10.0, gt=0)
    shift_labels: List[str] = Field(default_factory=lambda: ["Shift 1", "Shift 2"])

    # Read side
    subscription_poll_seconds: float = Field(default=2.0, gt=0)
    overview_recent_limit: int = Field(default=5, ge=1)
    local_timezone: Optional[str] = Field(
        default=None, description="IANA zone used for 'today'; server local time if unset"
    )

    # Admin-only mutations (notes, manual entries)
    admin_api_key: Optional[str] = Field(default=None)

    log_level: str = Field(default="INFO")

    # Pydantic v2 settings
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="CREWCLOCK_",
    )


# Global settings instance
settings = Settings()
