"""
This module handles the application's configuration, loading environment variables
using Pydantic's BaseSettings for type-safe access.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables or a .env file.

    For production, ensure these environment variables are set:
    - GCP_PROJECT_ID: Your GCP project ID
    - BACKEND_ENV: Set to "production" for production mode
    - GCS_BUCKET_NAME: Bucket holding monitoring images, diffs and frames
    - SENTINEL_CLIENT_ID / SENTINEL_CLIENT_SECRET: Sentinel Hub OAuth client
    - NOTIFICATION_WEBHOOK_URL: Mail relay endpoint used for alerts
    - SCHEDULER_TOKEN: Shared secret for externally triggered batches
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    GCP_PROJECT_ID: str = "geoguardian-local"
    BACKEND_ENV: str = "local"  # "local" or "production"

    # Persistence
    PERSISTENCE_BACKEND: str = "firestore"  # "firestore" or "memory"
    FIRESTORE_DATABASE: str = "(default)"
    REGIONS_COLLECTION: str = "monitored_regions"
    GCS_BUCKET_NAME: str = "geoguardian-satellite-images"

    # Sentinel Hub imagery provider
    SENTINEL_CLIENT_ID: str = ""
    SENTINEL_CLIENT_SECRET: str = ""
    SENTINEL_TOKEN_URL: str = "https://services.sentinel-hub.com/oauth/token"
    SENTINEL_PROCESS_URL: str = "https://services.sentinel-hub.com/api/v1/process"
    SENTINEL_TIMEOUT_SECONDS: float = 30.0
    SENTINEL_MAX_CLOUD_COVERAGE: int = 30
    SENTINEL_SEARCH_WINDOW_DAYS: int = 3
    MIN_IMAGE_BYTES: int = 1000

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULE_HOUR: int = 9
    SCHEDULE_MINUTE: int = 0
    SCHEDULER_TOKEN: Optional[str] = None

    # Alerts
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    ALERT_SENDER: str = "GeoGuardian Alerts <alerts@geoguardian.local>"
    DASHBOARD_URL: str = "http://localhost:3000/analysis-history"
    FRONTEND_ORIGIN: str = "http://localhost:3000"

    # Time-lapse
    TIMELAPSE_MAX_FRAMES: int = 20

    @field_validator("BACKEND_ENV")
    @classmethod
    def validate_backend_env(cls, v: str) -> str:
        allowed = {"local", "production"}
        value = v.lower().strip()
        if value not in allowed:
            raise ValueError(f"BACKEND_ENV must be one of {allowed}")
        return value

    @field_validator("PERSISTENCE_BACKEND")
    @classmethod
    def validate_persistence_backend(cls, v: str) -> str:
        allowed = {"firestore", "memory"}
        value = v.lower().strip()
        if value not in allowed:
            raise ValueError(f"PERSISTENCE_BACKEND must be one of {allowed}")
        return value

    @field_validator("SENTINEL_TOKEN_URL", "SENTINEL_PROCESS_URL", "NOTIFICATION_WEBHOOK_URL", "FRONTEND_ORIGIN")
    @classmethod
    def validate_urls(cls, v):
        """Remove trailing slashes for consistency."""
        if v is None:
            return v
        return v.rstrip("/")

    @field_validator("SCHEDULE_HOUR")
    @classmethod
    def validate_schedule_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("SCHEDULE_HOUR must be between 0 and 23")
        return v

    @field_validator("SCHEDULE_MINUTE")
    @classmethod
    def validate_schedule_minute(cls, v: int) -> int:
        if not 0 <= v <= 59:
            raise ValueError("SCHEDULE_MINUTE must be between 0 and 59")
        return v


settings = Settings()
