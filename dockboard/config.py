from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App Settings
    APP_NAME: str = "Warehouse Dock Board"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Storage - "json" (flat files in DATA_DIR), "sql" (DATABASE_URL) or "memory"
    STORAGE_BACKEND: str = "json"
    DATA_DIR: str = "data"
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/dockboard.db"

    # History ring buffer
    HISTORY_LIMIT: int = 1000

    # Dwell analytics
    ANALYTICS_RETENTION_DAYS: int = 90
    DWELL_VIOLATION_HOURS: float = 2.0  # Docked this long or more counts as a violation
    DWELL_CAP_HOURS: float = 6.0  # Real-time dwell cap and reset look-back window
    DWELL_MIN_HOURS: float = 0.1  # Pairings shorter than this are noise
    MAX_DWELL_RESETS: int = 10
    FACILITY_TIMEZONE: str = "UTC"  # Day boundaries for daily dwell

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    DWELL_JOB_INTERVAL_HOURS: int = 24

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = ["*"]

    # Default facility layout used before first-run setup
    DEFAULT_DOOR_COUNT: int = 57
    DEFAULT_YARD_SLOT_COUNT: int = 30

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('STORAGE_BACKEND')
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "sql", "memory"):
            raise ValueError("STORAGE_BACKEND must be one of: json, sql, memory")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
