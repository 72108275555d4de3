"""Configuration management for the Taskminder reminder engine."""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


def _load_env_file() -> None:
    """Load .env from root directory if present."""
    env_path = Path(__file__).parent.parent / ".env"
    if not env_path.is_file():
        return
    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                key, value = stripped.split("=", 1)
                key, value = key.strip(), value.strip().strip("'\"")
                if key and value and key not in os.environ:
                    os.environ[key] = value
    except OSError:
        pass


_load_env_file()


DEFAULT_APP_NAME = "Taskminder Reminder Engine"
DEFAULT_APP_VERSION = "1.0.0"


def _env_int(name: str, fallback: int) -> int:
    try:
        return int(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


class Settings(BaseModel):
    """Application settings with environment fallbacks."""

    # App metadata
    app_name: str = Field(default=DEFAULT_APP_NAME)
    app_version: str = Field(default=DEFAULT_APP_VERSION)

    # Server runtime
    server_host: str = Field(default=os.getenv("TASKMINDER_HOST", "0.0.0.0"))
    server_port: int = Field(default=_env_int("TASKMINDER_PORT", 8001))

    # Calendar arithmetic and notification text use this zone
    timezone: str = Field(default=os.getenv("TASKMINDER_TIMEZONE", "Asia/Tokyo"))

    # Reminder buffer and delivery service budget
    reminder_buffer_size: int = Field(default=_env_int("TASKMINDER_REMINDER_BUFFER", 5))
    notification_capacity: int = Field(default=_env_int("TASKMINDER_NOTIFICATION_CAPACITY", 64))
    pending_soft_limit: int = Field(default=_env_int("TASKMINDER_PENDING_SOFT_LIMIT", 50))
    delivered_retention_hours: int = Field(default=24)

    # Recurrence look-ahead
    recurrence_initial_instances: int = Field(default=3)
    recurrence_min_pending: int = Field(default=2)

    # Archive sweeper
    archive_grace_days: int = Field(default=_env_int("TASKMINDER_ARCHIVE_DAYS", 7))

    # Minimum spacing between background wakes
    background_refresh_hours: int = Field(default=_env_int("TASKMINDER_BACKGROUND_REFRESH_HOURS", 12))

    # Supabase database
    supabase_url: Optional[str] = Field(default=os.getenv("SUPABASE_URL"))
    supabase_key: Optional[str] = Field(default=os.getenv("SUPABASE_KEY"))

    # HTTP behaviour
    cors_allow_origins_raw: str = Field(default=os.getenv("TASKMINDER_CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"))
    enable_docs: bool = Field(default=os.getenv("TASKMINDER_ENABLE_DOCS", "1") != "0")
    docs_url: Optional[str] = Field(default=os.getenv("TASKMINDER_DOCS_URL", "/docs"))

    @property
    def cors_allow_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_allow_origins_raw.strip() in {"", "*"}:
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins_raw.split(",") if origin.strip()]

    @property
    def resolved_docs_url(self) -> Optional[str]:
        """Return documentation URL when docs are enabled."""
        return (self.docs_url or "/docs") if self.enable_docs else None

    @property
    def supabase_enabled(self) -> bool:
        """Flag indicating Supabase-backed storage should be used."""
        return bool(self.supabase_url and self.supabase_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
