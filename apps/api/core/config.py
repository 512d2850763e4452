"""Application configuration using Pydantic Settings."""

from functools import lru_cache
import json
from pathlib import Path
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Audiobook Library Sync API"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/library.db",
        description="Async SQLAlchemy connection URL",
    )
    database_echo: bool = False

    # Paths
    data_dir: Path = Field(default=Path("./data"), description="Base data directory")

    # Sync
    refresh_rate_minutes: int = Field(
        default=60,
        ge=0,
        description="Minimum minutes between two sync passes unless forced",
    )

    # Filesystem sources
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable used to read track tags")
    probe_concurrency: int = Field(default=4, ge=1, le=16, description="Max concurrent ffprobe processes")

    # Remote sources
    remote_timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout for catalog servers")

    # CORS
    # NOTE: Keep this as a string so pydantic-settings doesn't attempt JSON parsing
    # before our validators run (which breaks on comma-separated values).
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description='Allowed CORS origins (comma-separated or JSON array, e.g. \'["https://a","https://b"]\')',
    )

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        raw = (self.cors_origins or "").strip()
        if raw == "":
            return []
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(it).strip() for it in parsed if str(it).strip()]
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
