"""Configuration management for Origami Feed."""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Application settings, overridable through ``ORIGAMI_*`` env vars."""

    model_config = SettingsConfigDict(
        env_prefix="ORIGAMI_", env_file=".env", env_file_encoding="utf-8"
    )

    # Application
    app_name: str = "Origami Feed"
    host: str = "127.0.0.1"
    port: int = 8001

    # Database
    database_url: str = "sqlite:///./origami.db"
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)

    # Worker pool for blocking database and file work
    worker_threads: int = Field(default=16, ge=1)

    # Content store
    storage_dir: Path = Path("out")
    thumbnail_width: int = Field(default=600, ge=16)
    preview_max_width: int = Field(default=800, ge=16)

    # Presentation
    templates_dir: Path = APP_DIR / "templates"
    static_dir: Path = APP_DIR / "static"

    # Feed
    default_workspace: str = "default"
    page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=200, ge=1)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
