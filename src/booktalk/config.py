from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseModel):
    """Application-specific configuration values."""

    name: str = "BookTalk"
    port: int = 8000
    log_level: str = "INFO"
    # Transport settings for FastMCP: "stdio" (default), "http", or "sse"
    transport: Literal["stdio", "http", "sse"] = "stdio"
    host: str = "127.0.0.1"


class DatabaseConfig(BaseModel):
    """Database configuration values."""

    # SQLite URL or a bare filesystem path
    url: str = "sqlite:///booktalk.sqlite"
    echo: bool = False


class MediaConfig(BaseModel):
    """Where recordings, photos, videos and covers live on disk."""

    root: str = "media"


class FeedConfig(BaseModel):
    """Feed pagination defaults."""

    page_size: int = 20


class OpenLibraryConfig(BaseModel):
    """Open Library book metadata lookup configuration values."""

    base_url: str = "https://openlibrary.org"
    covers_base_url: str = "https://covers.openlibrary.org"
    timeout: float = 15.0
    verify_ssl: bool = True
    user_agent: Optional[str] = None


class Settings(BaseSettings):
    """Top-level settings loaded from environment variables and .env only."""

    model_config = SettingsConfigDict(
        env_prefix="BOOKTALK_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    database: DatabaseConfig = DatabaseConfig()
    media: MediaConfig = MediaConfig()
    feed: FeedConfig = FeedConfig()
    openlibrary: OpenLibraryConfig = OpenLibraryConfig()


def load_settings() -> Settings:
    """Load settings from environment variables and .env only."""
    return Settings()  # type: ignore[call-arg]
