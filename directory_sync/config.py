"""
Configuration settings for Directory Sync.

Uses Pydantic Settings to load environment variables for the local record
store, the remote directory endpoint, the query stream timings, and logging.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_sqlite_path() -> Path:
    return Path.home() / ".directory_sync" / "users.db"


class Settings(BaseSettings):
    # Local store
    db_backend: Literal["sqlite", "postgres"] = Field("sqlite", alias="DB_BACKEND")
    sqlite_path: Path = Field(default_factory=_default_sqlite_path, alias="SQLITE_PATH")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("directory_sync", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(4, alias="DB_POOL_MAX_SIZE")

    # Remote source
    remote_base_url: str = Field(
        "https://jsonplaceholder.typicode.com/", alias="REMOTE_BASE_URL"
    )
    remote_users_path: str = Field("users", alias="REMOTE_USERS_PATH")
    remote_timeout_seconds: Optional[float] = Field(30.0, alias="REMOTE_TIMEOUT_SECONDS")

    # Synchronizer / query stream
    sync_retry_attempts: int = Field(1, ge=1, alias="SYNC_RETRY_ATTEMPTS")
    search_debounce_ms: int = Field(200, ge=0, alias="SEARCH_DEBOUNCE_MS")
    stream_stop_timeout_ms: int = Field(5_000, ge=0, alias="STREAM_STOP_TIMEOUT_MS")

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def postgres_dsn(self) -> str:
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def remote_users_url(self) -> str:
        return self.remote_base_url.rstrip("/") + "/" + self.remote_users_path.lstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
