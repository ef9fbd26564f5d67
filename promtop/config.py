from functools import lru_cache
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """SQLite sink settings. Reading stored rows needs nothing else."""

    db_path: str = "promtop.db"
    build_version: str = ""  # Stored with each row; empty means the installed package version

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="PROMTOP_", extra="ignore"
    )


class Settings(StoreSettings):
    """Application settings loaded from environment variables / .env file."""

    prometheus_url: str

    # Bearer token auth (optional, empty string means anonymous access).
    # The token file is read at client construction, e.g. a service account token.
    prometheus_token: str = ""
    prometheus_token_file: str = ""
    prometheus_verify_ssl: bool = True
    prometheus_ca_cert: str = ""
    prometheus_timeout_seconds: float = 15.0

    # Aggregation defaults, overridable from the CLI
    query_range: str = "10m"
    query_type: str = ""
    run_timeout_seconds: float | None = None  # None = no deadline for the run


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings. Fails at first call, not at import time."""
    return Settings()  # type: ignore[call-arg]  # pyright: ignore[reportCallIssue]: fields loaded from env


@lru_cache(maxsize=1)
def get_store_settings() -> StoreSettings:
    """Sink settings only, so ``history`` works without a Prometheus URL."""
    return StoreSettings()
