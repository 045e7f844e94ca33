"""
Central configuration for the DiamondView aggregator.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings for the aggregator and its API."""

    model_config = SettingsConfigDict(
        env_prefix="DV_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log line")
    timezone: str = Field(
        default="America/New_York",
        description="Timezone that defines 'today' for schedule and scoreboard requests.",
    )

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["*"]

    # ── Sources ──────────────────────────────────────────────
    schedule_source: str = Field(
        default="sidearm",
        description="Adapter that owns the schedule layer (sidearm or pear).",
    )
    live_sources: list[str] = Field(
        default=["statbroadcast", "sidearm_live", "espn"],
        description="Adapters feeding the live layer.",
    )
    live_source_priority: list[str] = Field(
        default=["sidearm_live", "statbroadcast", "espn"],
        description="Overlay order during merge; earlier sources claim an entry first.",
    )
    team_directory_path: Optional[str] = None
    statbroadcast_gids: list[str] = Field(default_factory=list)
    user_agent: str = "Mozilla/5.0 (compatible; DiamondView/1.0)"

    # ── Scheduler ────────────────────────────────────────────
    schedule_refresh_interval_s: float = 60.0
    live_feed_interval_s: float = 30.0
    active_poll_interval_s: float = 10.0
    discovery_interval_s: float = 300.0
    discovery_batch_size: int = 10
    discovery_batch_pause_s: float = 0.2
    identifier_evict_after_failures: int = 5
    scheduler_jitter_factor: float = 0.1
    scheduler_max_backoff_s: float = 300.0
    rebuild_debounce_s: float = 0.25

    # ── Provider HTTP ────────────────────────────────────────
    provider_request_timeout_s: float = 8.0
    discovery_request_timeout_s: float = 6.0
    provider_max_retries: int = 2
    circuit_failure_threshold: int = 5
    circuit_recovery_timeout_s: float = 120.0

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @field_validator("discovery_batch_size", "provider_max_retries")
    @classmethod
    def at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("schedule_source", "live_sources", "live_source_priority", mode="after")
    @classmethod
    def lowercase_sources(cls, value: str | list[str]) -> str | list[str]:
        if isinstance(value, str):
            return value.strip().lower()
        return [v.strip().lower() for v in value if v.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
