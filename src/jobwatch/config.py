"""Centralized configuration management using Pydantic Settings.

This module provides a type-safe, validated configuration system for the polling
scheduler, the credential vault, the provider prober and the monitoring API.
Every tuning constant lives here with a short note on where it comes from.
"""

from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class PollingConfig(BaseSettings):
    """Adaptive polling settings.

    The interval bounds and multiplier are policy, not contract: the scheduler
    only guarantees that intervals stay inside [min_interval_ms, max_interval_ms].
    """

    # Interval Bounds
    # 1s floor keeps a fast-moving job responsive without hammering the API;
    # 30s ceiling caps how stale a slow job's status can get.
    min_interval_ms: float = Field(
        default=1000.0,
        gt=0,
        le=600_000,
        description="Shortest delay between two polls of the same job"
    )
    max_interval_ms: float = Field(
        default=30_000.0,
        gt=0,
        le=3_600_000,
        description="Longest delay between two polls of the same job"
    )

    # Backoff
    # 1.5 grows gradually on slow jobs; failures use the square (2.25).
    backoff_multiplier: float = Field(
        default=1.5,
        gt=1.0,
        le=10.0,
        description="Factor applied to the interval on each adjustment"
    )
    max_retries: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Consecutive fetch failures before polling is abandoned"
    )
    fast_progress_threshold: float = Field(
        default=50.0,
        ge=0,
        le=100,
        description="Progress percentage above which a job is polled more often"
    )

    # Environment
    pause_on_background: bool = Field(
        default=True,
        description="Pause all polling while the host reports being in the background"
    )

    model_config = SettingsConfigDict(env_prefix="POLLING_")

    @field_validator("max_interval_ms")
    @classmethod
    def validate_max_interval(cls, v, info):
        """Ensure max_interval_ms >= min_interval_ms."""
        if "min_interval_ms" in info.data:
            minimum = info.data["min_interval_ms"]
            if v < minimum:
                raise ValueError(
                    f"max_interval_ms ({v}) must be >= min_interval_ms ({minimum})"
                )
        return v


class VaultConfig(BaseSettings):
    """Credential vault settings.

    Secrets are kept in memory only; these settings control how long they live.
    """

    # Why 8 hours? Matches one working session; users re-enter keys the next day.
    default_ttl_seconds: float = Field(
        default=8 * 60 * 60,
        gt=0,
        le=7 * 24 * 60 * 60,
        description="Lifetime of a stored credential when no TTL is given"
    )
    sweep_interval_seconds: float = Field(
        default=60.0,
        ge=1.0,
        le=3600.0,
        description="Interval between proactive sweeps of expired credentials"
    )
    expiring_soon_seconds: float = Field(
        default=60 * 60,
        ge=0,
        description="Window used to count credentials that are about to expire"
    )

    model_config = SettingsConfigDict(env_prefix="VAULT_")


class ProberConfig(BaseSettings):
    """Provider health probe settings."""

    probe_timeout: float = Field(
        default=15.0,
        ge=0.1,
        le=300.0,
        description="Seconds to wait for a connectivity check before marking it unavailable"
    )
    degraded_latency_ms: float = Field(
        default=5000.0,
        ge=0,
        description="Successful checks slower than this are reported as degraded"
    )
    providers: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Provider ids always included in a full probe run"
    )

    model_config = SettingsConfigDict(env_prefix="PROBER_")

    @field_validator("providers", mode="before")
    @classmethod
    def parse_providers(cls, v):
        """Parse comma-separated provider ids from environment variable."""
        if isinstance(v, str):
            return [provider.strip() for provider in v.split(",") if provider.strip()]
        return v


class APIClientConfig(BaseSettings):
    """Settings for the HTTP adapters that talk to the analysis API."""

    base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the analysis API"
    )
    # Why 10s? A status endpoint should answer quickly; a slow answer is
    # treated as a transient failure and retried with backoff.
    request_timeout: float = Field(
        default=10.0,
        ge=0.5,
        le=300.0,
        description="Timeout for a single status or provider-test request in seconds"
    )
    max_connections: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Maximum pooled connections to the analysis API"
    )

    model_config = SettingsConfigDict(env_prefix="API_")


class RedisConfig(BaseSettings):
    """Redis configuration for optional polling snapshot persistence."""

    redis_uri: str | None = Field(
        default=None,
        description="Redis connection URI (e.g., redis://localhost:6379)"
    )
    snapshot_ttl: int = Field(
        default=24 * 60 * 60,
        ge=60,
        description="Lifetime of persisted polling snapshots in seconds"
    )

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class CORSConfig(BaseSettings):
    """CORS configuration."""

    # Why "*" default? Development convenience; should be restricted in production
    allowed_origins: Annotated[list[str], NoDecode] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific domains in production)"
    )

    model_config = SettingsConfigDict(env_prefix="CORS_")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_origins(cls, v):
        """Parse comma-separated origins from environment variable."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


class AuthConfig(BaseSettings):
    """Authentication configuration for the monitoring API."""

    api_key: str | None = Field(
        default=None,
        alias="JOBWATCH_KEY",
        description="API key for authentication (if None, auth is disabled)"
    )

    model_config = SettingsConfigDict(case_sensitive=True)


class LoggingConfig(BaseSettings):
    """Logging configuration with structured logging support."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level"
    )
    json_logs: bool = Field(
        default=False,
        description="Enable JSON formatted logs (recommended for production)"
    )
    log_file: str | None = Field(
        default=None,
        description="Path to log file (None = stderr)"
    )
    log_rotation_size: int = Field(
        default=10 * 1024 * 1024,  # 10MB
        ge=1024 * 1024,
        description="Log file size before rotation (bytes)"
    )
    log_rotation_count: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of rotated log files to keep"
    )

    model_config = SettingsConfigDict(env_prefix="LOG_")


class Settings(BaseSettings):
    """Main application settings combining all configuration sections."""

    app_name: str = Field(
        default="jobwatch",
        description="Application name"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Runtime environment"
    )

    polling: PollingConfig = Field(default_factory=PollingConfig)
    vault: VaultConfig = Field(default_factory=VaultConfig)
    prober: ProberConfig = Field(default_factory=ProberConfig)
    api: APIClientConfig = Field(default_factory=APIClientConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    cors: CORSConfig = Field(default_factory=CORSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate_settings(self) -> list[str]:
        """Validate settings and return list of warnings/info messages."""
        messages = []

        if self.environment == "production":
            if not self.auth.api_key:
                messages.append("WARNING: No API key configured in production")

            if not self.logging.json_logs:
                messages.append("INFO: JSON logs recommended for production")

            if "*" in self.cors.allowed_origins:
                messages.append("WARNING: CORS allows all origins in production")

        if self.polling.max_retries * self.polling.min_interval_ms < 1000:
            messages.append("WARNING: Retry budget is spent in under one second")

        messages.append(
            f"INFO: Polling interval: {self.polling.min_interval_ms:.0f}-"
            f"{self.polling.max_interval_ms:.0f}ms (x{self.polling.backoff_multiplier})"
        )
        messages.append(f"INFO: Max retries: {self.polling.max_retries}")
        messages.append(
            f"INFO: Credential TTL: {self.vault.default_ttl_seconds / 3600:.1f}h"
        )
        messages.append(f"INFO: Redis: {'enabled' if self.redis.redis_uri else 'disabled'}")
        messages.append(f"INFO: Auth: {'enabled' if self.auth.api_key else 'disabled'}")

        return messages


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
