"""
Application settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradesim.config.constants import (
    BACKOFF_MAX_EXPONENT,
    COINGECKO_API_URL,
    DEFAULT_CACHE_DURATION,
    DEFAULT_CORS_ORIGINS,
    DEFAULT_FETCH_INTERVAL,
    DEFAULT_HOST,
    DEFAULT_INITIAL_FETCH_DELAY,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SIMULATION_INTERVAL,
    DEFAULT_STARTING_BALANCE,
    DEFAULT_TOKEN_TTL_DAYS,
    MAX_CALLS_PER_MINUTE,
    MAX_FETCH_INTERVAL,
    PASSWORD_HASH_ITERATIONS,
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Sensitive values use SecretStr for safe handling.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Authentication
    # =========================================================================

    jwt_secret: SecretStr = Field(
        ...,
        description="Secret used to sign session tokens",
    )

    token_ttl_days: int = Field(
        default=DEFAULT_TOKEN_TTL_DAYS,
        ge=1,
        le=90,
        description="Lifetime of issued session tokens in days",
    )

    password_hash_iterations: int = Field(
        default=PASSWORD_HASH_ITERATIONS,
        ge=1_000,
        description="PBKDF2 rounds for new password hashes",
    )

    starting_balance: float = Field(
        default=DEFAULT_STARTING_BALANCE,
        ge=0.0,
        description="Paper balance credited to new accounts",
    )

    # =========================================================================
    # Price Feed
    # =========================================================================

    price_api_url: str = Field(
        default=COINGECKO_API_URL,
        description="Base URL of the price source",
    )

    price_api_timeout_s: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT,
        gt=0.0,
        le=60.0,
        description="Timeout for a single price request in seconds",
    )

    fetch_interval_s: float = Field(
        default=DEFAULT_FETCH_INTERVAL,
        gt=0.0,
        description="Base delay between price fetch cycles",
    )

    max_fetch_interval_s: float = Field(
        default=MAX_FETCH_INTERVAL,
        gt=0.0,
        description="Upper bound for the backed-off fetch delay",
    )

    cache_duration_s: float = Field(
        default=DEFAULT_CACHE_DURATION,
        ge=0.0,
        description="Age below which cached prices are served without a fetch",
    )

    max_calls_per_minute: int = Field(
        default=MAX_CALLS_PER_MINUTE,
        ge=1,
        le=500,
        description="Upstream call budget per rolling minute",
    )

    backoff_max_exponent: int = Field(
        default=BACKOFF_MAX_EXPONENT,
        ge=0,
        le=10,
        description="Cap on the doubling exponent applied after rate limits",
    )

    initial_fetch_delay_s: float = Field(
        default=DEFAULT_INITIAL_FETCH_DELAY,
        ge=0.0,
        description="Delay before the first fetch after startup",
    )

    # =========================================================================
    # Simulation
    # =========================================================================

    simulation_interval_s: float = Field(
        default=DEFAULT_SIMULATION_INTERVAL,
        gt=0.0,
        description="Delay between position simulation ticks",
    )

    # =========================================================================
    # Server
    # =========================================================================

    host: str = Field(default=DEFAULT_HOST)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)

    cors_origins: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
        description="Origins allowed to call the API",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional file that receives all log records",
    )

    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for improved async performance",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("jwt_secret", mode="after")
    @classmethod
    def validate_secret(cls, v: SecretStr) -> SecretStr:
        """Ensure the signing secret is not empty."""
        if not v.get_secret_value():
            raise ValueError("JWT secret cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_intervals(self) -> "Settings":
        """The backoff ceiling must not sit below the base interval."""
        if self.max_fetch_interval_s < self.fetch_interval_s:
            raise ValueError("max_fetch_interval_s must be >= fetch_interval_s")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()  # type: ignore[call-arg, unused-ignore]
