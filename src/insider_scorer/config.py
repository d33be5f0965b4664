"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
insider scorer, loading and validating environment variables at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


def _validate_http_url(v: str) -> str:
    if not v.startswith(("http://", "https://")):
        raise ValueError("API URL must be an HTTP(S) endpoint")
    return v.rstrip("/")


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///./insider_scorer.db",
        alias="DATABASE_URL",
        description="PostgreSQL or SQLite connection string",
    )
    echo: bool = Field(
        default=False,
        alias="DATABASE_ECHO",
        description="Echo SQL statements for debugging",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(
            ("postgresql://", "postgresql+asyncpg://", "sqlite://", "sqlite+aiosqlite://")
        ):
            raise ValueError("DATABASE_URL must be a PostgreSQL or SQLite connection string")
        return v


class PolymarketSettings(BaseSettings):
    """Polymarket API settings."""

    model_config = SettingsConfigDict(env_prefix="POLYMARKET_", extra="ignore")

    data_api_url: str = Field(
        default="https://data-api.polymarket.com",
        alias="POLYMARKET_DATA_API_URL",
        description="Data API (trades, positions, activity)",
    )
    gamma_api_url: str = Field(
        default="https://gamma-api.polymarket.com",
        alias="POLYMARKET_GAMMA_API_URL",
        description="Gamma API (market metadata)",
    )
    requests_per_second: float = Field(
        default=5.0,
        alias="POLYMARKET_REQUESTS_PER_SECOND",
        gt=0,
        description="Token bucket refill rate",
    )
    burst: int = Field(
        default=10,
        alias="POLYMARKET_BURST",
        ge=1,
        description="Token bucket capacity",
    )

    @field_validator("data_api_url", "gamma_api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _validate_http_url(v)


class KalshiSettings(BaseSettings):
    """Kalshi trade API settings."""

    model_config = SettingsConfigDict(env_prefix="KALSHI_", extra="ignore")

    api_url: str = Field(
        default="https://api.elections.kalshi.com/trade-api/v2",
        alias="KALSHI_API_URL",
        description="Kalshi trade API base URL",
    )
    api_key_id: str | None = Field(
        default=None,
        alias="KALSHI_API_KEY_ID",
        description="API key id (required for portfolio endpoints)",
    )
    account_id: str | None = Field(
        default=None,
        alias="KALSHI_ACCOUNT_ID",
        description="Identifier of the account that owns the API key (the only account Kalshi lets us score)",
    )
    private_key: SecretStr | None = Field(
        default=None,
        alias="KALSHI_API_PRIVATE_KEY",
        description="PEM-encoded RSA private key used to sign requests",
    )
    private_key_path: Path | None = Field(
        default=None,
        alias="KALSHI_API_PRIVATE_KEY_PATH",
        description="Path to the PEM private key (alternative to KALSHI_API_PRIVATE_KEY)",
    )
    requests_per_second: float = Field(
        default=5.0,
        alias="KALSHI_REQUESTS_PER_SECOND",
        gt=0,
        description="Token bucket refill rate",
    )
    burst: int = Field(
        default=10,
        alias="KALSHI_BURST",
        ge=1,
        description="Token bucket capacity",
    )

    @field_validator("api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _validate_http_url(v)

    @property
    def configured(self) -> bool:
        """Check if signed (portfolio) requests are possible."""
        return self.api_key_id is not None and (
            self.private_key is not None or self.private_key_path is not None
        )

    def load_private_key_pem(self) -> str | None:
        if self.private_key is not None:
            # .env files usually carry the PEM with escaped newlines
            return self.private_key.get_secret_value().replace("\\n", "\n")
        if self.private_key_path is not None:
            return self.private_key_path.read_text(encoding="utf-8")
        return None


class ScoringSettings(BaseSettings):
    """Scoring pass and scan settings."""

    model_config = SettingsConfigDict(env_prefix="SCORING_", extra="ignore")

    market_cache_ttl_seconds: int = Field(
        default=3600,
        alias="SCORING_MARKET_CACHE_TTL_SECONDS",
        ge=0,
        description="Market metadata time-to-live",
    )
    market_fetch_batch_size: int = Field(
        default=5,
        alias="SCORING_MARKET_FETCH_BATCH_SIZE",
        ge=1,
        description="Concurrent market lookups per batch",
    )
    rescore_ttl_seconds: int = Field(
        default=2 * 60 * 60,
        alias="SCORING_RESCORE_TTL_SECONDS",
        ge=0,
        description="Scan skips accounts scored more recently than this",
    )
    max_accounts_per_scan: int = Field(
        default=10,
        alias="SCORING_MAX_ACCOUNTS_PER_SCAN",
        ge=1,
        description="Accounts scored per scan run",
    )
    discovery_limit: int = Field(
        default=500,
        alias="SCORING_DISCOVERY_LIMIT",
        ge=1,
        description="Recent trades inspected when discovering accounts",
    )
    trade_limit: int = Field(
        default=300,
        alias="SCORING_TRADE_LIMIT",
        ge=1,
        description="Trades fetched per account",
    )
    activity_limit: int = Field(
        default=100,
        alias="SCORING_ACTIVITY_LIMIT",
        ge=1,
        description="Activities fetched per account",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from insider_scorer.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.scoring.market_cache_ttl_seconds)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    polymarket: PolymarketSettings = Field(
        default_factory=lambda: PolymarketSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    kalshi: KalshiSettings = Field(
        default_factory=lambda: KalshiSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    scoring: ScoringSettings = Field(
        default_factory=lambda: ScoringSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "polymarket": {
                "data_api_url": self.polymarket.data_api_url,
                "gamma_api_url": self.polymarket.gamma_api_url,
                "requests_per_second": str(self.polymarket.requests_per_second),
            },
            "kalshi": {
                "api_url": self.kalshi.api_url,
                "api_key_id": self.kalshi.api_key_id or "(not set)",
                "account_id": self.kalshi.account_id or "(not set)",
                "private_key": "(set)" if self.kalshi.configured else "(not set)",
            },
            "scoring": {
                "market_cache_ttl_seconds": str(self.scoring.market_cache_ttl_seconds),
                "rescore_ttl_seconds": str(self.scoring.rescore_ttl_seconds),
                "max_accounts_per_scan": str(self.scoring.max_accounts_per_scan),
            },
            "log_level": self.log_level,
        }

    def validate_requirements(self, *, venue: Literal["polymarket", "kalshi"]) -> None:
        """Refuse to run a venue that is not fully configured."""
        if venue == "kalshi" and not self.kalshi.configured:
            raise ValueError(
                "KALSHI_API_KEY_ID and KALSHI_API_PRIVATE_KEY (or KALSHI_API_PRIVATE_KEY_PATH) "
                "are required for Kalshi scoring"
            )
        if venue == "kalshi" and not self.kalshi.account_id:
            raise ValueError("KALSHI_ACCOUNT_ID is required for Kalshi scoring")

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
