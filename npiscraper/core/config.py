"""Centralized configuration management using Pydantic Settings."""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class BackoffStrategy(str, Enum):
    """Backoff strategies for request retries."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class ProxyRotationStrategy(str, Enum):
    """Proxy rotation strategies."""

    ROUND_ROBIN = "round_robin"
    RANDOM = "random"
    LEAST_USED = "least_used"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="npiscraper", description="Application name")
    app_env: Environment = Field(default=Environment.DEVELOPMENT, description="Environment")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_to_file: bool = Field(default=True, description="Write rotating log files")

    # Directory
    base_url: str = Field(default="https://opennpi.com", description="Directory origin")
    start_url: str = Field(
        default="https://opennpi.com/provider", description="Default listing page"
    )

    # Scraping
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    max_pages: int = Field(default=50, ge=1, description="Page budget per run")
    max_consecutive_empty_pages: int = Field(
        default=3, ge=1, description="Stop after this many empty pages in a row"
    )
    scraping_delay_min: float = Field(
        default=1.0, ge=0, description="Minimum delay between pages"
    )
    scraping_delay_max: float = Field(
        default=3.0, ge=0, description="Maximum delay between pages"
    )
    dedupe_rows: bool = Field(default=True, description="Drop identical rows across pages")
    anti_bot_statuses: list[int] = Field(
        default_factory=lambda: [403, 429], description="Statuses treated as blocks"
    )
    degenerate_url_patterns: list[str] = Field(
        default_factory=list, description="Extra regexes for self-referential next links"
    )

    # Retry
    retry_max_attempts: int = Field(default=3, ge=1, description="Attempts per request")
    retry_backoff: BackoffStrategy = Field(
        default=BackoffStrategy.EXPONENTIAL, description="Backoff strategy"
    )
    retry_jitter: bool = Field(default=True, description="Randomize retry delays")
    retry_initial_delay: float = Field(default=1.0, ge=0, description="First retry delay")
    retry_max_delay: float = Field(default=30.0, ge=0, description="Retry delay cap")

    # Fetch inputs
    user_agents: list[str] = Field(
        default_factory=lambda: [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.4 Safari/605.1.15",
        ],
        description="User-Agent values picked per request",
    )

    # Proxy
    proxy_enabled: bool = Field(default=False, description="Enable proxy rotation")
    proxy_rotation_strategy: ProxyRotationStrategy = Field(
        default=ProxyRotationStrategy.ROUND_ROBIN, description="Proxy rotation strategy"
    )
    proxies: list[str] = Field(default_factory=list, description="Inline proxy list")
    proxy_list_file: str = Field(
        default="./config/proxies.txt", description="Path to proxy list file"
    )

    @field_validator("scraping_delay_max")
    @classmethod
    def validate_delay_max(cls, v: float, info) -> float:
        """Ensure max delay is greater than min delay."""
        min_delay = info.data.get("scraping_delay_min", 1.0)
        if v < min_delay:
            raise ValueError("scraping_delay_max must be >= scraping_delay_min")
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Store the origin without a trailing slash."""
        return v.rstrip("/")

    @property
    def data_dir(self) -> Path:
        """Get data directory path."""
        path = Path("./data")
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def logs_dir(self) -> Path:
        """Get logs directory path."""
        path = Path("./logs")
        path.mkdir(parents=True, exist_ok=True)
        return path


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
