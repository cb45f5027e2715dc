"""
Platform Configuration Management

Centralizes all configuration for the organization platform.
Supports multiple environments (local, dev, prod) with proper secret management.
"""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""

    LOCAL = "local"
    DEV = "dev"
    PROD = "prod"


class PlatformConfig(BaseSettings):
    """
    Platform-wide configuration settings.

    Loads from environment variables with .env file support.
    All secrets should be injected via environment in production.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Field(default=Environment.LOCAL)

    # Platform Database (stores organization metadata)
    platform_mongo_db_url: str = Field(default="mongodb://localhost:27017")
    platform_mongo_db_name: str = Field(default="org_platform")
    mongo_server_selection_timeout_ms: int = Field(default=5000, ge=1)

    # Partition storage (defaults to the platform database)
    partition_db_name: Optional[str] = Field(default=None)
    partition_prefix: str = Field(default="org_")

    # Redis (cache and rate limiting are disabled when unset)
    redis_url: Optional[str] = Field(default=None)
    redis_connect_timeout_seconds: float = Field(default=5.0, gt=0)
    cache_ttl_seconds: int = Field(default=300, ge=1)  # 5 minutes

    # Security
    jwt_secret_key: str = Field(default="change-me-in-production")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expiry_hours: int = Field(default=24)

    # Password hashing cost (argon2id)
    password_hash_time_cost: int = Field(default=3, ge=1)
    password_hash_memory_cost: int = Field(default=65536, ge=8)  # 64 MB
    password_hash_parallelism: int = Field(default=4, ge=1)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: Optional[bool] = Field(default=None)

    # Rate Limiting (fixed windows per admission class)
    rate_limit_auth_window_seconds: int = Field(default=900)
    rate_limit_auth_max: int = Field(default=10)
    rate_limit_create_window_seconds: int = Field(default=3600)
    rate_limit_create_max: int = Field(default=5)
    rate_limit_read_window_seconds: int = Field(default=900)
    rate_limit_read_max: int = Field(default=200)
    rate_limit_general_window_seconds: int = Field(default=900)
    rate_limit_general_max: int = Field(default=100)

    # CORS Configuration
    allowed_origins: str = Field(default="http://localhost:3000")

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        """Ensure secret key is properly set in non-local environments."""
        env = info.data.get("environment", Environment.LOCAL)
        if env != Environment.LOCAL and v == "change-me-in-production":
            raise ValueError("jwt_secret_key must be set in non-local environments")
        return v

    @field_validator(
        "rate_limit_auth_window_seconds",
        "rate_limit_auth_max",
        "rate_limit_create_window_seconds",
        "rate_limit_create_max",
        "rate_limit_read_window_seconds",
        "rate_limit_read_max",
        "rate_limit_general_window_seconds",
        "rate_limit_general_max",
    )
    @classmethod
    def validate_rate_limit(cls, v: int) -> int:
        """Rate limit windows and thresholds must be positive."""
        if v <= 0:
            raise ValueError("rate limit windows and limits must be positive")
        return v

    def get_allowed_origins_list(self) -> list[str]:
        """Parse CORS allowed origins into a list."""
        if self.environment == Environment.LOCAL:
            return ["*"]  # Allow all in local development
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    def get_partition_db_name(self) -> str:
        """Database holding the per-organization partitions."""
        return self.partition_db_name or self.platform_mongo_db_name

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PROD

    @property
    def is_local(self) -> bool:
        """Check if running in local development environment."""
        return self.environment == Environment.LOCAL


@lru_cache()
def get_config() -> PlatformConfig:
    """
    Get cached platform configuration.

    Uses lru_cache to ensure config is loaded only once.
    """
    return PlatformConfig()
