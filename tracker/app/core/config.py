from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables verbose extraction logging
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Cache backend settings
    cache_backend: Literal["memory", "redis", "database"] = "database"
    redis_url: str = "redis://localhost:6379/0"
    cache_database_url: str = "sqlite+aiosqlite:///attendance_cache.db"

    # Attendance changes often, so entries go stale after an hour
    attendance_cache_ttl_seconds: int = 3600
    feed_min_check_interval_seconds: int = 300

    # Compliance projection policy
    compliance_target_percentage: float = 75.0
    medical_leave_floor_percentage: float = 65.0
    classes_to_miss_min: int = 1
    classes_to_miss_max: int = 100
    classes_to_miss_default: int = 1

    # Portal settings
    portal_domain: str = "chalkpad.in"
    portal_common_page_id: str = "28"
    portal_max_retries: int = 2

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0  # Time to establish connection
    httpx_read_timeout: float = 30.0  # Time to read response data
    httpx_write_timeout: float = 10.0  # Time to send request data
    httpx_pool_timeout: float = 5.0  # Time to acquire connection from pool
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 20
    httpx_max_keepalive_connections: int = 5

    @field_validator(
        "attendance_cache_ttl_seconds",
        "feed_min_check_interval_seconds",
        "classes_to_miss_min",
        "httpx_max_connections",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate integer settings are at least 1."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("portal_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("portal_max_retries must not be negative")
        return v

    @field_validator(
        "httpx_connect_timeout", "httpx_read_timeout", "httpx_write_timeout"
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @model_validator(mode="after")
    def validate_projection_policy(self) -> "Settings":
        """Keep the threshold and clamp relationships intact."""
        if not (
            0
            < self.medical_leave_floor_percentage
            < self.compliance_target_percentage
            <= 100
        ):
            raise ValueError(
                "expected 0 < medical_leave_floor_percentage "
                "< compliance_target_percentage <= 100"
            )
        if not (
            self.classes_to_miss_min
            <= self.classes_to_miss_default
            <= self.classes_to_miss_max
        ):
            raise ValueError(
                "expected classes_to_miss_min <= classes_to_miss_default "
                "<= classes_to_miss_max"
            )
        return self

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
