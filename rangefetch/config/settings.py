"""Configuration settings for rangefetch."""

import hashlib
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

from rangefetch.utils.constants import (
    DEFAULT_CHUNK_SIZE, DEFAULT_CONCURRENCY_LIMIT, DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_ENV_PREFIX, DEFAULT_FETCH_ATTEMPTS, DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF, DEFAULT_MAX_RETRIES_PER_CHUNK, MAX_CONCURRENCY_LIMIT,
    MIN_CONCURRENCY_LIMIT, CHECKPOINT_SAVE_INTERVAL
)


def validate_digest_algorithm(value: str) -> str:
    """Normalise a hashlib algorithm name, rejecting unknown ones."""
    name = value.lower()
    if name not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported digest algorithm: {value}")
    return name


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix=DEFAULT_ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Object store
    endpoint_url: Optional[str] = Field(None, description="Base URL of the object store")
    request_timeout: float = Field(60.0, gt=0, le=600, description="Per-attempt request timeout in seconds")

    # Transfer Settings
    chunk_size: int = Field(DEFAULT_CHUNK_SIZE, ge=1, description="Range size in bytes")
    concurrency_limit: int = Field(
        DEFAULT_CONCURRENCY_LIMIT,
        ge=MIN_CONCURRENCY_LIMIT,
        le=MAX_CONCURRENCY_LIMIT,
        description="Number of ranges fetched concurrently"
    )

    # Retry Settings
    max_retries_per_chunk: int = Field(
        DEFAULT_MAX_RETRIES_PER_CHUNK, ge=1, le=50,
        description="Failed fetches tolerated per range before the transfer fails"
    )
    fetch_attempts: int = Field(
        DEFAULT_FETCH_ATTEMPTS, ge=1, le=50,
        description="Attempts per fetch before a range is requeued"
    )
    initial_backoff_seconds: float = Field(DEFAULT_INITIAL_BACKOFF, ge=0.0, description="Initial backoff time in seconds")
    max_backoff_seconds: float = Field(DEFAULT_MAX_BACKOFF, gt=0.0, description="Maximum backoff time in seconds")

    # Verification
    digest_algorithm: str = Field(DEFAULT_DIGEST_ALGORITHM, description="hashlib algorithm used for verification")

    # Resume state
    persist_resume_state: bool = Field(True, description="Write resume state next to the destination")
    checkpoint_save_interval: float = Field(
        CHECKPOINT_SAVE_INTERVAL, ge=0.0, description="Minimum seconds between resume state saves"
    )

    # Logging
    log_level: str = Field("WARNING", description="Logging level")
    log_file: Optional[str] = Field(None, description="Log file path")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("digest_algorithm")
    @classmethod
    def validate_digest(cls, v: str) -> str:
        return validate_digest_algorithm(v)

    @model_validator(mode="after")
    def validate_backoff_range(self) -> "Settings":
        """Ensure max backoff is not below initial backoff."""
        if self.max_backoff_seconds < self.initial_backoff_seconds:
            raise ValueError("max_backoff_seconds must not be less than initial_backoff_seconds")
        return self


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading it if necessary."""
    global _settings
    if _settings is None:
        # Load environment variables from .env file
        env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment variables."""
    global _settings
    _settings = None
    return get_settings()
