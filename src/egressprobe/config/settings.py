"""
Application settings using Pydantic.

Provides environment-based configuration loading with EGRESSPROBE_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings

DEFAULT_STACK_PREFIX = "egress-tester-"


class Settings(BaseSettings):
    """Application settings."""

    # AWS
    aws_region: str = "us-east-1"
    aws_profile: str | None = None

    # Stack naming
    stack_prefix: str = DEFAULT_STACK_PREFIX
    stack_timeout_minutes: int = 15

    # Label attached to every activity log line, usually the account name
    context: str = "Default"

    # Grace periods around the first invocation
    initial_sleep_seconds: int = 40
    post_event_sleep_seconds: int = 20

    # Pass/fail policy
    max_elapsed_seconds: float = 6.0

    # Invocation retry policy
    transient_error_signature: str = "Service"
    invoke_max_retries: int = 5
    invoke_retry_delay_seconds: float = 10.0

    # Readiness polling
    stack_exists_delay_seconds: float = 5.0
    stack_exists_max_attempts: int = 5
    stack_create_delay_seconds: float = 10.0
    stack_create_max_attempts: int = 90

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "EGRESSPROBE_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
