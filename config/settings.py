"""Configuration management using pydantic-settings."""
from pydantic import field_validator
from pydantic_settings import BaseSettings

from datalayer.cache.core import CacheConfig, CacheStrategy
from datalayer.resilience.retry import RetryOptions


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Logging
    log_level: str = "INFO"

    # Request cache defaults
    cache_default_ttl_seconds: float = 300.0
    cache_default_strategy: str = CacheStrategy.STALE_WHILE_REVALIDATE.value

    # TTL store
    ttl_store_max_size: int = 100
    ttl_store_default_ttl_seconds: float = 300.0

    # Retry with backoff
    retry_max_retries: int = 3
    retry_initial_delay: float = 0.1
    retry_max_delay: float = 2.0
    retry_backoff_multiplier: float = 2.0

    @field_validator("cache_default_strategy")
    @classmethod
    def _known_strategy(cls, value: str) -> str:
        return CacheStrategy.parse(value).value

    def cache_config(self) -> CacheConfig:
        return CacheConfig(
            ttl_seconds=self.cache_default_ttl_seconds,
            strategy=self.cache_default_strategy,
        )

    def retry_options(self) -> RetryOptions:
        return RetryOptions(
            max_retries=self.retry_max_retries,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            backoff_multiplier=self.retry_backoff_multiplier,
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
