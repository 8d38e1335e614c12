"""
Runtime Configuration Settings
==============================

Centralized, type-safe configuration for the model artifact runtime.

Dependency Inversion:
- Settings can be injected/overridden (every component accepts explicit values)
- Defaults are read once from the environment

Usage:
    from tabmodel.settings import get_settings

    settings = get_settings()
    buckets = settings.text_hash_buckets
    url = settings.monitoring_url
"""

import logging
from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeSettings(BaseSettings):
    """
    Runtime configuration.

    All settings can be overridden via environment variables
    prefixed with TABMODEL_ (e.g. TABMODEL_MONITORING_URL).
    """

    # Monitoring transport
    monitoring_url: Optional[str] = None
    monitoring_timeout: float = 5.0
    monitoring_max_retries: int = 3
    monitoring_batch_size: int = 100

    # Model cache
    model_cache_maxsize: int = 10
    model_cache_ttl: int = 3600

    # Feature encoding
    text_hash_buckets: int = 1024

    # Observability
    prometheus_metrics: bool = True
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TABMODEL_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> RuntimeSettings:
    """
    Get cached runtime settings instance.

    Returns:
        RuntimeSettings singleton
    """
    return RuntimeSettings()


def configure_logging(level: Optional[str] = None):
    """Install the process-wide log format used by the runtime."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
