"""
Centralized configuration using Pydantic BaseSettings.
All environment variables are loaded here - no hardcoded values.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Video Feed Recommender"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Telemetry
    ENABLE_OTEL: bool = False  # Default to False to prevent gRPC errors in dev
    ENABLE_PROMETHEUS: bool = True

    # Redis (in-memory cache is used when unset)
    REDIS_URL: Optional[str] = None

    # Timeouts (milliseconds)
    RECALL_TIMEOUT_MS: int = 300
    FEATURE_TIMEOUT_MS: int = 100
    CACHE_TIMEOUT_MS: int = 50

    # Circuit Breaker (cache)
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SEC: int = 30

    # Cache TTLs (seconds)
    USER_FEATURE_TTL_SEC: int = 3600  # 1 hour
    VIDEO_FEATURE_TTL_SEC: int = 1800  # 30 minutes
    HOT_VIDEOS_TTL_SEC: int = 3600  # 1 hour
    WATCHED_SET_TTL_SEC: int = 7 * 24 * 3600  # 7 days
    RECOMMENDED_SET_TTL_SEC: int = 24 * 3600  # 24 hours

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100
    RECALL_MULTIPLIER: int = 10

    # Filtering
    MIN_QUALITY_SCORE: float = 30.0
    MIN_DURATION_SEC: int = 3
    MAX_DURATION_SEC: int = 3600
    FILTER_CATEGORY_CAP: int = 2

    # Ranking
    APPLY_RANK_DIVERSITY: bool = False
    RANK_DIVERSITY_RATIO: float = 0.3

    # Interest update queue
    INTEREST_QUEUE_SIZE: int = 1000
    INTEREST_WORKERS: int = 2
    INTEREST_MAX_RETRIES: int = 3
    INTEREST_RETRY_BACKOFF_SEC: float = 0.2

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance - singleton pattern."""
    return Settings()
