"""
Dependency injection container.
Creates and wires all application components.
Uses FastAPI's dependency injection system.
"""
from functools import lru_cache

from feedrec.config import get_settings
from feedrec.core.cache import CacheInterface, GuardedCache, InMemoryCache
from feedrec.core.circuit_breaker import CircuitBreaker
from feedrec.core.redis_cache import RedisCache
from feedrec.repositories.memory import InMemoryRecommendationStore
from feedrec.services.engine import RecommendationEngine
from feedrec.services.features import FeatureEngineer
from feedrec.services.filtering import VideoFilter
from feedrec.services.interest_queue import InterestUpdateQueue
from feedrec.services.ranking import Ranker
from feedrec.services.recall import Recaller


# =============================================================================
# Singleton Instances (Application Lifetime)
# =============================================================================


@lru_cache()
def get_store() -> InMemoryRecommendationStore:
    """Get singleton store, seeded with demo data."""
    return InMemoryRecommendationStore(seed=True)


@lru_cache()
def get_cache_circuit_breaker() -> CircuitBreaker:
    """Get singleton circuit breaker for the cache."""
    settings = get_settings()
    return CircuitBreaker(
        name="cache",
        failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
        recovery_timeout_sec=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SEC,
    )


@lru_cache()
def get_cache() -> CacheInterface:
    """
    Get singleton cache.
    Redis when REDIS_URL is set, in-memory otherwise; always behind the breaker.
    """
    settings = get_settings()
    if settings.REDIS_URL:
        inner: CacheInterface = RedisCache(settings.REDIS_URL)
    else:
        inner = InMemoryCache()
    return GuardedCache(
        inner,
        breaker=get_cache_circuit_breaker(),
        timeout_ms=settings.CACHE_TIMEOUT_MS,
    )


@lru_cache()
def get_interest_queue() -> InterestUpdateQueue:
    """Get singleton interest update queue (started in the app lifespan)."""
    settings = get_settings()
    return InterestUpdateQueue(
        max_size=settings.INTEREST_QUEUE_SIZE,
        workers=settings.INTEREST_WORKERS,
        max_retries=settings.INTEREST_MAX_RETRIES,
        backoff_seconds=settings.INTEREST_RETRY_BACKOFF_SEC,
    )


@lru_cache()
def get_recaller() -> Recaller:
    settings = get_settings()
    return Recaller(
        store=get_store(),
        cache=get_cache(),
        timeout_ms=settings.RECALL_TIMEOUT_MS,
        hot_ttl_seconds=settings.HOT_VIDEOS_TTL_SEC,
        hot_cache_size=settings.MAX_PAGE_SIZE * settings.RECALL_MULTIPLIER // 4,
    )


@lru_cache()
def get_feature_engineer() -> FeatureEngineer:
    settings = get_settings()
    return FeatureEngineer(
        store=get_store(),
        cache=get_cache(),
        interest_queue=get_interest_queue(),
        user_ttl_seconds=settings.USER_FEATURE_TTL_SEC,
        video_ttl_seconds=settings.VIDEO_FEATURE_TTL_SEC,
        lookup_timeout_ms=settings.FEATURE_TIMEOUT_MS,
    )


@lru_cache()
def get_ranker() -> Ranker:
    """Get singleton ranker."""
    return Ranker()


@lru_cache()
def get_video_filter() -> VideoFilter:
    settings = get_settings()
    return VideoFilter(
        store=get_store(),
        cache=get_cache(),
        watched_ttl_seconds=settings.WATCHED_SET_TTL_SEC,
        recommended_ttl_seconds=settings.RECOMMENDED_SET_TTL_SEC,
        min_quality_score=settings.MIN_QUALITY_SCORE,
        min_duration=settings.MIN_DURATION_SEC,
        max_duration=settings.MAX_DURATION_SEC,
        category_cap=settings.FILTER_CATEGORY_CAP,
    )


# =============================================================================
# Request Entry Point
# =============================================================================


@lru_cache()
def get_recommendation_engine() -> RecommendationEngine:
    """
    Get recommendation engine with all dependencies wired.
    This is the main entry point for the feed and feedback endpoints.
    """
    settings = get_settings()
    return RecommendationEngine(
        store=get_store(),
        recaller=get_recaller(),
        feature_engineer=get_feature_engineer(),
        ranker=get_ranker(),
        video_filter=get_video_filter(),
        recall_multiplier=settings.RECALL_MULTIPLIER,
        apply_diversity=settings.APPLY_RANK_DIVERSITY,
        diversity_ratio=settings.RANK_DIVERSITY_RATIO,
    )


# =============================================================================
# Cleanup Functions
# =============================================================================


def clear_caches() -> None:
    """Clear all cached singleton instances (for testing)."""
    get_store.cache_clear()
    get_cache_circuit_breaker.cache_clear()
    get_cache.cache_clear()
    get_interest_queue.cache_clear()
    get_recaller.cache_clear()
    get_feature_engineer.cache_clear()
    get_ranker.cache_clear()
    get_video_filter.cache_clear()
    get_recommendation_engine.cache_clear()
