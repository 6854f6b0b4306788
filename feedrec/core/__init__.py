"""Core infrastructure components."""
from .cache import CacheInterface, GuardedCache, InMemoryCache
from .circuit_breaker import CircuitBreaker, CircuitState
from .exceptions import (
    AppException,
    CacheError,
    CircuitBreakerOpenError,
    NotFoundError,
    RecommendationError,
    ServiceUnavailableError,
    StoreUnavailableError,
    ValidationError,
)

__all__ = [
    "AppException",
    "CacheError",
    "CacheInterface",
    "CircuitBreaker",
    "CircuitBreakerOpenError",
    "CircuitState",
    "GuardedCache",
    "InMemoryCache",
    "NotFoundError",
    "RecommendationError",
    "ServiceUnavailableError",
    "StoreUnavailableError",
    "ValidationError",
]
