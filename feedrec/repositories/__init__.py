"""Repository implementations package."""
from .memory import InMemoryRecommendationStore

__all__ = ["InMemoryRecommendationStore"]
