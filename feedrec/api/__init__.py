"""API package - FastAPI routes and dependencies."""
from .dependencies import get_recommendation_engine
from .routers import behavior_router, feed_router, health_router

__all__ = ["behavior_router", "feed_router", "get_recommendation_engine", "health_router"]
