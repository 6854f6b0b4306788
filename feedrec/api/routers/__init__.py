"""API routers package."""
from .behavior import router as behavior_router
from .feed import router as feed_router
from .health import router as health_router

__all__ = ["behavior_router", "feed_router", "health_router"]
