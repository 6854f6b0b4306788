"""
Health check router for observability.
"""
from fastapi import APIRouter

from feedrec.api.dependencies import get_cache_circuit_breaker, get_interest_queue

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health Check")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/ready", summary="Readiness Check")
async def readiness_check() -> dict:
    """
    Readiness check for Kubernetes.
    Returns cache circuit breaker state and interest queue backlog.
    """
    circuit_breaker = get_cache_circuit_breaker()
    interest_queue = get_interest_queue()

    return {
        "status": "ready",
        "circuit_breaker": {
            "name": circuit_breaker.name,
            "state": circuit_breaker.state.value,
        },
        "interest_queue": {
            "running": interest_queue.is_running,
            "pending": interest_queue.pending,
            "dead_letters": len(interest_queue.dead_letters),
        },
    }
