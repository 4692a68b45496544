"""Health check endpoints."""

from fastapi import APIRouter, Request

from clinic_os import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": "clinic-os",
        "version": __version__,
    }


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness check - verifies the engine was built at startup."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return {"status": "not_ready", "errors": ["Scheduling engine not initialized"]}

    return {
        "status": "ready",
        "slot_granularity_minutes": engine.settings.slot_granularity_minutes,
        "observability": engine.observability.enabled,
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness check - basic process health."""
    return {"status": "alive"}
