"""FastAPI dependencies."""

from fastapi import HTTPException, Request

from clinic_os.scheduling import SchedulingEngine


def get_engine(request: Request) -> SchedulingEngine:
    """Return the engine created at application startup."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Scheduling engine not initialized")
    return engine
