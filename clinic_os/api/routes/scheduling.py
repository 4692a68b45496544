"""Scheduling optimization endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from clinic_os.api.dependencies import get_engine
from clinic_os.scheduling import (
    AppointmentType,
    DateRange,
    ProviderCapacityProfile,
    RiskTolerance,
    ScheduleInput,
    SchedulingConstraints,
    SchedulingEngine,
    SchedulingOptimization,
    SuggestionInput,
    TimeSlot,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling")


# ---------------------------------------------------------------------------
# Request/response schemas
# ---------------------------------------------------------------------------

class SuggestionResponse(BaseModel):
    provider_id: str
    patient_id: str
    suggestions: list[TimeSlot] = Field(default_factory=list)


class CapacityRequest(BaseModel):
    """Capacity planning parameters for one provider."""

    date_range: DateRange
    target_utilization: Optional[float] = None
    risk_tolerance: str = RiskTolerance.MEDIUM.value
    constraints: Optional[SchedulingConstraints] = None
    appointment_type: Optional[AppointmentType] = Field(
        default=None, description="Size capacity by this type's average duration"
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/optimize", response_model=SchedulingOptimization)
def optimize_schedule(
    schedule_input: ScheduleInput,
    engine: SchedulingEngine = Depends(get_engine),
) -> SchedulingOptimization:
    """Assign a batch of appointment requests for one provider.

    Requests that cannot be placed come back in ``unscheduled``; only invalid
    input (422) or an internal failure (500) produce an error response.
    """
    return engine.optimize_schedule(schedule_input)


@router.post("/suggestions", response_model=SuggestionResponse)
def suggest_time_slots(
    body: SuggestionInput,
    engine: SchedulingEngine = Depends(get_engine),
) -> SuggestionResponse:
    """Return the best-scoring start times for a single request."""
    suggestions = engine.suggest_optimal_time_slots(
        body.request,
        body.provider_id,
        body.date_range,
        body.constraints,
        max_suggestions=body.max_suggestions,
        preferences=body.preferences,
    )
    return SuggestionResponse(
        provider_id=body.provider_id,
        patient_id=body.request.patient_id,
        suggestions=suggestions,
    )


@router.post("/providers/{provider_id}/capacity", response_model=ProviderCapacityProfile)
def plan_provider_capacity(
    provider_id: str,
    body: CapacityRequest,
    engine: SchedulingEngine = Depends(get_engine),
) -> ProviderCapacityProfile:
    """Recommend capacity and overbooking for a provider over a date range."""
    logger.info(f"Capacity plan requested for provider {provider_id} ({body.risk_tolerance} tolerance)")
    return engine.optimize_provider_schedule(
        provider_id,
        body.date_range,
        target_utilization=body.target_utilization,
        risk_tolerance=body.risk_tolerance,
        constraints=body.constraints,
        appointment_type=body.appointment_type,
    )
