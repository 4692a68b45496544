"""Structured observability events for scheduling runs."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of observability events."""

    OPTIMIZATION_START = "optimization_start"
    OPTIMIZATION_SUCCESS = "optimization_success"
    OPTIMIZATION_ERROR = "optimization_error"
    CAPACITY_PLAN_START = "capacity_plan_start"
    CAPACITY_PLAN_SUCCESS = "capacity_plan_success"
    CAPACITY_PLAN_ERROR = "capacity_plan_error"
    SLOT_SUGGESTION = "slot_suggestion"


class ObservabilityEvent(BaseModel):
    """Base class for all observability events."""

    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class OptimizationRunEvent(ObservabilityEvent):
    """Event for a schedule optimization run."""

    provider_id: str
    request_count: int = 0

    # Lifecycle path, e.g. idle -> validating -> ... -> completed
    states: list[str] = Field(default_factory=list)

    # Results
    scheduled_count: int = 0
    unscheduled_count: int = 0
    conflicts_resolved: int = 0
    utilization_rate: Optional[float] = None
    expected_no_shows: Optional[float] = None
    degraded_data: bool = False

    # Error fields (populated on error)
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    # Full input, kept only for failed runs so they can be reproduced
    input_snapshot: Optional[dict[str, Any]] = None


class CapacityPlanEvent(ObservabilityEvent):
    """Event for a provider capacity planning run."""

    provider_id: str
    target_utilization: float
    risk_tolerance: str
    states: list[str] = Field(default_factory=list)

    recommended_capacity: Optional[int] = None
    overbooking_enabled: bool = False
    high_risk_slots: list[str] = Field(default_factory=list)
    degraded_data: bool = False

    error_type: Optional[str] = None
    error_message: Optional[str] = None


class SlotSuggestionEvent(ObservabilityEvent):
    """Event for a single-request slot suggestion."""

    event_type: EventType = EventType.SLOT_SUGGESTION
    provider_id: str
    patient_id: str
    max_suggestions: int = 5
    suggestions_count: int = 0
    top_preference: Optional[float] = None
