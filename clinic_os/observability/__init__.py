"""Observability module for scheduling run telemetry."""

from clinic_os.observability.events import (
    CapacityPlanEvent,
    EventType,
    ObservabilityEvent,
    OptimizationRunEvent,
    SlotSuggestionEvent,
)
from clinic_os.observability.logger import ObservabilityLogger

__all__ = [
    "CapacityPlanEvent",
    "EventType",
    "ObservabilityEvent",
    "ObservabilityLogger",
    "OptimizationRunEvent",
    "SlotSuggestionEvent",
]
