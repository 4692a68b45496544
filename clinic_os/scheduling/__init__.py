"""Scheduling optimization engine for ClinicOS."""

from clinic_os.scheduling.cancellation import CancellationToken
from clinic_os.scheduling.collaborators import (
    AppointmentHistoryAnalyzer,
    HistoricalAppointment,
    HistoricalDataProvider,
    PricingTable,
    ProviderHistory,
    StaticHistoricalDataProvider,
    StaticPricingTable,
)
from clinic_os.scheduling.engine import SchedulingEngine
from clinic_os.scheduling.errors import (
    ComputationError,
    Issue,
    IssueKind,
    OptimizationCancelled,
    SchedulingError,
    ValidationError,
)
from clinic_os.scheduling.models import (
    AppointmentRequest,
    AppointmentType,
    DateRange,
    OptimizedAppointment,
    Priority,
    ProviderCapacityProfile,
    RiskTolerance,
    ScheduleInput,
    SchedulingConstraints,
    SchedulingOptimization,
    SchedulingPreferences,
    SuggestionInput,
    TimeSlot,
    UnscheduledRequest,
    UtilizationForecast,
    WorkingHours,
)

__all__ = [
    "AppointmentHistoryAnalyzer",
    "AppointmentRequest",
    "AppointmentType",
    "CancellationToken",
    "ComputationError",
    "DateRange",
    "HistoricalAppointment",
    "HistoricalDataProvider",
    "Issue",
    "IssueKind",
    "OptimizationCancelled",
    "OptimizedAppointment",
    "PricingTable",
    "Priority",
    "ProviderCapacityProfile",
    "ProviderHistory",
    "RiskTolerance",
    "ScheduleInput",
    "SchedulingConstraints",
    "SchedulingEngine",
    "SchedulingError",
    "SchedulingOptimization",
    "SchedulingPreferences",
    "StaticHistoricalDataProvider",
    "StaticPricingTable",
    "SuggestionInput",
    "TimeSlot",
    "UnscheduledRequest",
    "UtilizationForecast",
    "ValidationError",
    "WorkingHours",
]
