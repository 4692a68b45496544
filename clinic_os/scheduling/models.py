"""Pydantic models for the scheduling optimization engine."""

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Priority(str, Enum):
    """Clinical priority of an appointment request."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AppointmentType(str, Enum):
    """Kinds of appointment the clinic books."""

    ROUTINE = "routine"
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow-up"
    PROCEDURE = "procedure"


class RiskTolerance(str, Enum):
    """How much no-show risk a provider accepts when planning capacity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TimeSlot(BaseModel):
    """A half-open ``[start_time, end_time)`` window with a 0-10 preference."""

    start_time: datetime
    end_time: datetime
    preference: float = Field(default=5.0, ge=0.0, le=10.0)

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start_time < end and start < self.end_time


class DateRange(BaseModel):
    """Inclusive range of calendar days."""

    start_date: date
    end_date: date

    def days(self) -> list[date]:
        """Every calendar day in the range, in order."""
        if self.start_date > self.end_date:
            return []
        count = (self.end_date - self.start_date).days + 1
        return [self.start_date + timedelta(days=i) for i in range(count)]


class WorkingHours(BaseModel):
    """Time-of-day bounds of a provider's working day."""

    start: time
    end: time


class AppointmentRequest(BaseModel):
    """One patient need waiting to be placed on the calendar."""

    patient_id: str
    appointment_type: AppointmentType = AppointmentType.ROUTINE
    duration: int = Field(description="Minutes; must be positive")
    priority: Priority = Priority.MEDIUM
    preferred_times: list[TimeSlot] = Field(default_factory=list)
    no_show_risk: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class SchedulingConstraints(BaseModel):
    """Operating constraints for a provider-day.

    Break times recur on every working day by time of day; blocked times are
    one-off absolute windows.
    """

    working_hours: WorkingHours
    break_times: list[TimeSlot] = Field(default_factory=list)
    blocked_times: list[TimeSlot] = Field(default_factory=list)
    max_consecutive_appointments: int = 8
    buffer_time: int = Field(default=0, description="Minutes kept free after each booking")
    working_days: list[int] = Field(
        default_factory=lambda: [0, 1, 2, 3, 4],
        description="Weekdays open for booking (0=Mon..6=Sun)",
    )


class SchedulingPreferences(BaseModel):
    """Tuning flags for assignment and capacity planning."""

    prioritize_high_risk: bool = False
    balance_workload: bool = False
    minimize_gaps: bool = False
    consider_patient_preferences: bool = True
    overbooking_allowed: bool = False
    overbooking_percentage: float = 0.0
    strict_preferred_windows: bool = Field(
        default=True,
        description="Only book inside declared preferred windows when the patient gave any",
    )


class CandidateSlot(TimeSlot):
    """A generated slot with its remaining booking capacity."""

    capacity_remaining: int = 1
    overbookable: bool = False


class OptimizedAppointment(BaseModel):
    """A request placed on the calendar."""

    patient_id: str
    appointment_type: AppointmentType
    scheduled_time: datetime
    duration: int
    confidence: float = Field(ge=0.0, le=1.0)
    alternative_slots: list[TimeSlot] = Field(default_factory=list)
    overbooked: bool = False

    @property
    def end_time(self) -> datetime:
        return self.scheduled_time + timedelta(minutes=self.duration)


class UnscheduledRequest(BaseModel):
    """A request the engine could not place, with the reason."""

    patient_id: str
    reason: str
    conflict: bool = False


class UtilizationForecast(BaseModel):
    """Utilization scenarios reflecting no-show variance."""

    pessimistic: float = 0.0
    expected: float = 0.0
    optimistic: float = 0.0


class SchedulingOptimization(BaseModel):
    """Full result of one optimization run."""

    provider_id: str
    optimized_schedule: list[OptimizedAppointment] = Field(default_factory=list)
    unscheduled: list[UnscheduledRequest] = Field(default_factory=list)
    utilization_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    expected_no_shows: float = Field(default=0.0, ge=0.0)
    revenue_estimate: float = Field(default=0.0, ge=0.0)
    conflicts_resolved: int = Field(default=0, ge=0)
    utilization_forecast: UtilizationForecast = Field(default_factory=UtilizationForecast)
    recommendations: list[str] = Field(default_factory=list)
    explanation: str = ""


class OverbookingStrategy(BaseModel):
    enabled: bool = False
    percentage: float = 0.0
    time_slots: list[str] = Field(default_factory=list)


class RiskMitigation(BaseModel):
    high_risk_slots: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)


class ProviderCapacityProfile(BaseModel):
    """Capacity recommendation for a provider over a date range."""

    provider_id: str
    recommended_capacity: int = 0
    overbooking_strategy: OverbookingStrategy = Field(default_factory=OverbookingStrategy)
    risk_mitigation: RiskMitigation = Field(default_factory=RiskMitigation)
    utilization_forecast: UtilizationForecast = Field(default_factory=UtilizationForecast)
    warnings: list[str] = Field(default_factory=list)


class ScheduleInput(BaseModel):
    """Input snapshot for a single optimization run."""

    provider_id: str
    date_range: DateRange
    appointment_requests: list[AppointmentRequest] = Field(default_factory=list)
    constraints: SchedulingConstraints
    preferences: SchedulingPreferences = Field(default_factory=SchedulingPreferences)


class SuggestionInput(BaseModel):
    """Input for ranking open slots for a single request."""

    provider_id: str
    date_range: DateRange
    request: AppointmentRequest
    constraints: SchedulingConstraints
    preferences: Optional[SchedulingPreferences] = None
    max_suggestions: Optional[int] = Field(
        default=None, description="Defaults to the configured suggestion count"
    )
