"""Pytest configuration and fixtures."""

from datetime import date, datetime, time

import pytest

from clinic_os.config import Settings
from clinic_os.scheduling import (
    AppointmentRequest,
    DateRange,
    Priority,
    ProviderHistory,
    ScheduleInput,
    SchedulingConstraints,
    SchedulingEngine,
    SchedulingPreferences,
    StaticHistoricalDataProvider,
    TimeSlot,
    WorkingHours,
)

MONDAY = date(2026, 3, 2)


# ---------------------------------------------------------------------------
# Settings and engine
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    """Settings with telemetry off so tests never touch the filesystem."""
    return Settings(observability_enabled=False)


@pytest.fixture
def engine(settings):
    return SchedulingEngine(settings=settings)


@pytest.fixture
def history_provider():
    """History for provider dr-hist with a 12% overall no-show rate."""
    history = ProviderHistory(
        no_show_rate_by_hour={8: 0.20, 9: 0.10, 10: 0.08, 11: 0.10, 14: 0.12, 15: 0.12},
        overall_no_show_rate=0.12,
        average_duration_minutes=30.0,
        peak_hours=[9, 10, 14],
    )
    return StaticHistoricalDataProvider({"dr-hist": history})


# ---------------------------------------------------------------------------
# Calendar building blocks
# ---------------------------------------------------------------------------

@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def single_day():
    return DateRange(start_date=MONDAY, end_date=MONDAY)


@pytest.fixture
def lunch_constraints():
    """08:00-17:00 with a daily 12:00-13:00 break."""
    return SchedulingConstraints(
        working_hours=WorkingHours(start=time(8, 0), end=time(17, 0)),
        break_times=[
            TimeSlot(
                start_time=datetime(2026, 3, 2, 12, 0),
                end_time=datetime(2026, 3, 2, 13, 0),
            )
        ],
    )


@pytest.fixture
def three_requests():
    """Urgent 09:00, high 14:00 and low 10:00 requests with distinct windows."""
    return [
        AppointmentRequest(
            patient_id="pat-urgent",
            duration=30,
            priority=Priority.URGENT,
            preferred_times=[
                TimeSlot(
                    start_time=datetime(2026, 3, 2, 9, 0),
                    end_time=datetime(2026, 3, 2, 9, 30),
                    preference=9,
                )
            ],
        ),
        AppointmentRequest(
            patient_id="pat-high",
            duration=45,
            priority=Priority.HIGH,
            preferred_times=[
                TimeSlot(
                    start_time=datetime(2026, 3, 2, 14, 0),
                    end_time=datetime(2026, 3, 2, 14, 45),
                    preference=9,
                )
            ],
        ),
        AppointmentRequest(
            patient_id="pat-low",
            duration=20,
            priority=Priority.LOW,
            preferred_times=[
                TimeSlot(
                    start_time=datetime(2026, 3, 2, 10, 0),
                    end_time=datetime(2026, 3, 2, 10, 20),
                    preference=6,
                )
            ],
        ),
    ]


@pytest.fixture
def three_request_input(single_day, lunch_constraints, three_requests):
    return ScheduleInput(
        provider_id="dr-smith",
        date_range=single_day,
        appointment_requests=three_requests,
        constraints=lunch_constraints,
        preferences=SchedulingPreferences(overbooking_allowed=False),
    )


@pytest.fixture
def contested_input(single_day, lunch_constraints):
    """Two requests that both only accept 09:00-09:30."""
    window = TimeSlot(
        start_time=datetime(2026, 3, 2, 9, 0),
        end_time=datetime(2026, 3, 2, 9, 30),
        preference=8,
    )
    return ScheduleInput(
        provider_id="dr-smith",
        date_range=single_day,
        appointment_requests=[
            AppointmentRequest(patient_id="pat-a", duration=30, preferred_times=[window]),
            AppointmentRequest(patient_id="pat-b", duration=30, preferred_times=[window]),
        ],
        constraints=lunch_constraints,
        preferences=SchedulingPreferences(overbooking_allowed=False),
    )
