"""Tests for the greedy assigner."""

from datetime import date, datetime, time

import pytest

from clinic_os.scheduling import (
    AppointmentRequest,
    CancellationToken,
    ComputationError,
    DateRange,
    OptimizationCancelled,
    Priority,
    SchedulingConstraints,
    SchedulingPreferences,
    TimeSlot,
    WorkingHours,
)
from clinic_os.scheduling.assigner import Assigner, Move
from clinic_os.scheduling.scoring import PreferenceScorer
from clinic_os.scheduling.slots import SlotGenerator

MONDAY = date(2026, 3, 2)


def _assigner(
    constraints: SchedulingConstraints,
    preferences: SchedulingPreferences | None = None,
    end: date = MONDAY,
    max_alternatives: int = 3,
) -> Assigner:
    preferences = preferences or SchedulingPreferences()
    generator = SlotGenerator(DateRange(start_date=MONDAY, end_date=end), constraints, preferences)
    scorer = PreferenceScorer(
        preferences,
        working_start=constraints.working_hours.start,
        buffer_time=constraints.buffer_time,
    )
    return Assigner(generator, scorer, constraints, preferences, max_alternatives=max_alternatives)


def _constraints(**overrides) -> SchedulingConstraints:
    data = {"working_hours": WorkingHours(start=time(8, 0), end=time(17, 0))}
    data.update(overrides)
    return SchedulingConstraints(**data)


def _requests(n: int, duration: int = 30) -> list[AppointmentRequest]:
    return [AppointmentRequest(patient_id=f"pat-{i}", duration=duration) for i in range(n)]


def _starts(result) -> dict[str, datetime]:
    return {a.patient_id: a.scheduled_time for a in result.appointments}


# ------------------------------------------------------------------ ordering

class TestAssignmentOrder:
    def test_higher_priority_claims_contested_slot(self):
        window = TimeSlot(start_time=datetime(2026, 3, 2, 9), end_time=datetime(2026, 3, 2, 9, 30))
        requests = [
            AppointmentRequest(patient_id="a-low", duration=30, priority=Priority.LOW, preferred_times=[window]),
            AppointmentRequest(patient_id="z-urgent", duration=30, priority=Priority.URGENT, preferred_times=[window]),
        ]

        result = _assigner(_constraints()).assign(requests)

        assert _starts(result) == {"z-urgent": datetime(2026, 3, 2, 9)}
        assert [u.patient_id for u in result.unscheduled] == ["a-low"]

    def test_results_sorted_by_start(self):
        result = _assigner(_constraints()).assign(_requests(3))

        times = [a.scheduled_time for a in result.appointments]
        assert times == sorted(times)

    def test_displaced_request_recorded_as_move(self):
        result = _assigner(_constraints()).assign(_requests(2))

        assert result.conflicts_resolved == 1
        assert result.moved == [
            Move("pat-1", datetime(2026, 3, 2, 8, 0), datetime(2026, 3, 2, 8, 30)),
        ]

    def test_unscheduled_conflict_is_not_a_move(self):
        window = TimeSlot(start_time=datetime(2026, 3, 2, 9), end_time=datetime(2026, 3, 2, 9, 30))
        requests = [
            AppointmentRequest(patient_id=f"pat-{i}", duration=30, preferred_times=[window]) for i in range(2)
        ]

        result = _assigner(_constraints()).assign(requests)

        assert result.conflicts_resolved == 1
        assert result.moved == []

    def test_confidence_and_alternatives(self):
        result = _assigner(_constraints()).assign(_requests(1))

        appt = result.appointments[0]
        assert appt.confidence == pytest.approx(0.12)
        assert [s.start_time for s in appt.alternative_slots] == [
            datetime(2026, 3, 2, 8, 15),
            datetime(2026, 3, 2, 8, 30),
            datetime(2026, 3, 2, 8, 45),
        ]
        assert all(s.preference == pytest.approx(1.2) for s in appt.alternative_slots)


# --------------------------------------------------------------- constraints

class TestConstraintHandling:
    def test_buffer_between_bookings(self):
        result = _assigner(_constraints(buffer_time=15)).assign(_requests(2))

        assert sorted(_starts(result).values()) == [
            datetime(2026, 3, 2, 8, 0),
            datetime(2026, 3, 2, 8, 45),
        ]

    def test_max_consecutive_forces_gap(self):
        result = _assigner(_constraints(max_consecutive_appointments=2)).assign(_requests(3))

        assert sorted(_starts(result).values()) == [
            datetime(2026, 3, 2, 8, 0),
            datetime(2026, 3, 2, 8, 30),
            datetime(2026, 3, 2, 9, 15),
        ]

    def test_balance_workload_spreads_days(self):
        prefs = SchedulingPreferences(balance_workload=True)

        result = _assigner(_constraints(), prefs, end=date(2026, 3, 3)).assign(_requests(2))

        assert sorted(_starts(result).values()) == [
            datetime(2026, 3, 2, 8, 0),
            datetime(2026, 3, 3, 8, 0),
        ]

    def test_without_balance_packs_first_day(self):
        result = _assigner(_constraints(), end=date(2026, 3, 3)).assign(_requests(2))

        assert all(t.date() == MONDAY for t in _starts(result).values())

    def test_booking_never_straddles_break(self, lunch_constraints):
        requests = [AppointmentRequest(patient_id="pat-1", duration=240), AppointmentRequest(patient_id="pat-2", duration=60)]

        result = _assigner(lunch_constraints).assign(requests)

        assert _starts(result) == {
            "pat-1": datetime(2026, 3, 2, 8, 0),
            "pat-2": datetime(2026, 3, 2, 13, 0),
        }


# -------------------------------------------------------------- overbooking

class TestOverbookingBudget:
    @pytest.mark.parametrize(
        "allowed,pct,n,expected",
        [(False, 100, 4, 0), (True, 50, 4, 0), (True, 100, 3, 3), (True, 150, 3, 5)],
    )
    def test_budget(self, allowed, pct, n, expected):
        prefs = SchedulingPreferences(overbooking_allowed=allowed, overbooking_percentage=pct)

        assert _assigner(_constraints(), prefs).overbooking_budget(n) == expected


# ------------------------------------------------------------------- errors

class TestAssignerErrors:
    def test_non_positive_duration_raises(self):
        with pytest.raises(ComputationError):
            _assigner(_constraints()).assign([AppointmentRequest(patient_id="pat-0", duration=0)])

    def test_cancel_before_first_request(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OptimizationCancelled):
            _assigner(_constraints()).assign(_requests(2), cancel_token=token)

    def test_cancel_token_unused_for_empty_batch(self):
        token = CancellationToken()
        token.cancel()

        result = _assigner(_constraints()).assign([], cancel_token=token)

        assert result.appointments == []


class TestOpenWindows:
    def test_longest_open_window(self, lunch_constraints):
        assert _assigner(lunch_constraints).longest_open_window() == 240

    def test_suggest_uses_empty_calendar(self):
        request = AppointmentRequest(patient_id="pat-1", duration=60)

        slots = _assigner(_constraints()).suggest(request, 2)

        assert [s.start_time for s in slots] == [datetime(2026, 3, 2, 8), datetime(2026, 3, 2, 8, 15)]
        assert slots[0].end_time == datetime(2026, 3, 2, 9)
