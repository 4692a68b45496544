"""Tests for no-show, utilization and revenue forecasting."""

from datetime import datetime

import pytest

from clinic_os.scheduling import (
    AppointmentRequest,
    AppointmentType,
    OptimizedAppointment,
    Priority,
    StaticPricingTable,
)
from clinic_os.scheduling.forecast import RiskForecaster


def _appt(patient_id: str, duration: int = 30, kind: AppointmentType = AppointmentType.ROUTINE) -> OptimizedAppointment:
    return OptimizedAppointment(
        patient_id=patient_id,
        appointment_type=kind,
        scheduled_time=datetime(2026, 3, 2, 9),
        duration=duration,
        confidence=0.5,
    )


@pytest.fixture
def forecaster():
    return RiskForecaster()


class TestExpectedNoShows:
    def test_explicit_risk_and_priority_default(self, forecaster):
        requests = {
            "a": AppointmentRequest(patient_id="a", duration=30, no_show_risk=0.3),
            "b": AppointmentRequest(patient_id="b", duration=30),
            "c": AppointmentRequest(patient_id="c", duration=30, priority=Priority.URGENT),
        }

        total = forecaster.expected_no_shows([_appt("a"), _appt("b"), _appt("c")], requests)

        assert total == pytest.approx(0.3 + 0.15 + 0.05)

    def test_unscheduled_requests_do_not_count(self, forecaster):
        requests = {
            "a": AppointmentRequest(patient_id="a", duration=30, priority=Priority.LOW),
            "b": AppointmentRequest(patient_id="b", duration=30, priority=Priority.LOW),
        }

        assert forecaster.expected_no_shows([_appt("a")], requests) == pytest.approx(0.2)


class TestUtilization:
    def test_booked_over_bookable(self, forecaster):
        assert forecaster.utilization_rate([_appt("a", 120), _appt("b", 120)], 480) == pytest.approx(0.5)

    def test_capped_at_one(self, forecaster):
        # Overbooked schedules can book more minutes than exist
        assert forecaster.utilization_rate([_appt("a", 60), _appt("b", 60)], 60) == 1.0

    def test_zero_bookable_minutes(self, forecaster):
        assert forecaster.utilization_rate([], 0) == 0.0

    def test_forecast_band(self, forecaster):
        band = forecaster.forecast_band(0.5)

        assert band.expected == pytest.approx(0.5)
        assert band.pessimistic == pytest.approx(0.425)
        assert band.optimistic == pytest.approx(0.55)

    def test_optimistic_capped(self, forecaster):
        assert forecaster.forecast_band(0.95).optimistic == 1.0

    def test_custom_factors(self):
        band = RiskForecaster(optimistic_factor=1.2, pessimistic_factor=0.5).forecast_band(0.5)

        assert (band.pessimistic, band.optimistic) == pytest.approx((0.25, 0.6))


class TestRevenue:
    def test_default_flat_rate(self, forecaster):
        assert forecaster.revenue_estimate([_appt("a"), _appt("b")]) == pytest.approx(300.0)

    def test_pricing_table_by_type(self):
        pricing = StaticPricingTable({"consultation": 200.0}, default_rate=100.0)
        forecaster = RiskForecaster(pricing_table=pricing)

        revenue = forecaster.revenue_estimate(
            [_appt("a", kind=AppointmentType.CONSULTATION), _appt("b")]
        )

        assert revenue == pytest.approx(300.0)

    def test_full_forecast(self, forecaster):
        requests = [AppointmentRequest(patient_id="a", duration=240)]

        forecast = forecaster.forecast([_appt("a", 240)], requests, 480)

        assert forecast.utilization_rate == pytest.approx(0.5)
        assert forecast.expected_no_shows == pytest.approx(0.15)
        assert forecast.revenue_estimate == pytest.approx(150.0)
        assert forecast.utilization_forecast.expected == pytest.approx(0.5)
