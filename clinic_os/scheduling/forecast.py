"""No-show, utilization and revenue forecasting for a produced schedule."""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from clinic_os.scheduling.collaborators import PricingTable, StaticPricingTable
from clinic_os.scheduling.models import (
    AppointmentRequest,
    OptimizedAppointment,
    Priority,
    UtilizationForecast,
)

# Used when a request carries no explicit no-show signal.
DEFAULT_RISK_BY_PRIORITY: dict[Priority, float] = {
    Priority.URGENT: 0.05,
    Priority.HIGH: 0.10,
    Priority.MEDIUM: 0.15,
    Priority.LOW: 0.20,
}


@dataclass
class ScheduleForecast:
    utilization_rate: float = 0.0
    expected_no_shows: float = 0.0
    revenue_estimate: float = 0.0
    utilization_forecast: UtilizationForecast = field(default_factory=UtilizationForecast)


class RiskForecaster:
    """Turns an assignment into expected no-shows, utilization and revenue.

    The forecast band is a fixed multiplicative spread around the expected
    utilization. It is a tunable simplification, not a statistical model.
    """

    def __init__(
        self,
        pricing_table: Optional[PricingTable] = None,
        optimistic_factor: float = 1.1,
        pessimistic_factor: float = 0.85,
    ) -> None:
        self.pricing_table = pricing_table or StaticPricingTable()
        self.optimistic_factor = optimistic_factor
        self.pessimistic_factor = pessimistic_factor

    @staticmethod
    def risk_for(request: AppointmentRequest) -> float:
        if request.no_show_risk is not None:
            return request.no_show_risk
        return DEFAULT_RISK_BY_PRIORITY.get(request.priority, DEFAULT_RISK_BY_PRIORITY[Priority.MEDIUM])

    def expected_no_shows(
        self,
        appointments: Iterable[OptimizedAppointment],
        requests: dict[str, AppointmentRequest],
    ) -> float:
        return sum(self.risk_for(requests[a.patient_id]) for a in appointments)

    @staticmethod
    def utilization_rate(appointments: Iterable[OptimizedAppointment], total_bookable_minutes: int) -> float:
        if total_bookable_minutes <= 0:
            return 0.0
        booked = sum(a.duration for a in appointments)
        return min(1.0, booked / total_bookable_minutes)

    def forecast_band(self, utilization: float) -> UtilizationForecast:
        utilization = min(max(utilization, 0.0), 1.0)
        return UtilizationForecast(
            expected=utilization,
            optimistic=min(1.0, utilization * self.optimistic_factor),
            pessimistic=utilization * self.pessimistic_factor,
        )

    def revenue_estimate(self, appointments: Iterable[OptimizedAppointment]) -> float:
        return sum(max(0.0, self.pricing_table.revenue_for(a.appointment_type)) for a in appointments)

    def forecast(
        self,
        appointments: list[OptimizedAppointment],
        requests: list[AppointmentRequest],
        total_bookable_minutes: int,
    ) -> ScheduleForecast:
        by_id = {r.patient_id: r for r in requests}
        utilization = self.utilization_rate(appointments, total_bookable_minutes)
        return ScheduleForecast(
            utilization_rate=utilization,
            expected_no_shows=self.expected_no_shows(appointments, by_id),
            revenue_estimate=self.revenue_estimate(appointments),
            utilization_forecast=self.forecast_band(utilization),
        )
