"""Provider-level capacity and overbooking recommendations."""

import logging
import math
from datetime import time
from typing import Optional

from clinic_os.scheduling.collaborators import DEFAULT_HISTORY, ProviderHistory
from clinic_os.scheduling.forecast import RiskForecaster
from clinic_os.scheduling.models import (
    AppointmentType,
    OverbookingStrategy,
    ProviderCapacityProfile,
    RiskMitigation,
    RiskTolerance,
    WorkingHours,
)

logger = logging.getLogger(__name__)

# No-show rate a tolerance level must see before overbooking is suggested.
OVERBOOKING_THRESHOLDS: dict[RiskTolerance, Optional[float]] = {
    RiskTolerance.LOW: None,
    RiskTolerance.MEDIUM: 0.10,
    RiskTolerance.HIGH: 0.05,
}
OVERBOOKING_SCALE: dict[RiskTolerance, float] = {
    RiskTolerance.LOW: 0.0,
    RiskTolerance.MEDIUM: 1.0,
    RiskTolerance.HIGH: 1.5,
}

DEGRADED_DATA_NOTE = "Historical no-show data unavailable; using default no-show patterns"


def _label(hour: int) -> str:
    return f"{hour:02d}:00"


class CapacityPlanner:
    """Answers "what capacity should this provider run at" for a date range."""

    def __init__(
        self,
        forecaster: RiskForecaster,
        percentage_cap: float = 25.0,
        high_risk_multiplier: float = 1.5,
    ) -> None:
        self.forecaster = forecaster
        self.percentage_cap = percentage_cap
        self.high_risk_multiplier = high_risk_multiplier

    @staticmethod
    def recommended_capacity(total_bookable_minutes: int, target_utilization: float, average_duration: float) -> int:
        if total_bookable_minutes <= 0 or average_duration <= 0:
            return 0
        return math.ceil(total_bookable_minutes * target_utilization / average_duration)

    def overbooking_strategy(
        self,
        no_show_rate: float,
        risk_tolerance: RiskTolerance,
        candidate_hours: list[int],
    ) -> OverbookingStrategy:
        threshold = OVERBOOKING_THRESHOLDS[risk_tolerance]
        if threshold is None or no_show_rate <= threshold:
            return OverbookingStrategy(enabled=False)
        excess = (no_show_rate - threshold) * 100 * OVERBOOKING_SCALE[risk_tolerance]
        percentage = round(min(self.percentage_cap, excess), 2)
        if percentage <= 0:
            return OverbookingStrategy(enabled=False)
        return OverbookingStrategy(
            enabled=True,
            percentage=percentage,
            time_slots=[_label(h) for h in candidate_hours],
        )

    @staticmethod
    def _working_buckets(history: ProviderHistory, hours: WorkingHours) -> dict[int, float]:
        return {
            h: rate
            for h, rate in sorted(history.no_show_rate_by_hour.items())
            if 0 <= h <= 23 and hours.start.hour <= h and time(h) < hours.end
        }

    @staticmethod
    def average_duration(history: ProviderHistory, appointment_type: Optional[AppointmentType] = None) -> float:
        """Mean booked minutes, taken per type when the history has that type."""
        if appointment_type is not None:
            by_type = history.average_duration_by_type.get(appointment_type.value)
            if by_type:
                return by_type
        return history.average_duration_minutes or DEFAULT_HISTORY.average_duration_minutes

    def plan(
        self,
        provider_id: str,
        total_bookable_minutes: int,
        working_hours: WorkingHours,
        history: ProviderHistory,
        target_utilization: float,
        risk_tolerance: RiskTolerance,
        degraded: bool = False,
        appointment_type: Optional[AppointmentType] = None,
    ) -> ProviderCapacityProfile:
        average_duration = self.average_duration(history, appointment_type)
        rate = history.effective_no_show_rate()
        if rate is None:
            rate = DEFAULT_HISTORY.effective_no_show_rate()

        capacity = self.recommended_capacity(total_bookable_minutes, target_utilization, average_duration)

        buckets = self._working_buckets(history, working_hours)
        average_bucket = sum(buckets.values()) / len(buckets) if buckets else 0.0
        above_average = [h for h, r in buckets.items() if r > average_bucket]
        high_risk = [h for h, r in buckets.items() if r > self.high_risk_multiplier * average_bucket]

        strategy = self.overbooking_strategy(rate, risk_tolerance, above_average)
        warnings = [DEGRADED_DATA_NOTE] if degraded else []
        mitigation = RiskMitigation(
            high_risk_slots=[_label(h) for h in high_risk],
            recommended_actions=self.recommended_actions(high_risk, strategy, rate, degraded),
        )

        booked_fraction = 0.0
        if total_bookable_minutes > 0:
            booked_fraction = min(1.0, capacity * average_duration / total_bookable_minutes)
        attended = booked_fraction * (1 - rate) * (1 + strategy.percentage / 100)

        logger.info(
            f"Capacity plan for {provider_id}: capacity={capacity} no_show_rate={rate:.2f} "
            f"overbooking={strategy.enabled}"
        )
        return ProviderCapacityProfile(
            provider_id=provider_id,
            recommended_capacity=capacity,
            overbooking_strategy=strategy,
            risk_mitigation=mitigation,
            utilization_forecast=self.forecaster.forecast_band(attended),
            warnings=warnings,
        )

    @staticmethod
    def recommended_actions(
        high_risk_hours: list[int],
        strategy: OverbookingStrategy,
        no_show_rate: float,
        degraded: bool,
    ) -> list[str]:
        actions: list[str] = []
        periods = (
            ("morning", [h for h in high_risk_hours if h < 12]),
            ("afternoon", [h for h in high_risk_hours if 12 <= h < 17]),
            ("evening", [h for h in high_risk_hours if h >= 17]),
        )
        for name, hours in periods:
            if hours:
                actions.append(
                    f"Add reminder calls for {name} slots ({', '.join(_label(h) for h in hours)})"
                )
        if high_risk_hours:
            actions.append("Offer waitlist backfill or confirmation incentives for high no-show periods")
        if strategy.enabled:
            actions.append(
                f"Overbook up to {strategy.percentage:g}% in above-average no-show slots"
            )
        if no_show_rate > 0.2:
            actions.append(
                f"Review patient outreach: historical no-show rate is {no_show_rate:.0%}"
            )
        if degraded:
            actions.append(DEGRADED_DATA_NOTE)
        return actions
