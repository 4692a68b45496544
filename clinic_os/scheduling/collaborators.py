"""Collaborator interfaces the engine consumes from the surrounding system.

Historical data and pricing are fetched once per run by the engine and treated
as immutable inputs from then on. Persistence stays on the caller's side.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from clinic_os.scheduling.models import AppointmentType, DateRange

logger = logging.getLogger(__name__)


class ProviderHistory(BaseModel):
    """Aggregated historical signal for one provider."""

    no_show_rate_by_hour: dict[int, float] = Field(default_factory=dict)
    overall_no_show_rate: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    average_duration_minutes: Optional[float] = Field(default=None, gt=0.0)
    average_duration_by_type: dict[str, float] = Field(default_factory=dict)
    peak_hours: list[int] = Field(default_factory=list)

    @property
    def has_signal(self) -> bool:
        return bool(
            self.no_show_rate_by_hour
            or self.overall_no_show_rate is not None
            or self.average_duration_minutes is not None
        )

    def effective_no_show_rate(self) -> Optional[float]:
        """Overall rate if reported, otherwise the mean of the hourly buckets."""
        if self.overall_no_show_rate is not None:
            return self.overall_no_show_rate
        if self.no_show_rate_by_hour:
            rates = self.no_show_rate_by_hour.values()
            return sum(rates) / len(rates)
        return None


# Fallback patterns used when the provider has no usable history.
DEFAULT_HISTORY = ProviderHistory(
    no_show_rate_by_hour={
        8: 0.25, 9: 0.20, 10: 0.15, 11: 0.12, 12: 0.18,
        13: 0.22, 14: 0.15, 15: 0.12, 16: 0.18, 17: 0.25,
    },
    overall_no_show_rate=0.15,
    average_duration_minutes=30.0,
    average_duration_by_type={
        AppointmentType.ROUTINE.value: 30.0,
        AppointmentType.FOLLOW_UP.value: 20.0,
        AppointmentType.CONSULTATION.value: 45.0,
        AppointmentType.PROCEDURE.value: 60.0,
    },
    peak_hours=[9, 10, 14, 15],
)


class HistoricalDataProvider(ABC):
    """Source of per-provider historical no-show and duration statistics."""

    @abstractmethod
    def get_provider_history(self, provider_id: str, date_range: DateRange) -> ProviderHistory:
        """Return the provider's history; an empty ProviderHistory means no signal."""
        pass


class PricingTable(ABC):
    """Average revenue per appointment type."""

    @abstractmethod
    def revenue_for(self, appointment_type: AppointmentType) -> float:
        pass


class StaticHistoricalDataProvider(HistoricalDataProvider):
    """Returns fixed histories keyed by provider id."""

    def __init__(
        self,
        histories: Optional[dict[str, ProviderHistory]] = None,
        default: Optional[ProviderHistory] = None,
    ) -> None:
        self._histories = dict(histories or {})
        self._default = default or ProviderHistory()

    def get_provider_history(self, provider_id: str, date_range: DateRange) -> ProviderHistory:
        return self._histories.get(provider_id, self._default)


class StaticPricingTable(PricingTable):
    """Fixed per-type rates with a flat fallback for unlisted types."""

    def __init__(self, rates: Optional[dict[str, float]] = None, default_rate: float = 150.0) -> None:
        self._rates = {str(k): float(v) for k, v in (rates or {}).items()}
        self.default_rate = default_rate

    def revenue_for(self, appointment_type: AppointmentType) -> float:
        key = appointment_type.value if isinstance(appointment_type, AppointmentType) else str(appointment_type)
        return self._rates.get(key, self.default_rate)


class HistoricalAppointment(BaseModel):
    """A past appointment as recorded by the surrounding system."""

    provider_id: str
    start_time: datetime
    duration: int = Field(gt=0)
    appointment_type: AppointmentType = AppointmentType.ROUTINE
    status: str = Field(default="completed", description="completed, no_show, cancelled, ...")


class AppointmentHistoryAnalyzer(HistoricalDataProvider):
    """Derives provider history from raw past appointments.

    Only appointments inside the lookback window before the requested range
    count. Cancelled appointments are ignored for both rates and durations.
    """

    def __init__(
        self,
        appointments: list[HistoricalAppointment],
        lookback_days: int = 180,
        peak_hour_count: int = 4,
    ) -> None:
        self._appointments = list(appointments)
        self.lookback_days = lookback_days
        self.peak_hour_count = peak_hour_count

    def get_provider_history(self, provider_id: str, date_range: DateRange) -> ProviderHistory:
        window_end = date_range.start_date
        window_start = window_end - timedelta(days=self.lookback_days)
        relevant = [
            a
            for a in self._appointments
            if a.provider_id == provider_id
            and window_start <= a.start_time.date() < window_end
            and a.status != "cancelled"
        ]
        if not relevant:
            logger.info(f"No historical appointments for provider {provider_id}")
            return ProviderHistory()

        hour_totals: dict[int, int] = defaultdict(int)
        hour_no_shows: dict[int, int] = defaultdict(int)
        type_durations: dict[str, list[int]] = defaultdict(list)
        no_shows = 0
        for appt in relevant:
            hour = appt.start_time.hour
            hour_totals[hour] += 1
            if appt.status == "no_show":
                hour_no_shows[hour] += 1
                no_shows += 1
            type_durations[appt.appointment_type.value].append(appt.duration)

        # Busiest hours first, earlier hour wins ties
        peak_hours = sorted(hour_totals, key=lambda h: (-hour_totals[h], h))[: self.peak_hour_count]

        return ProviderHistory(
            no_show_rate_by_hour={
                h: hour_no_shows[h] / hour_totals[h] for h in sorted(hour_totals)
            },
            overall_no_show_rate=no_shows / len(relevant),
            average_duration_minutes=sum(a.duration for a in relevant) / len(relevant),
            average_duration_by_type={
                t: sum(d) / len(d) for t, d in sorted(type_durations.items())
            },
            peak_hours=sorted(peak_hours),
        )
