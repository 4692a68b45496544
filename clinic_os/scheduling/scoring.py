"""Preference scoring for (request, slot) pairs.

score = 0.5 * preference overlap + 0.3 * priority weight + 0.2 * gap bonus,
each term on a 0-10 scale, so the score itself is in [0, 10].
"""

from datetime import datetime, time, timedelta
from typing import Iterable, Optional, Sequence

from clinic_os.scheduling.models import (
    AppointmentRequest,
    Priority,
    SchedulingPreferences,
    TimeSlot,
)

PREFERENCE_WEIGHT = 0.5
PRIORITY_WEIGHT = 0.3
GAP_WEIGHT = 0.2

NEUTRAL_PREFERENCE = 5.0
GAP_BONUS = 10.0
MAX_SCORE = 10.0

PRIORITY_WEIGHTS: dict[Priority, float] = {
    Priority.URGENT: 10.0,
    Priority.HIGH: 7.0,
    Priority.MEDIUM: 4.0,
    Priority.LOW: 1.0,
}

Interval = tuple[datetime, datetime]


def priority_weight(priority: Priority) -> float:
    return PRIORITY_WEIGHTS.get(priority, PRIORITY_WEIGHTS[Priority.MEDIUM])


class PreferenceScorer:
    """Deterministic, side-effect free scorer."""

    def __init__(
        self,
        preferences: SchedulingPreferences,
        working_start: time,
        prime_hours: Iterable[int] = (9, 10, 14, 15),
        early_day_hours: int = 2,
        high_risk_threshold: float = 0.5,
        buffer_time: int = 0,
    ) -> None:
        self.preferences = preferences
        self.working_start = working_start
        self.prime_hours = frozenset(prime_hours)
        self.early_day_hours = early_day_hours
        self.high_risk_threshold = high_risk_threshold
        self.buffer = timedelta(minutes=buffer_time)

    def preference_overlap(self, request: AppointmentRequest, slot: TimeSlot) -> float:
        """Highest declared preference among windows overlapping *slot*, else 0."""
        if not self.preferences.consider_patient_preferences:
            return NEUTRAL_PREFERENCE
        values = [
            w.preference
            for w in request.preferred_times
            if w.overlaps(slot.start_time, slot.end_time)
        ]
        return max(values, default=0.0)

    def in_preferred_window(self, request: AppointmentRequest, slot: TimeSlot) -> bool:
        return any(w.overlaps(slot.start_time, slot.end_time) for w in request.preferred_times)

    def gap_bonus(self, start: datetime, end: datetime, assigned: Sequence[Interval]) -> float:
        """Bonus when the booking would sit flush against another one."""
        if not self.preferences.minimize_gaps:
            return 0.0
        for a_start, a_end in assigned:
            if a_start.date() != start.date():
                continue
            if a_end + self.buffer == start or end + self.buffer == a_start:
                return GAP_BONUS
        return 0.0

    def is_prime(self, slot: TimeSlot) -> bool:
        return slot.start_time.hour in self.prime_hours

    def is_early_day(self, slot: TimeSlot) -> bool:
        opening = datetime.combine(slot.start_time.date(), self.working_start)
        return slot.start_time < opening + timedelta(hours=self.early_day_hours)

    def score(
        self,
        request: AppointmentRequest,
        slot: TimeSlot,
        assigned: Sequence[Interval] = (),
    ) -> float:
        """Score placing *request* so that it starts in *slot*."""
        end = slot.start_time + timedelta(minutes=request.duration)
        value = (
            PREFERENCE_WEIGHT * self.preference_overlap(request, slot)
            + PRIORITY_WEIGHT * priority_weight(request.priority)
            + GAP_WEIGHT * self.gap_bonus(slot.start_time, end, assigned)
        )

        risk: Optional[float] = request.no_show_risk
        if (
            self.preferences.prioritize_high_risk
            and risk is not None
            and risk > self.high_risk_threshold
        ):
            # Steer likely no-shows away from peak demand
            if self.is_prime(slot):
                value -= risk * 2
            elif self.is_early_day(slot):
                value += risk * 2

        return min(max(value, 0.0), MAX_SCORE)

    def score_many(
        self,
        request: AppointmentRequest,
        slots: Iterable[TimeSlot],
        assigned: Sequence[Interval] = (),
    ) -> list[float]:
        return [self.score(request, s, assigned) for s in slots]
