"""Candidate slot generation over a provider's working days."""

import math
from datetime import date, datetime, timedelta
from typing import Iterator, Optional

from clinic_os.scheduling.models import (
    CandidateSlot,
    DateRange,
    SchedulingConstraints,
    SchedulingPreferences,
)


def overbook_capacity(preferences: Optional[SchedulingPreferences]) -> int:
    """Concurrent bookings an overbookable slot may hold."""
    if preferences is None or not preferences.overbooking_allowed:
        return 1
    return 1 + math.floor(preferences.overbooking_percentage / 100)


class SlotGenerator:
    """Enumerates fixed-size candidate slots across a date range.

    Iteration is lazy and side-effect free: each pass builds fresh slot
    objects, so the same generator can be re-queried for every request.
    """

    def __init__(
        self,
        date_range: DateRange,
        constraints: SchedulingConstraints,
        preferences: Optional[SchedulingPreferences] = None,
        granularity_minutes: int = 15,
    ) -> None:
        if granularity_minutes <= 0:
            raise ValueError(f"granularity_minutes must be positive, got {granularity_minutes}")
        self.date_range = date_range
        self.constraints = constraints
        self.preferences = preferences
        self.granularity = timedelta(minutes=granularity_minutes)
        self.slot_capacity = overbook_capacity(preferences)

    # ------------------------------------------------------------------
    # Calendar arithmetic
    # ------------------------------------------------------------------

    def working_days(self) -> list[date]:
        allowed = set(self.constraints.working_days)
        return [d for d in self.date_range.days() if d.weekday() in allowed]

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        hours = self.constraints.working_hours
        return datetime.combine(day, hours.start), datetime.combine(day, hours.end)

    def unavailable_windows(self, day: date) -> list[tuple[datetime, datetime]]:
        """Breaks projected onto *day* plus blocked windows falling on it, sorted."""
        windows = [
            (datetime.combine(day, b.start_time.time()), datetime.combine(day, b.end_time.time()))
            for b in self.constraints.break_times
        ]
        windows += [
            (b.start_time, b.end_time)
            for b in self.constraints.blocked_times
            if b.start_time.date() <= day <= b.end_time.date()
        ]
        return sorted(windows)

    def break_windows(self, day: date) -> list[tuple[datetime, datetime]]:
        return [
            (datetime.combine(day, b.start_time.time()), datetime.combine(day, b.end_time.time()))
            for b in self.constraints.break_times
        ]

    def is_unavailable(self, start: datetime, end: datetime) -> bool:
        return any(s < end and start < e for s, e in self.unavailable_windows(start.date()))

    def is_adjacent_to_break(self, start: datetime, end: datetime) -> bool:
        return any(b_start == end or b_end == start for b_start, b_end in self.break_windows(start.date()))

    def bookable_minutes(self, day: date) -> int:
        """Working minutes on *day* not covered by breaks or blocked windows."""
        day_start, day_end = self.day_bounds(day)
        if day_start >= day_end:
            return 0
        free = day_end - day_start
        cursor = day_start
        for s, e in self.unavailable_windows(day):
            s, e = max(s, cursor), min(e, day_end)
            if s < e:
                free -= e - s
                cursor = e
        return int(free.total_seconds() // 60)

    def total_bookable_minutes(self) -> int:
        return sum(self.bookable_minutes(d) for d in self.working_days())

    # ------------------------------------------------------------------
    # Slot enumeration
    # ------------------------------------------------------------------

    def iter_day(self, day: date) -> Iterator[CandidateSlot]:
        day_start, day_end = self.day_bounds(day)
        current = day_start
        while current + self.granularity <= day_end:
            end = current + self.granularity
            if not self.is_unavailable(current, end):
                overbookable = self.slot_capacity > 1 and not self.is_adjacent_to_break(current, end)
                yield CandidateSlot(
                    start_time=current,
                    end_time=end,
                    capacity_remaining=self.slot_capacity if overbookable else 1,
                    overbookable=overbookable,
                )
            current = end

    def __iter__(self) -> Iterator[CandidateSlot]:
        for day in self.working_days():
            yield from self.iter_day(day)

    def slots(self) -> list[CandidateSlot]:
        return list(self)
