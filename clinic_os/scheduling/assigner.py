"""Greedy priority-ordered assignment of requests to slots.

Requests are processed one at a time in a fixed order and each takes the best
slot still open to it. This is not globally optimal, but it is deterministic
and every placement can be explained. The loop is sequential because every
booking changes what later requests can use.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from clinic_os.scheduling.cancellation import CancellationToken
from clinic_os.scheduling.errors import ComputationError
from clinic_os.scheduling.models import (
    AppointmentRequest,
    CandidateSlot,
    OptimizedAppointment,
    SchedulingConstraints,
    SchedulingPreferences,
    TimeSlot,
    UnscheduledRequest,
)
from clinic_os.scheduling.scoring import MAX_SCORE, PreferenceScorer, priority_weight
from clinic_os.scheduling.slots import SlotGenerator

logger = logging.getLogger(__name__)


@dataclass
class Booking:
    patient_id: str
    start: datetime
    end: datetime
    overbooked: bool = False


@dataclass
class Move:
    """A request booked away from its best slot because that slot was taken."""

    patient_id: str
    preferred_start: datetime
    scheduled_start: datetime


@dataclass
class AssignmentResult:
    """Output of one assigner pass."""

    appointments: list[OptimizedAppointment] = field(default_factory=list)
    unscheduled: list[UnscheduledRequest] = field(default_factory=list)
    moved: list[Move] = field(default_factory=list)
    conflicts_resolved: int = 0
    overbooked_count: int = 0


@dataclass
class _Calendar:
    """Mutable booking state local to a single assign() call."""

    slots: dict[datetime, CandidateSlot]
    remaining: dict[datetime, int]
    bookings: dict[date, list[Booking]] = field(default_factory=lambda: defaultdict(list))

    @classmethod
    def empty(cls, slots: list[CandidateSlot]) -> "_Calendar":
        return cls(
            slots={s.start_time: s for s in slots},
            remaining={s.start_time: s.capacity_remaining for s in slots},
        )

    def day_intervals(self, day: date) -> list[tuple[datetime, datetime]]:
        return [(b.start, b.end) for b in self.bookings[day]]


class Assigner:
    """Places requests one by one on the best eligible slot."""

    def __init__(
        self,
        generator: SlotGenerator,
        scorer: PreferenceScorer,
        constraints: SchedulingConstraints,
        preferences: SchedulingPreferences,
        max_alternatives: int = 3,
    ) -> None:
        self.generator = generator
        self.scorer = scorer
        self.constraints = constraints
        self.preferences = preferences
        self.max_alternatives = max_alternatives
        self.buffer = timedelta(minutes=constraints.buffer_time)
        self.granularity = generator.granularity

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def overbooking_budget(self, request_count: int) -> int:
        if not self.preferences.overbooking_allowed or self.generator.slot_capacity <= 1:
            return 0
        return math.ceil(request_count * self.preferences.overbooking_percentage / 100)

    def best_theoretical(
        self, request: AppointmentRequest, slots: list[CandidateSlot]
    ) -> tuple[Optional[datetime], float]:
        """Best start and score for *request* on an empty calendar."""
        calendar = _Calendar.empty(slots)
        ranked = self._rank(request, calendar, overbook=False)
        if not ranked:
            return None, -1.0
        score, slot = ranked[0]
        return slot.start_time, score

    def suggest(self, request: AppointmentRequest, limit: int) -> list[TimeSlot]:
        """Top *limit* starts for a single request on an empty calendar."""
        ranked = self._rank(request, _Calendar.empty(self.generator.slots()), overbook=False)
        return [
            TimeSlot(
                start_time=slot.start_time,
                end_time=slot.start_time + timedelta(minutes=request.duration),
                preference=round(score, 2),
            )
            for score, slot in ranked[:limit]
        ]

    def assign(
        self,
        requests: list[AppointmentRequest],
        cancel_token: Optional[CancellationToken] = None,
    ) -> AssignmentResult:
        slots = self.generator.slots()
        calendar = _Calendar.empty(slots)
        result = AssignmentResult()
        budget = self.overbooking_budget(len(requests))

        theoretical = {r.patient_id: self.best_theoretical(r, slots) for r in requests}
        ordered = sorted(
            requests,
            key=lambda r: (
                -priority_weight(r.priority),
                -theoretical[r.patient_id][1],
                r.patient_id,
            ),
        )

        for request in ordered:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            if request.duration <= 0:
                raise ComputationError(
                    f"non-positive duration {request.duration} reached the assigner "
                    f"for patient {request.patient_id}"
                )

            best_start, _ = theoretical[request.patient_id]
            ranked = self._rank(request, calendar, overbook=False)
            overbooked = False
            if not ranked and result.overbooked_count < budget:
                ranked = self._rank(request, calendar, overbook=True)
                overbooked = bool(ranked)

            # Moved off its top slot only if that slot is no longer open to it
            moved = best_start is not None and not self._feasible(
                request, calendar.slots.get(best_start), calendar, overbook=False
            )

            if not ranked:
                result.unscheduled.append(
                    UnscheduledRequest(
                        patient_id=request.patient_id,
                        reason=self._unscheduled_reason(request, best_start, budget),
                        conflict=best_start is not None,
                    )
                )
                if best_start is not None:
                    result.conflicts_resolved += 1
                logger.debug(f"Request {request.patient_id} left unscheduled")
                continue

            score, slot = ranked[0]
            self._book(request, slot, calendar, overbooked)
            if overbooked:
                result.overbooked_count += 1
            if moved:
                result.conflicts_resolved += 1
                result.moved.append(Move(request.patient_id, best_start, slot.start_time))

            result.appointments.append(
                OptimizedAppointment(
                    patient_id=request.patient_id,
                    appointment_type=request.appointment_type,
                    scheduled_time=slot.start_time,
                    duration=request.duration,
                    confidence=round(score / MAX_SCORE, 4),
                    alternative_slots=[
                        TimeSlot(
                            start_time=alt.start_time,
                            end_time=alt.start_time + timedelta(minutes=request.duration),
                            preference=round(alt_score, 2),
                        )
                        for alt_score, alt in ranked[1 : 1 + self.max_alternatives]
                    ],
                    overbooked=overbooked,
                )
            )

        result.appointments.sort(key=lambda a: (a.scheduled_time, a.patient_id))
        return result

    # ------------------------------------------------------------------
    # Feasibility and ranking
    # ------------------------------------------------------------------

    def _eligible(self, request: AppointmentRequest, slot: CandidateSlot) -> bool:
        if (
            self.preferences.consider_patient_preferences
            and self.preferences.strict_preferred_windows
            and request.preferred_times
        ):
            return self.scorer.in_preferred_window(request, slot)
        return True

    def _covered(self, start: datetime, end: datetime, calendar: _Calendar) -> Optional[list[datetime]]:
        """Slot keys covering [start, end), or None if any piece is not open."""
        keys = []
        current = start
        while current < end:
            if current not in calendar.slots:
                return None
            keys.append(current)
            current += self.granularity
        return keys

    def _feasible(
        self,
        request: AppointmentRequest,
        slot: Optional[CandidateSlot],
        calendar: _Calendar,
        overbook: bool,
    ) -> bool:
        if slot is None:
            return False
        start = slot.start_time
        end = start + timedelta(minutes=request.duration)
        _, day_end = self.generator.day_bounds(start.date())
        if end > day_end:
            return False

        keys = self._covered(start, end, calendar)
        if keys is None:
            return False

        if overbook:
            for k in keys:
                if not calendar.slots[k].overbookable or calendar.remaining[k] <= 0:
                    return False
        elif any(calendar.remaining[k] < calendar.slots[k].capacity_remaining for k in keys):
            return False

        for b in calendar.bookings[start.date()]:
            overlapping = b.start < end and start < b.end
            if overbook and overlapping:
                continue
            if b.start < end + self.buffer and start < b.end + self.buffer:
                return False

        return self._within_consecutive_limit(calendar.day_intervals(start.date()) + [(start, end)])

    def _within_consecutive_limit(self, intervals: list[tuple[datetime, datetime]]) -> bool:
        """No run of back-to-back bookings longer than the configured maximum.

        Overlapping bookings merge into one block; blocks separated by less than
        one empty slot belong to the same run.
        """
        blocks: list[list[datetime]] = []
        for s, e in sorted(intervals):
            if blocks and s < blocks[-1][1]:
                blocks[-1][1] = max(blocks[-1][1], e)
            else:
                blocks.append([s, e])

        run = 0
        prev_end: Optional[datetime] = None
        for s, e in blocks:
            if prev_end is not None and s - prev_end < self.granularity:
                run += 1
            else:
                run = 1
            if run > self.constraints.max_consecutive_appointments:
                return False
            prev_end = e
        return True

    def _rank(
        self, request: AppointmentRequest, calendar: _Calendar, overbook: bool
    ) -> list[tuple[float, CandidateSlot]]:
        """Eligible feasible slots, best first."""
        scored = []
        for slot in calendar.slots.values():
            if not self._eligible(request, slot):
                continue
            if not self._feasible(request, slot, calendar, overbook):
                continue
            assigned = calendar.day_intervals(slot.start_time.date())
            scored.append((self.scorer.score(request, slot, assigned), slot))

        def order(item: tuple[float, CandidateSlot]):
            score, slot = item
            load = len(calendar.bookings[slot.start_time.date()]) if self.preferences.balance_workload else 0
            return (-score, load, slot.start_time)

        return sorted(scored, key=order)

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def _book(
        self,
        request: AppointmentRequest,
        slot: CandidateSlot,
        calendar: _Calendar,
        overbooked: bool,
    ) -> None:
        start = slot.start_time
        end = start + timedelta(minutes=request.duration)
        day_start, day_end = self.generator.day_bounds(start.date())
        if start < day_start or end > day_end or self.generator.is_unavailable(start, end):
            raise ComputationError(
                f"assignment {start:%Y-%m-%d %H:%M}-{end:%H:%M} for patient "
                f"{request.patient_id} falls outside bookable time"
            )

        for key in self._covered(start, end, calendar) or []:
            calendar.remaining[key] -= 1
            if calendar.remaining[key] < 0:
                raise ComputationError(
                    f"negative remaining capacity at {key:%Y-%m-%d %H:%M} "
                    f"after booking patient {request.patient_id}"
                )
        calendar.bookings[start.date()].append(
            Booking(patient_id=request.patient_id, start=start, end=end, overbooked=overbooked)
        )

    def _unscheduled_reason(
        self, request: AppointmentRequest, best_start: Optional[datetime], budget: int
    ) -> str:
        if best_start is None:
            longest = self.longest_open_window()
            if request.duration > longest:
                return (
                    f"duration of {request.duration} minutes exceeds the longest open "
                    f"window ({longest} minutes)"
                )
            if request.preferred_times and self.preferences.strict_preferred_windows:
                return "no open slot falls inside the patient's preferred windows"
            return "no feasible slot within working hours under the current constraints"
        taken = f"preferred slot {best_start:%Y-%m-%d %H:%M} and every other eligible slot were already taken"
        if self.preferences.overbooking_allowed:
            return f"{taken}; overbooking capacity exhausted (budget {budget})"
        return taken

    def longest_open_window(self) -> int:
        """Longest run of contiguous open slots, in minutes."""
        longest = 0
        run_start: Optional[datetime] = None
        prev_end: Optional[datetime] = None
        for slot in self.generator:
            if prev_end is None or slot.start_time != prev_end:
                run_start = slot.start_time
            prev_end = slot.end_time
            longest = max(longest, int((prev_end - run_start).total_seconds() // 60))
        return longest
