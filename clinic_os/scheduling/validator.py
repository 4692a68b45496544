"""Input validation for scheduling runs.

Every check runs to completion and the violations are raised together, so a
caller can fix all of them in one pass.
"""

from datetime import time
from typing import Optional

from clinic_os.scheduling.errors import Issue, ValidationError
from clinic_os.scheduling.models import (
    AppointmentRequest,
    DateRange,
    RiskTolerance,
    SchedulingConstraints,
    SchedulingPreferences,
    TimeSlot,
)

# Candidate slots are naive clinic-local times; offsets cannot be compared with them.
NAIVE_ONLY_MESSAGE = "must be a local time without a UTC offset"


def _tod_overlap(a: TimeSlot, b: TimeSlot) -> bool:
    """Overlap of two windows compared by time of day only."""
    return a.start_time.time() < b.end_time.time() and b.start_time.time() < a.end_time.time()


def _abs_overlap(a: TimeSlot, b: TimeSlot) -> bool:
    return a.start_time < b.end_time and b.start_time < a.end_time


def _is_aware(window: TimeSlot) -> bool:
    return window.start_time.tzinfo is not None or window.end_time.tzinfo is not None


class RequestValidator:
    """Pure checks over requests, constraints and preferences."""

    def validate(
        self,
        provider_id: str,
        date_range: DateRange,
        requests: list[AppointmentRequest],
        constraints: SchedulingConstraints,
        preferences: SchedulingPreferences,
    ) -> None:
        """Raise ValidationError listing every violation, or return None."""
        issues: list[Issue] = []
        issues += self._check_provider(provider_id, date_range)
        issues += self.check_constraints(constraints)
        issues += self.check_preferences(preferences)
        issues += self.check_requests(requests)
        if issues:
            raise ValidationError(issues)

    def validate_suggestion(
        self,
        request: AppointmentRequest,
        provider_id: str,
        date_range: DateRange,
        constraints: SchedulingConstraints,
        max_suggestions: int,
    ) -> None:
        issues = self._check_provider(provider_id, date_range)
        issues += self.check_constraints(constraints)
        issues += self.check_requests([request])
        if max_suggestions < 1:
            issues.append(Issue(field="max_suggestions", message="must be at least 1"))
        if issues:
            raise ValidationError(issues)

    def validate_capacity(
        self,
        provider_id: str,
        date_range: DateRange,
        target_utilization: float,
        risk_tolerance: str = RiskTolerance.MEDIUM.value,
        constraints: Optional[SchedulingConstraints] = None,
    ) -> None:
        issues = self._check_provider(provider_id, date_range)
        if not 0.0 < target_utilization < 1.0:
            issues.append(
                Issue(
                    field="target_utilization",
                    message=f"must be strictly between 0 and 1, got {target_utilization}",
                )
            )
        allowed = [t.value for t in RiskTolerance]
        if risk_tolerance not in allowed:
            issues.append(
                Issue(
                    field="risk_tolerance",
                    message=f"must be one of {', '.join(allowed)}, got {risk_tolerance!r}",
                )
            )
        if constraints is not None:
            issues += self.check_constraints(constraints)
        if issues:
            raise ValidationError(issues)

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_provider(provider_id: str, date_range: DateRange) -> list[Issue]:
        issues: list[Issue] = []
        if not provider_id or not provider_id.strip():
            issues.append(Issue(field="provider_id", message="is required"))
        if date_range.start_date > date_range.end_date:
            issues.append(
                Issue(
                    field="date_range",
                    message=f"start_date {date_range.start_date} is after end_date {date_range.end_date}",
                )
            )
        return issues

    def check_constraints(self, constraints: SchedulingConstraints) -> list[Issue]:
        issues: list[Issue] = []
        hours = constraints.working_hours
        if hours.start >= hours.end:
            issues.append(
                Issue(
                    field="constraints.working_hours",
                    message=f"start {hours.start:%H:%M} must be before end {hours.end:%H:%M}",
                )
            )
        if constraints.max_consecutive_appointments < 1:
            issues.append(
                Issue(field="constraints.max_consecutive_appointments", message="must be at least 1")
            )
        if constraints.buffer_time < 0:
            issues.append(Issue(field="constraints.buffer_time", message="must not be negative"))
        bad_days = [d for d in constraints.working_days if not 0 <= d <= 6]
        if bad_days:
            issues.append(
                Issue(field="constraints.working_days", message=f"weekday out of range 0-6: {bad_days}")
            )

        for label, windows in (
            ("break_times", constraints.break_times),
            ("blocked_times", constraints.blocked_times),
        ):
            for i, window in enumerate(windows):
                field = f"constraints.{label}[{i}]"
                if _is_aware(window):
                    issues.append(Issue(field=field, message=NAIVE_ONLY_MESSAGE))
                    continue
                issues += self._check_window(field, window, hours.start, hours.end)

        issues += self._pairwise(
            "constraints.break_times", constraints.break_times, _tod_overlap
        )
        issues += self._pairwise(
            "constraints.blocked_times", constraints.blocked_times, _abs_overlap
        )
        for i, blocked in enumerate(constraints.blocked_times):
            for j, brk in enumerate(constraints.break_times):
                if _is_aware(blocked) or _is_aware(brk):
                    continue
                if _tod_overlap(blocked, brk):
                    issues.append(
                        Issue(
                            field=f"constraints.blocked_times[{i}]",
                            message=f"overlaps daily break_times[{j}]",
                        )
                    )
        return issues

    @staticmethod
    def _check_window(field: str, window: TimeSlot, day_start: time, day_end: time) -> list[Issue]:
        if window.start_time >= window.end_time:
            return [Issue(field=field, message="start_time must be before end_time")]
        if window.start_time.date() != window.end_time.date():
            return [Issue(field=field, message="must not cross midnight")]
        if window.start_time.time() < day_start or window.end_time.time() > day_end:
            return [
                Issue(
                    field=field,
                    message=(
                        f"{window.start_time:%H:%M}-{window.end_time:%H:%M} is outside "
                        f"working hours {day_start:%H:%M}-{day_end:%H:%M}"
                    ),
                )
            ]
        return []

    @staticmethod
    def _pairwise(field: str, windows: list[TimeSlot], overlaps) -> list[Issue]:
        issues: list[Issue] = []
        for i in range(len(windows)):
            for j in range(i + 1, len(windows)):
                a, b = windows[i], windows[j]
                if _is_aware(a) or _is_aware(b):
                    continue
                if a.start_time < a.end_time and b.start_time < b.end_time and overlaps(a, b):
                    issues.append(Issue(field=f"{field}[{j}]", message=f"overlaps {field}[{i}]"))
        return issues

    @staticmethod
    def check_preferences(preferences: SchedulingPreferences) -> list[Issue]:
        pct = preferences.overbooking_percentage
        if preferences.overbooking_allowed and not 0.0 <= pct <= 100.0:
            return [
                Issue(
                    field="preferences.overbooking_percentage",
                    message=f"must be within 0-100 when overbooking is allowed, got {pct}",
                )
            ]
        return []

    @staticmethod
    def check_requests(requests: list[AppointmentRequest]) -> list[Issue]:
        issues: list[Issue] = []
        seen: set[str] = set()
        for i, req in enumerate(requests):
            prefix = f"appointment_requests[{i}]"
            if not req.patient_id:
                issues.append(Issue(field=f"{prefix}.patient_id", message="is required"))
            elif req.patient_id in seen:
                issues.append(
                    Issue(field=f"{prefix}.patient_id", message=f"duplicate patient_id {req.patient_id!r}")
                )
            seen.add(req.patient_id)
            if req.duration <= 0:
                issues.append(
                    Issue(field=f"{prefix}.duration", message=f"must be positive, got {req.duration}")
                )
            for j, window in enumerate(req.preferred_times):
                if _is_aware(window):
                    issues.append(
                        Issue(field=f"{prefix}.preferred_times[{j}]", message=NAIVE_ONLY_MESSAGE)
                    )
                elif window.start_time >= window.end_time:
                    issues.append(
                        Issue(
                            field=f"{prefix}.preferred_times[{j}]",
                            message="start_time must be before end_time",
                        )
                    )
        return issues
