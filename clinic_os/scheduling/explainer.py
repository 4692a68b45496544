"""Human-readable explanation and recommendations for a run."""

from clinic_os.scheduling.assigner import AssignmentResult
from clinic_os.scheduling.errors import Issue, IssueKind
from clinic_os.scheduling.forecast import ScheduleForecast
from clinic_os.scheduling.models import SchedulingPreferences

LOW_UTILIZATION = 0.7
HIGH_UTILIZATION = 0.9
NO_SHOW_SHARE = 0.2


def build_recommendations(
    assignment: AssignmentResult,
    forecast: ScheduleForecast,
    preferences: SchedulingPreferences,
    issues: list[Issue] | None = None,
) -> list[str]:
    """Rule-based recommendation list, most actionable first."""
    recommendations: list[str] = []

    unscheduled = assignment.unscheduled
    if unscheduled:
        if preferences.overbooking_allowed:
            hint = "consider extending working hours or adding capacity"
        else:
            hint = "consider enabling overbooking or extending working hours"
        recommendations.append(
            f"{len(unscheduled)} request(s) could not be scheduled; {hint}"
        )
        for item in unscheduled:
            label = "Conflict" if item.conflict else "Unschedulable"
            recommendations.append(f"{label} for patient {item.patient_id}: {item.reason}")
    for move in assignment.moved:
        recommendations.append(
            f"Conflict for patient {move.patient_id}: preferred {move.preferred_start:%Y-%m-%d %H:%M} "
            f"was taken, booked {move.scheduled_start:%Y-%m-%d %H:%M} instead"
        )

    scheduled = len(assignment.appointments)
    if scheduled and forecast.utilization_rate < LOW_UTILIZATION:
        recommendations.append(
            "Consider adding more appointment slots or reducing break times to improve utilization"
        )
    if scheduled and forecast.expected_no_shows > scheduled * NO_SHOW_SHARE:
        recommendations.append(
            "High no-show risk detected; consider reminder calls or confirmation messages"
        )
    if preferences.overbooking_allowed and forecast.utilization_rate > HIGH_UTILIZATION:
        recommendations.append("Consider strategic overbooking to account for expected no-shows")
    if assignment.overbooked_count:
        recommendations.append(
            f"{assignment.overbooked_count} appointment(s) were overbooked; confirm attendance in advance"
        )

    for issue in sorted(issues or [], key=lambda i: -i.priority):
        if issue.kind in (IssueKind.WARNING, IssueKind.RECOMMENDATION):
            recommendations.append(issue.message)

    return recommendations


def build_explanation(assignment: AssignmentResult, forecast: ScheduleForecast) -> str:
    scheduled = len(assignment.appointments)
    parts = [
        f"Scheduled {scheduled} appointment(s) with {forecast.utilization_rate:.0%} utilization.",
        f"Expected {forecast.expected_no_shows:.2f} no-show(s) based on patient risk signals.",
        f"Estimated revenue: ${forecast.revenue_estimate:,.2f}.",
    ]
    if assignment.conflicts_resolved:
        parts.append(f"{assignment.conflicts_resolved} request(s) were moved off their top preference.")
    if assignment.unscheduled:
        parts.append(f"{len(assignment.unscheduled)} request(s) remain unscheduled.")
    return " ".join(parts)
