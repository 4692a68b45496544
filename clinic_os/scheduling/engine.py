"""Scheduling optimization engine entry points.

Each run is pure: collaborators are queried once up front, every intermediate
structure is local to the call, and nothing is shared between runs. That makes
``optimize_many`` safe to fan out over a thread pool.
"""

import json
import logging
import time as _time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Union

from clinic_os.config import Settings, get_settings
from clinic_os.observability import ObservabilityLogger
from clinic_os.scheduling.assigner import Assigner
from clinic_os.scheduling.cancellation import CancellationToken
from clinic_os.scheduling.capacity import DEGRADED_DATA_NOTE, CapacityPlanner
from clinic_os.scheduling.collaborators import (
    DEFAULT_HISTORY,
    HistoricalDataProvider,
    PricingTable,
    ProviderHistory,
    StaticHistoricalDataProvider,
    StaticPricingTable,
)
from clinic_os.scheduling.errors import (
    ComputationError,
    Issue,
    IssueKind,
    SchedulingError,
)
from clinic_os.scheduling.explainer import build_explanation, build_recommendations
from clinic_os.scheduling.forecast import RiskForecaster
from clinic_os.scheduling.models import (
    AppointmentRequest,
    AppointmentType,
    DateRange,
    ProviderCapacityProfile,
    RiskTolerance,
    ScheduleInput,
    SchedulingConstraints,
    SchedulingOptimization,
    SchedulingPreferences,
    TimeSlot,
    WorkingHours,
)
from clinic_os.scheduling.scoring import PreferenceScorer
from clinic_os.scheduling.slots import SlotGenerator
from clinic_os.scheduling.state import RunState, RunTracker
from clinic_os.scheduling.validator import RequestValidator

logger = logging.getLogger(__name__)

BatchResult = Union[SchedulingOptimization, SchedulingError]


class SchedulingEngine:
    """Facade over validation, slot generation, assignment and forecasting."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        historical_data: Optional[HistoricalDataProvider] = None,
        pricing_table: Optional[PricingTable] = None,
        observability: Optional[ObservabilityLogger] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.historical_data = historical_data or StaticHistoricalDataProvider()
        self.pricing_table = pricing_table or StaticPricingTable(
            default_rate=self.settings.default_revenue_per_appointment
        )
        self.observability = observability or ObservabilityLogger(
            log_dir=self.settings.observability_log_dir,
            enabled=self.settings.observability_enabled,
        )
        self.validator = RequestValidator()
        self.forecaster = RiskForecaster(
            pricing_table=self.pricing_table,
            optimistic_factor=self.settings.forecast_optimistic_factor,
            pessimistic_factor=self.settings.forecast_pessimistic_factor,
        )
        self.planner = CapacityPlanner(
            self.forecaster,
            percentage_cap=self.settings.overbooking_percentage_cap,
            high_risk_multiplier=self.settings.high_risk_bucket_multiplier,
        )

    # ------------------------------------------------------------------
    # Optimization
    # ------------------------------------------------------------------

    def optimize_schedule(
        self,
        schedule_input: ScheduleInput,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SchedulingOptimization:
        """Assign every request in *schedule_input* to the best slot available.

        Raises:
            ValidationError: the input was rejected; nothing was computed.
            ComputationError: an internal invariant broke; carries the input snapshot.
            OptimizationCancelled: *cancel_token* fired during assignment.
        """
        tracker = RunTracker("optimization")
        snapshot = schedule_input.model_dump(mode="json")

        with self.observability.optimization_run(
            schedule_input.provider_id,
            len(schedule_input.appointment_requests),
            snapshot=snapshot,
        ) as event:
            try:
                result, degraded = self._run_optimization(schedule_input, tracker, cancel_token)
            except ComputationError as e:
                self._fail(tracker)
                if not e.snapshot:
                    e.snapshot = snapshot
                logger.error(
                    f"Optimization failed for provider {schedule_input.provider_id}: {e}; "
                    f"input snapshot: {json.dumps(snapshot)}"
                )
                raise
            except SchedulingError as e:
                self._fail(tracker)
                logger.warning(f"Optimization rejected for provider {schedule_input.provider_id}: {e}")
                raise
            finally:
                event.states = tracker.path

            event.scheduled_count = len(result.optimized_schedule)
            event.unscheduled_count = len(result.unscheduled)
            event.conflicts_resolved = result.conflicts_resolved
            event.utilization_rate = result.utilization_rate
            event.expected_no_shows = result.expected_no_shows
            event.degraded_data = degraded

        logger.info(
            f"Optimized {len(result.optimized_schedule)}/{len(schedule_input.appointment_requests)} "
            f"requests for provider {schedule_input.provider_id} "
            f"(utilization {result.utilization_rate:.0%}, conflicts {result.conflicts_resolved})"
        )
        return result

    def _run_optimization(
        self,
        schedule_input: ScheduleInput,
        tracker: RunTracker,
        cancel_token: Optional[CancellationToken],
    ) -> tuple[SchedulingOptimization, bool]:
        constraints = schedule_input.constraints
        preferences = schedule_input.preferences
        requests = schedule_input.appointment_requests

        tracker.transition(RunState.VALIDATING)
        self.validator.validate(
            schedule_input.provider_id,
            schedule_input.date_range,
            requests,
            constraints,
            preferences,
        )

        tracker.transition(RunState.GENERATING)
        generator = self._generator(schedule_input.date_range, constraints, preferences)
        total_minutes = generator.total_bookable_minutes()

        tracker.transition(RunState.SCORING)
        history, degraded = self._resolve_history(schedule_input.provider_id, schedule_input.date_range)
        issues: list[Issue] = []
        # Default hourly rates and priority risks stand in for the missing history
        if degraded:
            issues.append(
                Issue(
                    kind=IssueKind.WARNING,
                    field="historical_data",
                    message=DEGRADED_DATA_NOTE,
                )
            )
        scorer = self._scorer(preferences, constraints, history, degraded)
        assigner = Assigner(
            generator,
            scorer,
            constraints,
            preferences,
            max_alternatives=self.settings.max_alternative_slots,
        )

        tracker.transition(RunState.ASSIGNING)
        assignment = assigner.assign(requests, cancel_token=cancel_token)

        tracker.transition(RunState.FORECASTING)
        forecast = self.forecaster.forecast(assignment.appointments, requests, total_minutes)

        result = SchedulingOptimization(
            provider_id=schedule_input.provider_id,
            optimized_schedule=assignment.appointments,
            unscheduled=assignment.unscheduled,
            utilization_rate=forecast.utilization_rate,
            expected_no_shows=forecast.expected_no_shows,
            revenue_estimate=forecast.revenue_estimate,
            conflicts_resolved=assignment.conflicts_resolved,
            utilization_forecast=forecast.utilization_forecast,
            recommendations=build_recommendations(assignment, forecast, preferences, issues),
            explanation=build_explanation(assignment, forecast),
        )
        tracker.transition(RunState.COMPLETED)
        return result, degraded

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def suggest_optimal_time_slots(
        self,
        request: AppointmentRequest,
        provider_id: str,
        date_range: DateRange,
        constraints: SchedulingConstraints,
        max_suggestions: Optional[int] = None,
        preferences: Optional[SchedulingPreferences] = None,
    ) -> list[TimeSlot]:
        """Rank open starts for a single request on an empty calendar.

        Each returned slot spans the request's duration and carries its score
        (0-10) as ``preference``. An empty list means nothing fits.
        """
        started = _time.time()
        if max_suggestions is None:
            max_suggestions = self.settings.default_max_suggestions
        preferences = preferences or SchedulingPreferences()

        self.validator.validate_suggestion(request, provider_id, date_range, constraints, max_suggestions)

        generator = self._generator(date_range, constraints, preferences)
        history, degraded = self._resolve_history(provider_id, date_range)
        assigner = Assigner(
            generator,
            self._scorer(preferences, constraints, history, degraded),
            constraints,
            preferences,
        )
        suggestions = assigner.suggest(request, max_suggestions)

        self.observability.log_slot_suggestion(
            provider_id=provider_id,
            patient_id=request.patient_id,
            max_suggestions=max_suggestions,
            suggestions_count=len(suggestions),
            top_preference=suggestions[0].preference if suggestions else None,
            duration_ms=(_time.time() - started) * 1000,
        )
        if not suggestions:
            logger.info(f"No open slot fits patient {request.patient_id} with provider {provider_id}")
        return suggestions

    # ------------------------------------------------------------------
    # Capacity planning
    # ------------------------------------------------------------------

    def optimize_provider_schedule(
        self,
        provider_id: str,
        date_range: DateRange,
        target_utilization: Optional[float] = None,
        risk_tolerance: Union[str, RiskTolerance] = RiskTolerance.MEDIUM,
        constraints: Optional[SchedulingConstraints] = None,
        appointment_type: Optional[AppointmentType] = None,
    ) -> ProviderCapacityProfile:
        """Recommend capacity and an overbooking strategy for a provider.

        With *appointment_type* set, capacity is sized by that type's average
        duration instead of the provider-wide mean.
        """
        if target_utilization is None:
            target_utilization = self.settings.default_target_utilization
        if isinstance(risk_tolerance, RiskTolerance):
            risk_tolerance = risk_tolerance.value
        constraints = constraints or self.default_constraints()
        tracker = RunTracker("capacity")

        with self.observability.capacity_plan(provider_id, target_utilization, risk_tolerance) as event:
            try:
                tracker.transition(RunState.VALIDATING)
                self.validator.validate_capacity(
                    provider_id,
                    date_range,
                    target_utilization,
                    risk_tolerance=risk_tolerance,
                    constraints=constraints,
                )

                tracker.transition(RunState.GENERATING)
                generator = self._generator(date_range, constraints)
                total_minutes = generator.total_bookable_minutes()
                history, degraded = self._resolve_history(provider_id, date_range)

                tracker.transition(RunState.FORECASTING)
                profile = self.planner.plan(
                    provider_id,
                    total_minutes,
                    constraints.working_hours,
                    history,
                    target_utilization,
                    RiskTolerance(risk_tolerance),
                    degraded=degraded,
                    appointment_type=appointment_type,
                )
                tracker.transition(RunState.COMPLETED)
            except SchedulingError:
                self._fail(tracker)
                raise
            finally:
                event.states = tracker.path

            event.recommended_capacity = profile.recommended_capacity
            event.overbooking_enabled = profile.overbooking_strategy.enabled
            event.high_risk_slots = profile.risk_mitigation.high_risk_slots
            event.degraded_data = degraded

        return profile

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def optimize_many(self, inputs: list[ScheduleInput]) -> list[BatchResult]:
        """Optimize independent inputs concurrently, preserving input order.

        A run that raises a SchedulingError yields that error in its position
        instead of aborting the batch.
        """
        if not inputs:
            return []

        results: list[BatchResult] = []
        with ThreadPoolExecutor(max_workers=self.settings.batch_max_workers) as pool:
            futures = [pool.submit(self.optimize_schedule, item) for item in inputs]
            for future in futures:
                try:
                    results.append(future.result())
                except SchedulingError as e:
                    results.append(e)

        failed = sum(1 for r in results if isinstance(r, SchedulingError))
        logger.info(f"Batch optimization finished: {len(results) - failed} succeeded, {failed} failed")
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def default_constraints(self) -> SchedulingConstraints:
        return SchedulingConstraints(
            working_hours=WorkingHours(
                start=self.settings.default_working_hours_start,
                end=self.settings.default_working_hours_end,
            )
        )

    def _generator(
        self,
        date_range: DateRange,
        constraints: SchedulingConstraints,
        preferences: Optional[SchedulingPreferences] = None,
    ) -> SlotGenerator:
        return SlotGenerator(
            date_range,
            constraints,
            preferences,
            granularity_minutes=self.settings.slot_granularity_minutes,
        )

    def _scorer(
        self,
        preferences: SchedulingPreferences,
        constraints: SchedulingConstraints,
        history: ProviderHistory,
        degraded: bool,
    ) -> PreferenceScorer:
        prime_hours = self.settings.prime_hours
        if not degraded and history.peak_hours:
            prime_hours = history.peak_hours
        return PreferenceScorer(
            preferences,
            working_start=constraints.working_hours.start,
            prime_hours=prime_hours,
            early_day_hours=self.settings.early_day_hours,
            high_risk_threshold=self.settings.high_risk_threshold,
            buffer_time=constraints.buffer_time,
        )

    def _resolve_history(self, provider_id: str, date_range: DateRange) -> tuple[ProviderHistory, bool]:
        """Provider history, or the default patterns when it carries no signal."""
        history = self.historical_data.get_provider_history(provider_id, date_range)
        if history.has_signal:
            return history, False
        logger.info(f"No historical data for provider {provider_id}; using default patterns")
        return DEFAULT_HISTORY, True

    @staticmethod
    def _fail(tracker: RunTracker) -> None:
        if tracker.can_fail():
            tracker.transition(RunState.FAILED)
