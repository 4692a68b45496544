"""Observability logger for structured scheduling telemetry."""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Optional

from clinic_os.observability.events import (
    CapacityPlanEvent,
    EventType,
    ObservabilityEvent,
    OptimizationRunEvent,
    SlotSuggestionEvent,
)

logger = logging.getLogger(__name__)


class ObservabilityLogger:
    """Logger for scheduling run events.

    Writes structured events to JSON Lines files for later analysis. Instances
    are passed to the engine explicitly; there is no process-wide logger.
    """

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        enabled: bool = True,
        log_snapshots: bool = True,
    ):
        """Initialize observability logger.

        Args:
            log_dir: Directory for log files (default: data/logs)
            enabled: Whether logging is enabled
            log_snapshots: Whether failed runs record their full input
        """
        self.enabled = enabled
        self.log_snapshots = log_snapshots

        if log_dir is None:
            log_dir = Path("data/logs")
        self.log_dir = log_dir
        if self.enabled:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        # Separate files for different event types
        self._log_files: dict[str, Path] = {
            "optimization": self.log_dir / "optimization_runs.jsonl",
            "capacity": self.log_dir / "capacity_plans.jsonl",
            "suggestions": self.log_dir / "slot_suggestions.jsonl",
        }

        # Event callbacks for real-time monitoring
        self._callbacks: list[Callable[[ObservabilityEvent], None]] = []

    def generate_request_id(self) -> str:
        """Generate a unique request ID."""
        return str(uuid.uuid4())[:8]

    def add_callback(self, callback: Callable[[ObservabilityEvent], None]) -> None:
        """Add callback for real-time event monitoring."""
        self._callbacks.append(callback)

    def _write_event(self, event: ObservabilityEvent, log_type: str) -> None:
        """Write event to appropriate log file."""
        if not self.enabled:
            return

        try:
            log_file = self._log_files.get(log_type)
            if log_file:
                with open(log_file, "a") as f:
                    f.write(event.model_dump_json() + "\n")

            # Trigger callbacks
            for callback in self._callbacks:
                try:
                    callback(event)
                except Exception as e:
                    logger.warning(f"Observability callback failed: {e}")

        except OSError as e:
            logger.warning(f"Failed to write observability event: {e}")

    # Optimization Logging

    @contextmanager
    def optimization_run(
        self,
        provider_id: str,
        request_count: int,
        snapshot: Optional[dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        """Context manager for logging optimization runs.

        Usage:
            with obs.optimization_run(provider_id, len(requests), snapshot) as event:
                result = engine.run(...)
                event.scheduled_count = len(result.optimized_schedule)
        """
        start_time = time.time()
        request_id = request_id or self.generate_request_id()

        event = OptimizationRunEvent(
            event_type=EventType.OPTIMIZATION_START,
            provider_id=provider_id,
            request_count=request_count,
            request_id=request_id,
        )

        try:
            yield event
            event.event_type = EventType.OPTIMIZATION_SUCCESS

        except Exception as e:
            event.event_type = EventType.OPTIMIZATION_ERROR
            event.error_type = type(e).__name__
            event.error_message = str(e)[:500]
            if self.log_snapshots:
                event.input_snapshot = snapshot
            raise

        finally:
            event.duration_ms = (time.time() - start_time) * 1000
            self._write_event(event, "optimization")

    # Capacity Logging

    @contextmanager
    def capacity_plan(
        self,
        provider_id: str,
        target_utilization: float,
        risk_tolerance: str,
        request_id: Optional[str] = None,
    ):
        """Context manager for logging capacity planning runs."""
        start_time = time.time()
        request_id = request_id or self.generate_request_id()

        event = CapacityPlanEvent(
            event_type=EventType.CAPACITY_PLAN_START,
            provider_id=provider_id,
            target_utilization=target_utilization,
            risk_tolerance=risk_tolerance,
            request_id=request_id,
        )

        try:
            yield event
            event.event_type = EventType.CAPACITY_PLAN_SUCCESS

        except Exception as e:
            event.event_type = EventType.CAPACITY_PLAN_ERROR
            event.error_type = type(e).__name__
            event.error_message = str(e)[:500]
            raise

        finally:
            event.duration_ms = (time.time() - start_time) * 1000
            self._write_event(event, "capacity")

    # Suggestion Logging

    def log_slot_suggestion(
        self,
        provider_id: str,
        patient_id: str,
        max_suggestions: int,
        suggestions_count: int,
        top_preference: Optional[float] = None,
        duration_ms: Optional[float] = None,
        request_id: Optional[str] = None,
    ) -> None:
        """Log a slot suggestion request."""
        event = SlotSuggestionEvent(
            provider_id=provider_id,
            patient_id=patient_id,
            max_suggestions=max_suggestions,
            suggestions_count=suggestions_count,
            top_preference=top_preference,
            duration_ms=duration_ms,
            request_id=request_id,
        )
        self._write_event(event, "suggestions")

    # Utility methods

    def get_recent_events(
        self,
        log_type: str,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Read recent events from a log file."""
        log_file = self._log_files.get(log_type)
        if not log_file or not log_file.exists():
            return []

        events = []
        with open(log_file) as f:
            for line in f:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]

    def get_stats(self, log_type: str) -> dict[str, Any]:
        """Get basic statistics for a log type."""
        events = self.get_recent_events(log_type, limit=1000)
        if not events:
            return {"total": 0}

        total = len(events)
        errors = sum(1 for e in events if "error" in e.get("event_type", ""))
        avg_duration = sum(e.get("duration_ms") or 0 for e in events) / total

        return {
            "total": total,
            "errors": errors,
            "error_rate": errors / total if total > 0 else 0,
            "avg_duration_ms": avg_duration,
        }
