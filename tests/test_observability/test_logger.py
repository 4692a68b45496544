"""Tests for observability logger."""

import json

import pytest
from unittest.mock import MagicMock

from clinic_os.observability import (
    EventType,
    ObservabilityLogger,
    OptimizationRunEvent,
)


@pytest.fixture
def temp_log_dir(tmp_path):
    """Create temporary log directory."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


@pytest.fixture
def obs_logger(temp_log_dir):
    """Create observability logger with temp directory."""
    return ObservabilityLogger(log_dir=temp_log_dir, enabled=True)


def _events(path):
    return [json.loads(line) for line in path.read_text().strip().split("\n")]


class TestObservabilityLogger:
    """Tests for ObservabilityLogger."""

    def test_init_creates_log_directory(self, tmp_path):
        log_dir = tmp_path / "new_logs"
        ObservabilityLogger(log_dir=log_dir)

        assert log_dir.exists()

    def test_disabled_logger_touches_nothing(self, tmp_path):
        log_dir = tmp_path / "never"
        logger = ObservabilityLogger(log_dir=log_dir, enabled=False)

        with logger.optimization_run("dr-1", 2) as event:
            event.scheduled_count = 2

        assert not log_dir.exists()

    def test_optimization_run_success(self, obs_logger, temp_log_dir):
        with obs_logger.optimization_run("dr-1", 3, snapshot={"provider_id": "dr-1"}) as event:
            event.states = ["idle", "validating", "completed"]
            event.scheduled_count = 2
            event.unscheduled_count = 1
            event.conflicts_resolved = 1

        events = _events(temp_log_dir / "optimization_runs.jsonl")
        assert len(events) == 1
        assert events[0]["event_type"] == "optimization_success"
        assert events[0]["provider_id"] == "dr-1"
        assert events[0]["scheduled_count"] == 2
        assert events[0]["duration_ms"] is not None
        # Snapshots are only kept for failed runs
        assert events[0]["input_snapshot"] is None

    def test_optimization_run_error_keeps_snapshot(self, obs_logger, temp_log_dir):
        snapshot = {"provider_id": "dr-1", "appointment_requests": []}

        with pytest.raises(RuntimeError):
            with obs_logger.optimization_run("dr-1", 0, snapshot=snapshot):
                raise RuntimeError("Assignment failed")

        events = _events(temp_log_dir / "optimization_runs.jsonl")
        assert events[0]["event_type"] == "optimization_error"
        assert events[0]["error_type"] == "RuntimeError"
        assert "Assignment failed" in events[0]["error_message"]
        assert events[0]["input_snapshot"] == snapshot

    def test_snapshots_can_be_disabled(self, temp_log_dir):
        logger = ObservabilityLogger(log_dir=temp_log_dir, log_snapshots=False)

        with pytest.raises(ValueError):
            with logger.optimization_run("dr-1", 1, snapshot={"secret": True}):
                raise ValueError("bad")

        assert _events(temp_log_dir / "optimization_runs.jsonl")[0]["input_snapshot"] is None

    def test_capacity_plan(self, obs_logger, temp_log_dir):
        with obs_logger.capacity_plan("dr-1", 0.85, "high") as event:
            event.recommended_capacity = 14
            event.overbooking_enabled = True

        events = _events(temp_log_dir / "capacity_plans.jsonl")
        assert events[0]["event_type"] == "capacity_plan_success"
        assert events[0]["risk_tolerance"] == "high"
        assert events[0]["recommended_capacity"] == 14

    def test_capacity_plan_error(self, obs_logger, temp_log_dir):
        with pytest.raises(KeyError):
            with obs_logger.capacity_plan("dr-1", 0.85, "medium"):
                raise KeyError("history")

        events = _events(temp_log_dir / "capacity_plans.jsonl")
        assert events[0]["event_type"] == "capacity_plan_error"
        assert events[0]["error_type"] == "KeyError"

    def test_slot_suggestion_logging(self, obs_logger, temp_log_dir):
        obs_logger.log_slot_suggestion(
            provider_id="dr-1",
            patient_id="pat-1",
            max_suggestions=5,
            suggestions_count=3,
            top_preference=7.25,
            duration_ms=4.2,
        )

        events = _events(temp_log_dir / "slot_suggestions.jsonl")
        assert events[0]["event_type"] == "slot_suggestion"
        assert events[0]["suggestions_count"] == 3
        assert events[0]["top_preference"] == 7.25

    def test_callbacks(self, obs_logger):
        callback = MagicMock()
        obs_logger.add_callback(callback)

        with obs_logger.optimization_run("dr-1", 1):
            pass

        callback.assert_called_once()
        event = callback.call_args[0][0]
        assert isinstance(event, OptimizationRunEvent)
        assert event.event_type == EventType.OPTIMIZATION_SUCCESS

    def test_failing_callback_does_not_break_run(self, obs_logger, temp_log_dir):
        obs_logger.add_callback(MagicMock(side_effect=RuntimeError("monitor down")))

        with obs_logger.capacity_plan("dr-1", 0.85, "low"):
            pass

        assert (temp_log_dir / "capacity_plans.jsonl").exists()

    def test_request_id_propagates(self, obs_logger, temp_log_dir):
        with obs_logger.optimization_run("dr-1", 1, request_id="abc12345"):
            pass

        assert _events(temp_log_dir / "optimization_runs.jsonl")[0]["request_id"] == "abc12345"

    def test_generate_request_id(self, obs_logger):
        assert len(obs_logger.generate_request_id()) == 8
        assert obs_logger.generate_request_id() != obs_logger.generate_request_id()


class TestLogReading:
    def test_recent_events_limit(self, obs_logger):
        for i in range(5):
            with obs_logger.optimization_run(f"dr-{i}", 1):
                pass

        events = obs_logger.get_recent_events("optimization", limit=2)

        assert [e["provider_id"] for e in events] == ["dr-3", "dr-4"]

    def test_missing_log_returns_empty(self, obs_logger):
        assert obs_logger.get_recent_events("capacity") == []
        assert obs_logger.get_stats("capacity") == {"total": 0}

    def test_stats(self, obs_logger):
        with obs_logger.optimization_run("dr-1", 1):
            pass
        with pytest.raises(ValueError):
            with obs_logger.optimization_run("dr-1", 1):
                raise ValueError("bad")

        stats = obs_logger.get_stats("optimization")

        assert stats["total"] == 2
        assert stats["errors"] == 1
        assert stats["error_rate"] == 0.5
        assert stats["avg_duration_ms"] >= 0


class TestEngineTelemetry:
    def test_engine_writes_run_events(self, settings, three_request_input, tmp_path):
        from clinic_os.scheduling import SchedulingEngine

        obs = ObservabilityLogger(log_dir=tmp_path / "runs")
        engine = SchedulingEngine(settings=settings, observability=obs)

        engine.optimize_schedule(three_request_input)

        event = obs.get_recent_events("optimization")[0]
        assert event["scheduled_count"] == 3
        assert event["states"][-1] == "completed"
