"""Tests for the run lifecycle state machine."""

import pytest

from clinic_os.scheduling import ComputationError
from clinic_os.scheduling.state import RunState, RunTracker


class TestRunTracker:
    def test_optimization_path(self):
        tracker = RunTracker("optimization")
        for state in (
            RunState.VALIDATING,
            RunState.GENERATING,
            RunState.SCORING,
            RunState.ASSIGNING,
            RunState.FORECASTING,
            RunState.COMPLETED,
        ):
            tracker.transition(state)

        assert tracker.terminal
        assert tracker.path[0] == "idle"
        assert tracker.path[-1] == "completed"

    def test_capacity_path_skips_assignment(self):
        tracker = RunTracker("capacity")
        tracker.transition(RunState.VALIDATING)
        tracker.transition(RunState.GENERATING)
        tracker.transition(RunState.FORECASTING)

        assert tracker.state is RunState.FORECASTING

    def test_illegal_transition_raises(self):
        tracker = RunTracker("optimization")

        with pytest.raises(ComputationError, match="idle -> assigning"):
            tracker.transition(RunState.ASSIGNING)

    @pytest.mark.parametrize(
        "path,can_fail",
        [
            ([RunState.VALIDATING], True),
            ([RunState.VALIDATING, RunState.GENERATING], False),
            ([RunState.VALIDATING, RunState.GENERATING, RunState.SCORING, RunState.ASSIGNING], True),
        ],
    )
    def test_failure_only_from_validating_or_assigning(self, path, can_fail):
        tracker = RunTracker("optimization")
        for state in path:
            tracker.transition(state)

        assert tracker.can_fail() is can_fail

    def test_no_retry_after_completion(self):
        tracker = RunTracker("capacity")
        for state in (RunState.VALIDATING, RunState.FAILED):
            tracker.transition(state)

        with pytest.raises(ComputationError):
            tracker.transition(RunState.VALIDATING)
