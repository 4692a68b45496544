"""Lifecycle state machine shared by optimization and capacity runs."""

from enum import Enum

from clinic_os.scheduling.errors import ComputationError


class RunState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    GENERATING = "generating"
    SCORING = "scoring"
    ASSIGNING = "assigning"
    FORECASTING = "forecasting"
    COMPLETED = "completed"
    FAILED = "failed"


# Capacity runs go straight from generating to forecasting.
TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.VALIDATING}),
    RunState.VALIDATING: frozenset({RunState.GENERATING, RunState.FAILED}),
    RunState.GENERATING: frozenset({RunState.SCORING, RunState.FORECASTING}),
    RunState.SCORING: frozenset({RunState.ASSIGNING}),
    RunState.ASSIGNING: frozenset({RunState.FORECASTING, RunState.FAILED}),
    RunState.FORECASTING: frozenset({RunState.COMPLETED}),
    RunState.COMPLETED: frozenset(),
    RunState.FAILED: frozenset(),
}


class RunTracker:
    """Tracks one run through its states; no retries."""

    def __init__(self, run_type: str) -> None:
        self.run_type = run_type
        self.state = RunState.IDLE
        self.history: list[RunState] = [RunState.IDLE]

    def transition(self, to: RunState) -> None:
        if to not in TRANSITIONS[self.state]:
            raise ComputationError(
                f"illegal {self.run_type} state transition {self.state.value} -> {to.value}"
            )
        self.state = to
        self.history.append(to)

    def can_fail(self) -> bool:
        return RunState.FAILED in TRANSITIONS[self.state]

    @property
    def terminal(self) -> bool:
        return not TRANSITIONS[self.state]

    @property
    def path(self) -> list[str]:
        return [s.value for s in self.history]
