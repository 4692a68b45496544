"""Scheduling engine errors and tagged issue records."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class IssueKind(str, Enum):
    """Severity tag for an issue raised while checking or running a schedule."""

    ERROR = "error"
    WARNING = "warning"
    RECOMMENDATION = "recommendation"


class Issue(BaseModel):
    """A single tagged finding about the input or the result."""

    kind: IssueKind = IssueKind.ERROR
    field: str
    message: str
    priority: int = Field(default=0, description="Higher sorts first")

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class SchedulingError(Exception):
    """Base exception for scheduling engine errors."""

    pass


class ValidationError(SchedulingError):
    """Input rejected before any computation; carries every violation found."""

    def __init__(self, issues: list[Issue]):
        self.issues = list(issues)
        summary = "; ".join(str(i) for i in self.issues) or "invalid input"
        super().__init__(f"{len(self.issues)} validation error(s): {summary}")


class ComputationError(SchedulingError):
    """An internal invariant was violated during a run."""

    def __init__(self, message: str, snapshot: Optional[dict[str, Any]] = None):
        self.snapshot = snapshot or {}
        super().__init__(message)


class OptimizationCancelled(SchedulingError):
    """The caller cancelled the run before the assigner finished."""

    pass
