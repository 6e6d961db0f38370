"""Custom exceptions for lexsched."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


class LexschedError(Exception):
    """Base exception for all lexsched errors."""

    pass


class ValidationError(LexschedError):
    """Raised when a task graph fails structural validation."""

    pass


class DuplicateTaskError(ValidationError):
    """Raised when two task nodes share an id."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Duplicate task id: {task_id}")


class UnknownNodeReferenceError(ValidationError):
    """Raised when a link references a task id that does not exist."""

    def __init__(self, source_id: str, target_id: str, missing_id: str):
        self.source_id = source_id
        self.target_id = target_id
        self.missing_id = missing_id
        super().__init__(f"Link {source_id} -> {target_id} references unknown task: {missing_id}")


class SelfDependencyError(ValidationError):
    """Raised when a link points from a task to itself."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} cannot depend on itself")


class CycleDetectedError(ValidationError):
    """Raised when the dependency links contain a cycle."""

    def __init__(self, path: list[str]):
        self.path = path
        super().__init__(f"Circular dependency detected: {' -> '.join(path)}")


@dataclass(frozen=True)
class ConstraintViolation:
    """A task whose manual constraint cannot be met."""

    task_id: str
    total_float: int
    constraint_kind: str | None = None
    constraint_date: date | None = None

    def describe(self) -> str:
        """Human-readable description of the violation."""
        msg = f"Task '{self.task_id}' has negative float ({self.total_float})"
        if self.constraint_kind:
            msg += f" due to {self.constraint_kind} {self.constraint_date}"
        return msg


class ScheduleInfeasibleError(LexschedError):
    """Raised when manual constraints produce negative float."""

    def __init__(self, violations: list[ConstraintViolation]):
        self.violations = violations
        details = "; ".join(v.describe() for v in violations)
        super().__init__(f"Schedule is infeasible: {details}")


class CalendarExhaustedError(LexschedError):
    """Raised when the calendar has no working day within the lookahead horizon."""

    def __init__(self, start: date, lookahead_days: int):
        self.start = start
        self.lookahead_days = lookahead_days
        super().__init__(
            f"No working day found within {lookahead_days} days of {start.isoformat()}; "
            "check the calendar's working weekdays and holidays"
        )


class ParseError(LexschedError):
    """Raised when a project or baseline file cannot be parsed."""

    pass
