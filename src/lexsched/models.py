"""Data models for task graphs and computed schedules."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum

# Duration conversion constants (working days)
DAYS_PER_WEEK = 5
MAX_PROGRESS = 100


class LinkType(str, Enum):
    """Precedence relationship between two tasks."""

    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"

    @property
    def code(self) -> int:
        """Integer code used by the Gantt wire contract."""
        return _LINK_CODES[self]

    @property
    def abbreviation(self) -> str:
        return _LINK_ABBREVIATIONS[self]

    @classmethod
    def from_code(cls, code: int | str) -> LinkType:
        """Map a wire code (0-3, int or numeric string) to a link type."""
        try:
            return _LINKS_BY_CODE[int(code)]
        except (KeyError, ValueError):
            raise ValueError(f"Unknown link type code: {code!r}") from None

    @classmethod
    def parse(cls, value: LinkType | int | str) -> LinkType:
        """Accept an enum member, a wire code, a name or an abbreviation (FS/SS/FF/SF)."""
        if isinstance(value, LinkType):
            return value
        if isinstance(value, int):
            return cls.from_code(value)
        text = value.strip()
        if text.isdigit():
            return cls.from_code(text)
        upper = text.upper()
        for member, abbreviation in _LINK_ABBREVIATIONS.items():
            if upper == abbreviation:
                return member
        return cls(text.lower())


_LINK_CODES = {
    LinkType.FINISH_TO_START: 0,
    LinkType.START_TO_START: 1,
    LinkType.FINISH_TO_FINISH: 2,
    LinkType.START_TO_FINISH: 3,
}
_LINKS_BY_CODE = {code: link_type for link_type, code in _LINK_CODES.items()}
_LINK_ABBREVIATIONS = {
    LinkType.FINISH_TO_START: "FS",
    LinkType.START_TO_START: "SS",
    LinkType.FINISH_TO_FINISH: "FF",
    LinkType.START_TO_FINISH: "SF",
}


class ConstraintKind(str, Enum):
    """Kinds of manual date constraint a task may carry."""

    START_NO_EARLIER_THAN = "start_no_earlier_than"
    MUST_START_ON = "must_start_on"
    MUST_FINISH_ON = "must_finish_on"


@dataclass(frozen=True)
class ManualConstraint:
    """A user-pinned date constraint on a task."""

    kind: ConstraintKind
    date: date


@dataclass(frozen=True)
class TaskNode:
    """A task in the dependency graph.

    Durations are whole working days. Milestones always have zero duration.
    """

    id: str
    duration: int = 0
    name: str = ""
    is_milestone: bool = False
    assignee_id: str | None = None
    progress: int = 0
    manual_constraint: ManualConstraint | None = None
    effort_minutes: int | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Task id must not be empty")
        if self.duration < 0:
            raise ValueError(f"Task '{self.id}' has negative duration {self.duration}")
        if not 0 <= self.progress <= MAX_PROGRESS:
            raise ValueError(f"Task '{self.id}' progress must be between 0 and 100")
        if self.is_milestone and self.duration != 0:
            object.__setattr__(self, "duration", 0)

    @property
    def label(self) -> str:
        return self.name or self.id


# "draft", "draft + 2d", "draft SS", "research FF - 1d", "intake SS + 1w"
_LINK_SPEC_RE = re.compile(
    r"^(?P<id>\S+?)"
    r"(?:\s+(?P<type>FS|SS|FF|SF))?"
    r"(?:\s+(?P<sign>[+-])\s*(?P<value>\d+)(?P<unit>[dw])?)?$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class DependencyLink:
    """A precedence link from ``source_id`` to ``target_id``.

    Lag is a signed number of working days: positive delays the target,
    negative (a lead) lets it overlap the source.
    """

    source_id: str
    target_id: str
    type: LinkType = LinkType.FINISH_TO_START
    lag: int = 0

    @classmethod
    def parse(cls, spec: str, target_id: str) -> DependencyLink:
        """Parse a compact predecessor spec into a link targeting ``target_id``.

        Supported formats:
        - "draft" - finish-to-start, no lag
        - "draft + 2d" - finish-to-start with 2 working days lag
        - "draft SS" - start-to-start
        - "draft FF - 1d" - finish-to-finish with a 1 day lead
        - "draft + 1w" - one working week (5 days) lag
        """
        match = _LINK_SPEC_RE.match(spec.strip())
        if not match:
            raise ValueError(f"Invalid dependency spec: {spec!r}")

        link_type = LinkType.parse(match["type"]) if match["type"] else LinkType.FINISH_TO_START
        lag = 0
        if match["value"] is not None:
            lag = int(match["value"])
            if (match["unit"] or "d").lower() == "w":
                lag *= DAYS_PER_WEEK
            if match["sign"] == "-":
                lag = -lag

        return cls(source_id=match["id"], target_id=target_id, type=link_type, lag=lag)

    def __str__(self) -> str:
        text = self.source_id
        if self.type != LinkType.FINISH_TO_START:
            text += f" {self.type.abbreviation}"
        if self.lag:
            sign = "+" if self.lag > 0 else "-"
            text += f" {sign} {abs(self.lag)}d"
        return text


@dataclass(frozen=True)
class ScheduledInterval:
    """Concrete calendar dates for one task. ``end`` is exclusive."""

    task_id: str
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Interval for '{self.task_id}' ends before it starts")

    @property
    def elapsed_days(self) -> int:
        return (self.end - self.start).days


@dataclass(frozen=True)
class ResourceAssignment:
    """One assignee holding one task over a half-open interval."""

    assignee_id: str
    task_id: str
    start: date
    end: date
    effort_minutes: int | None = None

    def overlaps(self, other: ResourceAssignment) -> bool:
        """Half-open overlap test; back-to-back intervals do not overlap."""
        return self.start < other.end and other.start < self.end
