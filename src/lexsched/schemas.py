"""Pydantic schemas for task, link and project records.

The same schemas validate YAML project files and the record shapes exchanged
with collaborators, so both accept snake_case and camelCase keys.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .calendar import HolidayPeriod, WorkingCalendar
from .models import ConstraintKind, LinkType


def _snake_case(key: str) -> str:
    if "_" in key or key.isupper():
        return key.lower()
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key).lstrip("_")


def _reference_id(v: Any) -> Any:
    """Reduce a task or user reference to its id.

    References arrive as bare ids (YAML may make them ints) or as populated
    documents such as ``{"_id": "u1", "name": "Alice"}``.
    """
    if isinstance(v, dict):
        v = v.get("_id", v.get("id"))  # type: ignore[union-attr]
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class ConstraintSchema(BaseModel):
    """Schema for a manual date constraint."""

    model_config = ConfigDict(populate_by_name=True)

    kind: ConstraintKind = Field(validation_alias=AliasChoices("kind", "type"))
    constraint_date: date = Field(validation_alias=AliasChoices("date", "constraint_date"))

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        """Accept "SNET", "mustStartOn" and friends."""
        if isinstance(v, str):
            key = v.strip()
            short = {
                "snet": "start_no_earlier_than",
                "mso": "must_start_on",
                "mfo": "must_finish_on",
            }
            if key.lower() in short:
                return short[key.lower()]
            return _snake_case(key)
        return v


class TaskDependencySchema(BaseModel):
    """One entry of a task's ``dependencies`` list.

    ``blocked_by`` makes the referenced task a predecessor, ``blocks`` a
    successor. Other kinds (``relates_to``) carry no precedence.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = "blocked_by"
    task_id: str = Field(validation_alias=AliasChoices("task_id", "taskId", "id", "_id"))

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        return _snake_case(v.strip()) if isinstance(v, str) else v

    @field_validator("task_id", mode="before")
    @classmethod
    def coerce_reference(cls, v: Any) -> Any:
        return _reference_id(v)


class TaskSchema(BaseModel):
    """Schema for one task record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "_id", "task_id", "taskId"))
    duration: int = Field(default=0, ge=0)
    name: str = Field(default="", validation_alias=AliasChoices("name", "text", "title"))
    is_milestone: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_milestone", "isMilestone", "milestone"),
    )
    assignee_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "assignee_id", "assigneeId", "assignee", "assignedTo", "assigned_to"
        ),
    )
    progress: int = Field(default=0, ge=0, le=100)
    manual_constraint: ConstraintSchema | None = Field(
        default=None,
        validation_alias=AliasChoices("manual_constraint", "manualConstraint", "constraint"),
    )
    effort_minutes: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("effort_minutes", "effortMinutes", "estimatedMinutes"),
    )
    requires: list[str] = Field(default_factory=list)
    blocked_by: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("blocked_by", "blockedBy")
    )
    dependencies: list[TaskDependencySchema] = Field(default_factory=list[TaskDependencySchema])

    @field_validator("id", "assignee_id", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        """YAML turns bare numeric ids into ints; populated users become their id."""
        return _reference_id(v)

    @field_validator("blocked_by", mode="before")
    @classmethod
    def coerce_blockers(cls, v: Any) -> Any:
        if v is None:
            return []
        if not isinstance(v, list):
            v = [v]
        return [_reference_id(item) for item in v]  # type: ignore[union-attr]

    @field_validator("dependencies", mode="before")
    @classmethod
    def dependencies_default(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("requires", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> list[str]:
        """Ensure value is a list."""
        if v is None:
            return []
        if isinstance(v, list):
            return [str(item) for item in v]  # type: ignore[misc]
        return [str(v)]


class LinkSchema(BaseModel):
    """Schema for one dependency link record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source: str = Field(validation_alias=AliasChoices("source", "source_id", "sourceId"))
    target: str = Field(validation_alias=AliasChoices("target", "target_id", "targetId"))
    type: LinkType = LinkType.FINISH_TO_START
    lag: int = 0

    @field_validator("source", "target", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("type", mode="before")
    @classmethod
    def parse_link_type(cls, v: Any) -> LinkType:
        """Accept wire codes (0-3, int or string), names and FS/SS/FF/SF."""
        if v is None:
            return LinkType.FINISH_TO_START
        return LinkType.parse(v)


class CalendarSchema(BaseModel):
    """Schema for a project calendar record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    working_weekdays: list[int | str] | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "working_weekdays", "workingWeekdays", "working_days", "workingDays"
        ),
    )
    holidays: list[date] = Field(default_factory=list)
    holiday_periods: list[HolidayPeriod] = Field(
        default_factory=list[HolidayPeriod],
        validation_alias=AliasChoices("holiday_periods", "holidayPeriods"),
    )
    lookahead_days: int | None = Field(
        default=None, validation_alias=AliasChoices("lookahead_days", "lookaheadDays")
    )

    def to_calendar(self) -> WorkingCalendar:
        data: dict[str, Any] = {
            "holidays": self.holidays,
            "holiday_periods": self.holiday_periods,
        }
        if self.working_weekdays is not None:
            data["working_weekdays"] = self.working_weekdays
        if self.lookahead_days is not None:
            data["lookahead_days"] = self.lookahead_days
        return WorkingCalendar.model_validate(data)


class ProjectSchema(BaseModel):
    """Schema for a whole project file."""

    model_config = ConfigDict(populate_by_name=True)

    project: str = Field(
        default="", validation_alias=AliasChoices("project", "project_id", "projectId")
    )
    anchor_date: date | None = Field(
        default=None, validation_alias=AliasChoices("anchor_date", "anchorDate")
    )
    calendar: CalendarSchema | None = None
    tasks: list[TaskSchema] = Field(default_factory=list[TaskSchema])
    links: list[LinkSchema] = Field(default_factory=list[LinkSchema])

    @field_validator("tasks", mode="before")
    @classmethod
    def tasks_from_mapping(cls, v: Any) -> Any:
        """Allow ``tasks`` keyed by id as well as a list of records."""
        if v is None:
            return []
        if isinstance(v, dict):
            tasks: list[dict[str, Any]] = []
            for task_id, data in v.items():  # type: ignore[misc]
                record: dict[str, Any] = dict(data or {})  # type: ignore[arg-type]
                record["id"] = str(task_id)  # type: ignore[arg-type]
                tasks.append(record)
            return tasks
        return v

    @field_validator("links", mode="before")
    @classmethod
    def links_default(cls, v: Any) -> Any:
        return [] if v is None else v

