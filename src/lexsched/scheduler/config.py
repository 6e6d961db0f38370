"""Configuration classes for the scheduling engine."""

from pydantic import BaseModel, Field

DEFAULT_MINUTES_PER_DAY = 480  # 8 hour working day


class SchedulingConfig(BaseModel):
    """Tuning knobs for one scheduling request."""

    # Return timing with infeasible tasks flagged instead of raising
    best_effort: bool = False

    # Stop enumerating alternative critical paths after this many (None = all)
    max_critical_paths: int | None = Field(default=None, gt=0)

    # Working minutes in one duration unit (one working day)
    minutes_per_day: int = Field(default=DEFAULT_MINUTES_PER_DAY, gt=0)

    # Allocated minutes per assignee per day above which a day is overallocated
    daily_capacity_minutes: int = Field(default=DEFAULT_MINUTES_PER_DAY, gt=0)

    # Run conflict detection over the auto-scheduled intervals
    detect_conflicts: bool = True
