"""Scheduler package - critical path scheduling on a working calendar.

This package provides:
- CPM forward/backward pass with float and every critical path
- Auto-scheduling of working-day offsets onto calendar dates
- Resource conflict and overallocation detection
- Baseline capture and variance analysis
- Project summaries and assignee suggestions

Main entry points:
- SchedulingService: High-level service for one scheduling request
- compute_timing: Forward/backward pass over a DependencyGraph
- AutoScheduler: Offsets to calendar dates
- find_conflicts: Overlapping assignments and workload per assignee
"""

from .auto import AutoScheduler
from .baseline import (
    BaselineComparison,
    BaselineEntry,
    BaselineSnapshot,
    ScopeChanges,
    TaskVariance,
    capture_baseline,
    compare_to_baseline,
    read_baseline_file,
    write_baseline_file,
)

# Configuration
from .config import SchedulingConfig
from .conflicts import (
    assignments_from_schedule,
    daily_load,
    find_conflicts,
    rank_assignees,
    suggest_assignees,
)
from .core import (
    AssigneeLoad,
    ConflictPair,
    ConflictReport,
    DayLoad,
    Schedule,
    SchedulingResult,
    TaskTiming,
    TimingResult,
)
from .cpm import CriticalPathScheduler, compute_timing

# High-level service
from .service import SchedulingService
from .summary import ProjectSummary, project_summary

__all__ = [
    # Core dataclasses
    "TaskTiming",
    "TimingResult",
    "Schedule",
    "ConflictPair",
    "ConflictReport",
    "DayLoad",
    "AssigneeLoad",
    "SchedulingResult",
    # Configuration
    "SchedulingConfig",
    # CPM
    "CriticalPathScheduler",
    "compute_timing",
    # Auto-scheduling
    "AutoScheduler",
    # Conflicts
    "assignments_from_schedule",
    "daily_load",
    "find_conflicts",
    "rank_assignees",
    "suggest_assignees",
    # Summary
    "ProjectSummary",
    "project_summary",
    # Baselines
    "BaselineEntry",
    "BaselineSnapshot",
    "BaselineComparison",
    "ScopeChanges",
    "TaskVariance",
    "capture_baseline",
    "compare_to_baseline",
    "read_baseline_file",
    "write_baseline_file",
    # High-level service
    "SchedulingService",
]
