"""Command-line interface for lexsched."""

from __future__ import annotations

import csv
import json
from datetime import date
from pathlib import Path
from typing import Annotated

import typer

from . import context
from .exceptions import LexschedError
from .gantt import GanttRenderer, GroupBy
from .graph import DependencyGraph
from .logger import setup_logger
from .parser import Project, load_project
from .scheduler import (
    SchedulingResult,
    SchedulingService,
    assignments_from_schedule,
    capture_baseline,
    compare_to_baseline,
    find_conflicts,
    read_baseline_file,
    suggest_assignees,
    write_baseline_file,
)
from .unified_config import discover_config
from .wire import assignee_loads_to_record, schedule_to_records

app = typer.Typer(
    name="lexsched",
    help="Task dependency and critical-path scheduling for matters and projects",
    add_completion=False,
)
baseline_app = typer.Typer(help="Capture baselines and compare schedules against them")

ProjectFile = Annotated[Path, typer.Argument(help="Path to the project YAML file")]
AnchorOption = Annotated[
    str | None,
    typer.Option(
        "--anchor-date",
        "-a",
        help="Project anchor date (YYYY-MM-DD). Overrides the project file; defaults to today",
    ),
]


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to config file (default: lexsched_config.yaml)",
        ),
    ] = None,
) -> None:
    """Global options for lexsched commands."""
    setup_logger(verbose)
    context.set_config_path(config)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _parse_date_option(date_str: str | None, option_name: str) -> date | None:
    """Parse a YYYY-MM-DD CLI option, exiting with an error if malformed."""
    if date_str is None:
        return None
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise _fail(
            f"Invalid date format '{date_str}' for --{option_name}. Use YYYY-MM-DD format."
        ) from None


def _run_schedule(
    file: Path,
    anchor_date: str | None,
    *,
    best_effort: bool = False,
    as_of: date | None = None,
) -> tuple[Project, DependencyGraph, SchedulingResult]:
    """Load a project with its config and schedule it.

    Engine errors are reported on stderr and end the command with exit code 1.
    """
    parsed_anchor = _parse_date_option(anchor_date, "anchor-date")
    try:
        project = load_project(file)
        config = discover_config(file)
        scheduler_config = config.scheduler
        if best_effort:
            scheduler_config = scheduler_config.model_copy(update={"best_effort": True})
        graph = project.build_graph()
        service = SchedulingService(
            graph,
            anchor_date=parsed_anchor or project.anchor_date,
            calendar=project.calendar or config.calendar,
            config=scheduler_config,
            project_id=project.project_id,
        )
        result = service.schedule(as_of=as_of)
    except LexschedError as e:
        raise _fail(str(e)) from None
    return project, graph, result


def _display_schedule_results(graph: DependencyGraph, result: SchedulingResult) -> None:
    typer.echo(f"Schedule: {result.project_id}")
    typer.echo("=" * 80)
    typer.echo(
        f"{'Task':<24} {'Start':<10}  {'End':<10}  {'Dur':>4} {'ES':>4} {'EF':>4} "
        f"{'LS':>4} {'LF':>4} {'Float':>5}"
    )
    for node in graph.nodes:
        interval = result.schedule.intervals[node.id]
        timing = result.timing.per_task[node.id]
        marker = " *" if timing.is_critical else ""
        typer.echo(
            f"{node.id:<24} {interval.start.isoformat()}  {interval.end.isoformat()}  "
            f"{node.duration:>4} {timing.earliest_start:>4} {timing.earliest_finish:>4} "
            f"{timing.latest_start:>4} {timing.latest_finish:>4} {timing.total_float:>5}{marker}"
        )
    typer.echo("")
    typer.echo(f"Project duration: {result.timing.project_duration} working day(s)")
    if result.schedule.project_end is not None:
        typer.echo(f"Project end: {result.schedule.project_end.isoformat()}")
    typer.echo("* critical")


def _export_schedule_csv(
    graph: DependencyGraph, result: SchedulingResult, output_path: Path
) -> None:
    """Export schedule results to CSV."""
    with output_path.open("w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(
            [
                "task_id",
                "task_name",
                "assignee",
                "start_date",
                "end_date",
                "duration",
                "float",
                "critical",
            ]
        )
        for node in graph.nodes:
            interval = result.schedule.intervals[node.id]
            timing = result.timing.per_task[node.id]
            writer.writerow(
                [
                    node.id,
                    node.name,
                    node.assignee_id or "",
                    interval.start.isoformat(),
                    interval.end.isoformat(),
                    node.duration,
                    timing.total_float,
                    "yes" if timing.is_critical else "no",
                ]
            )


def _display_warnings(result: SchedulingResult) -> None:
    if result.warnings:
        typer.echo("\nWarnings:", err=True)
        for warning in result.warnings:
            typer.echo(f"  - {warning}", err=True)


@app.command()
def schedule(
    file: ProjectFile,
    anchor_date: AnchorOption = None,
    *,
    best_effort: Annotated[
        bool,
        typer.Option(
            "--best-effort",
            help="Report infeasible constraints as warnings instead of failing",
        ),
    ] = False,
    output_csv: Annotated[
        Path | None,
        typer.Option("--output-csv", help="Export schedule results to CSV file"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the schedule as Gantt contract JSON"),
    ] = False,
) -> None:
    """Compute the critical-path schedule and show task dates and float."""
    _, graph, result = _run_schedule(file, anchor_date, best_effort=best_effort)

    if output_csv:
        _export_schedule_csv(graph, result, output_csv)
        typer.echo(f"Schedule exported to {output_csv}")
    elif as_json:
        typer.echo(json.dumps(schedule_to_records(result, graph), indent=2))
    else:
        _display_schedule_results(graph, result)

    _display_warnings(result)


@app.command(name="critical-path")
def critical_path(
    file: ProjectFile,
    anchor_date: AnchorOption = None,
) -> None:
    """List every critical path of the project."""
    _, graph, result = _run_schedule(file, anchor_date)
    paths = result.timing.critical_paths
    typer.echo(
        f"Project duration: {result.timing.project_duration} working day(s), "
        f"{len(paths)} critical path(s)"
    )
    for i, path in enumerate(paths, start=1):
        typer.echo(f"  {i}. {' -> '.join(path)}")
    bottlenecks = graph.bottlenecks()
    if bottlenecks:
        typer.echo("\nBottlenecks (tasks with most direct dependents):")
        for task_id, count in bottlenecks:
            typer.echo(f"  {task_id}: {count}")
    _display_warnings(result)


@app.command()
def conflicts(
    file: ProjectFile,
    anchor_date: AnchorOption = None,
    *,
    range_from: Annotated[
        str | None,
        typer.Option("--from", help="Start of the query range (YYYY-MM-DD, inclusive)"),
    ] = None,
    range_to: Annotated[
        str | None,
        typer.Option("--to", help="End of the query range (YYYY-MM-DD, exclusive)"),
    ] = None,
) -> None:
    """Report double-booked assignees and their workload."""
    start = _parse_date_option(range_from, "from")
    end = _parse_date_option(range_to, "to")
    if (start is None) != (end is None):
        raise _fail("--from and --to must be given together")
    if start is not None and end is not None and end <= start:
        raise _fail("--to must be after --from")

    project, graph, result = _run_schedule(file, anchor_date)
    config = discover_config(file)
    assignments = assignments_from_schedule(
        graph, result.schedule, config.scheduler.minutes_per_day
    )
    report = find_conflicts(
        assignments,
        date_range=(start, end) if start is not None and end is not None else None,
        daily_capacity_minutes=config.scheduler.daily_capacity_minutes,
        calendar=project.calendar or config.calendar,
    )

    if not report.workload_by_assignee:
        typer.echo("No assigned tasks.")
        return

    for assignee_id in sorted(report.workload_by_assignee):
        hours = report.workload_by_assignee[assignee_id] / 60
        typer.echo(f"{assignee_id}: {hours:.1f}h scheduled")
        for pair in report.conflicts_by_assignee.get(assignee_id, []):
            typer.echo(
                f"  CONFLICT {pair.task_a} / {pair.task_b}: "
                f"{pair.overlap_start.isoformat()} to {pair.overlap_end.isoformat()}"
            )
        for load in report.overallocated_days.get(assignee_id, []):
            typer.echo(
                f"  OVERALLOCATED {load.day.isoformat()}: {load.minutes / 60:.1f}h "
                f"({', '.join(load.task_ids)})"
            )


@app.command()
def summary(
    file: ProjectFile,
    anchor_date: AnchorOption = None,
    *,
    as_of: Annotated[
        str | None,
        typer.Option("--as-of", help="Count tasks due before this date as overdue (YYYY-MM-DD)"),
    ] = None,
) -> None:
    """Show task counts, completion and the critical path."""
    parsed_as_of = _parse_date_option(as_of, "as-of")
    _, _, result = _run_schedule(file, anchor_date, as_of=parsed_as_of)
    project_summary = result.summary
    assert project_summary is not None

    typer.echo(f"Project: {result.project_id}")
    typer.echo(
        f"Tasks: {project_summary.total_tasks} "
        f"({project_summary.completed_tasks} complete, "
        f"{project_summary.in_progress_tasks} in progress, "
        f"{project_summary.not_started_tasks} not started, "
        f"{project_summary.overdue_tasks} overdue)"
    )
    typer.echo(f"Completion: {project_summary.completion_percentage}%")
    if project_summary.project_start is not None and project_summary.project_end is not None:
        typer.echo(
            f"Dates: {project_summary.project_start.isoformat()} to "
            f"{project_summary.project_end.isoformat()} "
            f"({project_summary.project_duration} working day(s))"
        )
    if project_summary.critical_path:
        typer.echo(f"Critical path: {' -> '.join(project_summary.critical_path)}")


@app.command()
def suggest(
    file: ProjectFile,
    task_id: Annotated[str, typer.Argument(help="Task to find an assignee for")],
    anchor_date: AnchorOption = None,
    *,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the ranking as JSON"),
    ] = False,
) -> None:
    """Rank the project's assignees by how busy they are during a task."""
    project, graph, result = _run_schedule(file, anchor_date)
    if task_id not in graph:
        raise _fail(f"Unknown task: {task_id}")

    config = discover_config(file)
    assignments = assignments_from_schedule(
        graph, result.schedule, config.scheduler.minutes_per_day
    )
    candidates = sorted({node.assignee_id for node in graph.nodes if node.assignee_id})
    ranking = suggest_assignees(
        assignments,
        result.schedule.intervals[task_id],
        candidates,
        calendar=project.calendar or config.calendar,
    )

    if as_json:
        typer.echo(json.dumps(assignee_loads_to_record(ranking), indent=2))
        return
    if not ranking:
        typer.echo("No assignees in the project.")
        return

    interval = result.schedule.intervals[task_id]
    typer.echo(
        f"Assignees for '{task_id}' "
        f"({interval.start.isoformat()} to {interval.end.isoformat()}):"
    )
    for i, load in enumerate(ranking, start=1):
        typer.echo(
            f"  {i}. {load.assignee_id}: {load.minutes_per_day / 60:.1f}h/day, "
            f"{len(load.overlapping_tasks)} task(s), score {load.score:.0f}"
        )


@baseline_app.command("capture")
def baseline_capture(
    file: ProjectFile,
    output: Annotated[Path, typer.Option("--output", "-o", help="Baseline file to write")],
    anchor_date: AnchorOption = None,
) -> None:
    """Snapshot the current schedule as a baseline."""
    project, graph, result = _run_schedule(file, anchor_date)
    snapshot = capture_baseline(project.project_id, result.schedule, graph)
    write_baseline_file(output, snapshot)
    typer.echo(f"Baseline with {len(snapshot.tasks)} task(s) written to {output}")


@baseline_app.command("compare")
def baseline_compare(
    file: ProjectFile,
    baseline: Annotated[Path, typer.Argument(help="Baseline file from 'baseline capture'")],
    anchor_date: AnchorOption = None,
) -> None:
    """Compare the current schedule against a baseline."""
    try:
        snapshot = read_baseline_file(baseline)
    except LexschedError as e:
        raise _fail(str(e)) from None
    _, graph, result = _run_schedule(file, anchor_date)
    comparison = compare_to_baseline(snapshot, result.schedule, graph)

    typer.echo(
        f"Baseline for '{comparison.project_id}' captured "
        f"{comparison.baseline_captured_at.isoformat()}"
    )
    typer.echo(f"{'Task':<24} {'Start':>6} {'Finish':>6} {'Dur':>5}")
    for task_id, variance in comparison.per_task.items():
        if not variance.has_variance:
            continue
        typer.echo(
            f"{task_id:<24} {variance.schedule_variance:>+6d} {variance.finish_variance:>+6d} "
            f"{variance.duration_variance:>+5d}"
        )
    if not any(v.has_variance for v in comparison.per_task.values()):
        typer.echo("No variance.")

    scope = comparison.scope_changes
    if scope.added:
        typer.echo(f"Added since baseline: {', '.join(scope.added)}")
    if scope.removed:
        typer.echo(f"Removed since baseline: {', '.join(scope.removed)}")
    if comparison.unscheduled:
        typer.echo(f"Not scheduled: {', '.join(comparison.unscheduled)}")


def _format_gantt_output(mermaid_output: str, output_path: Path | None) -> None:
    """Output or write Gantt chart result."""
    if output_path:
        # Wrap in markdown code fence if output is a .md file
        if output_path.suffix.lower() == ".md":
            output_content = f"```mermaid\n{mermaid_output}\n```\n"
        else:
            output_content = mermaid_output
        output_path.write_text(output_content, encoding="utf-8")
        typer.echo(f"Gantt chart written to {output_path}")
    else:
        typer.echo(mermaid_output)


@app.command()
def gantt(
    file: ProjectFile,
    anchor_date: AnchorOption = None,
    *,
    title: Annotated[str | None, typer.Option("--title", help="Chart title")] = None,
    group_by: Annotated[
        GroupBy, typer.Option("--group-by", help="Group tasks into sections")
    ] = GroupBy.NONE,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Render the schedule as a Mermaid gantt chart."""
    project, graph, result = _run_schedule(file, anchor_date)
    renderer = GanttRenderer(graph, result)
    mermaid_output = renderer.generate_mermaid(
        title=title or project.project_id or "Project Schedule",
        group_by=group_by,
    )
    _format_gantt_output(mermaid_output, output)


app.add_typer(baseline_app, name="baseline")


def main() -> int:
    """Main entry point."""
    app()
    return 0


if __name__ == "__main__":
    main()
