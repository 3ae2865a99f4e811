"""CLI entry point for behavior-tracker."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from behavior_tracker import __version__
from behavior_tracker.config import Settings, get_settings
from behavior_tracker.core import AggregationEngine, ReportAssembler
from behavior_tracker.logging_config import configure_logging
from behavior_tracker.session import ReportSession
from behavior_tracker.store import InMemoryRecordStore
from behavior_tracker.taxonomy import BehaviorCatalog

logger = logging.getLogger(__name__)

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _read_json_array(path: Path) -> list[dict[str, Any]]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path.name} is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        click.echo(f"{path.name} must contain a JSON array.", err=True)
        sys.exit(1)
    return raw


def _filter_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the record file, taxonomy file and report filter options."""
    options = [
        click.option(
            "--file",
            "input_file",
            required=True,
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="JSON file containing an array of incident records.",
        ),
        click.option(
            "--behaviors",
            "behaviors_file",
            default=None,
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="JSON file containing an array of behavior definitions.",
        ),
        click.option("--start", default=None, help="First day, YYYY-MM-DD."),
        click.option("--end", default=None, help="Last day, YYYY-MM-DD."),
        click.option("--student", default=None, help="Only this student."),
        click.option("--category", default=None, help="Only this category."),
        click.option("--teacher", default=None, help="Only this teacher's email."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _open_session(
    settings: Settings,
    input_file: Path,
    behaviors_file: Path | None,
    top_n: int | None = None,
) -> ReportSession:
    store = InMemoryRecordStore(tz=settings.tz)
    catalog = BehaviorCatalog()
    try:
        count = store.bulk_import_json(_read_json_array(input_file))
        if behaviors_file is not None:
            catalog.bulk_import_json(_read_json_array(behaviors_file))
    except ValidationError as exc:
        raise click.ClickException(f"Invalid document: {exc}") from exc
    logger.info("Loaded %d records from %s", count, input_file.name)

    assembler = ReportAssembler(
        AggregationEngine(tz=settings.tz, top_n=top_n or settings.top_n)
    )
    return ReportSession(
        "cli",
        store,
        catalog,
        assembler=assembler,
        window_days=settings.window_days,
    )


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override BEHAVIOR_LOG_LEVEL.",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Behavior Tracker: classroom behavior incident reporting."""
    try:
        settings = get_settings()
    except RuntimeError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(settings, log_level)
    ctx.obj = settings


@main.command("serve")
@click.option("--port", default=8000, show_default=True, type=int, help="HTTP port.")
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind host.")  # noqa: S104
@click.option(
    "--seed",
    "seed_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with initial incident records to load.",
)
@click.option(
    "--behaviors",
    "behaviors_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with initial behavior definitions to load.",
)
@click.pass_obj
def serve(
    settings: Settings,
    port: int,
    host: str,
    seed_file: Path | None,
    behaviors_file: Path | None,
) -> None:
    """Start the FastAPI dashboard server."""
    try:
        import uvicorn  # type: ignore[import-untyped]
    except ImportError:
        click.echo(
            "uvicorn is required to run the server. "
            "Install with: pip install 'behavior-tracker[server]'",
            err=True,
        )
        sys.exit(1)

    from behavior_tracker.dashboard import create_app, load_into_catalog, load_into_store

    create_app(settings=settings)
    if behaviors_file:
        count = load_into_catalog(_read_json_array(behaviors_file))
        click.echo(f"Loaded {count} behaviors from {behaviors_file.name}")
    if seed_file:
        count = load_into_store(_read_json_array(seed_file))
        click.echo(f"Loaded {count} incidents from {seed_file.name}")

    uvicorn.run("behavior_tracker.dashboard:app", host=host, port=port, reload=False)


@main.command("report")
@_filter_options
@click.option("--top-n", default=None, type=click.IntRange(min=1), help="Top behaviors to list.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON.")
@click.pass_obj
def report(
    settings: Settings,
    input_file: Path,
    behaviors_file: Path | None,
    start: str | None,
    end: str | None,
    student: str | None,
    category: str | None,
    teacher: str | None,
    top_n: int | None,
    as_json: bool,
) -> None:
    """Print KPIs, the daily trend, top behaviors and the busiest hour."""
    session = _open_session(settings, input_file, behaviors_file, top_n)
    view = session.load(
        start=start, end=end, student=student, category=category, teacher=teacher
    )

    if as_json:
        click.echo(view.model_dump_json(by_alias=True, exclude={"records"}, indent=2))
        return

    kpis = view.kpis
    click.echo(f"Period            : {view.selection.start_date} .. {view.selection.end_date}")
    click.echo(f"Total incidents   : {kpis.total_incidents}")
    click.echo(f"Students impacted : {kpis.students_impacted}")
    click.echo(f"Teachers logging  : {kpis.teachers_logging}")
    if kpis.total_incidents:
        click.echo(
            f"Top behavior      : {kpis.top_behavior.label} ({kpis.top_behavior.count})"
        )
    else:
        click.echo(f"Top behavior      : {kpis.top_behavior.label}")

    click.echo("\nIncidents by day:")
    for point in view.time_series:
        click.echo(f"  {point.day}: {point.count}")

    click.echo("\nTop behaviors:")
    for ranked in view.top_ranked:
        click.echo(f"  {ranked.label:20s}: {ranked.count}")

    matrix = view.heat_matrix
    if matrix.max:
        peaks = [
            f"{DAY_NAMES[day]} {hour:02d}:00"
            for day, row in enumerate(matrix.cells)
            for hour, value in enumerate(row)
            if value == matrix.max
        ]
        click.echo(f"\nBusiest hour      : {', '.join(peaks)} ({matrix.max})")
    else:
        click.echo("\nBusiest hour      : none")


@main.command("export")
@_filter_options
@click.option(
    "--out-dir",
    default=".",
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory that receives behavior_logs_<date>.csv.",
)
@click.pass_obj
def export(
    settings: Settings,
    input_file: Path,
    behaviors_file: Path | None,
    start: str | None,
    end: str | None,
    student: str | None,
    category: str | None,
    teacher: str | None,
    out_dir: Path,
) -> None:
    """Write the filtered incidents to a CSV file."""
    session = _open_session(settings, input_file, behaviors_file)
    view = session.load(
        start=start, end=end, student=student, category=category, teacher=teacher
    )
    filename, text = session.export_csv(view)

    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / filename
    target.write_text(text, encoding="utf-8")
    click.echo(f"Exported {len(view.records)} incidents to {target}")


@main.command("behaviors")
@click.option(
    "--file",
    "input_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file containing an array of behavior definitions.",
)
def behaviors(input_file: Path) -> None:
    """List active behaviors grouped by category."""
    catalog = BehaviorCatalog()
    try:
        catalog.bulk_import_json(_read_json_array(input_file))
    except ValidationError as exc:
        raise click.ClickException(f"Invalid document: {exc}") from exc

    grouped = catalog.by_category()
    if not grouped:
        click.echo("No behaviors yet.")
        return
    for category, definitions in grouped.items():
        click.echo(category)
        for definition in definitions:
            click.echo(f"  {definition.name}")


if __name__ == "__main__":
    main()
