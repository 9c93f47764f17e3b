"""Command-line interface for observation insights."""

import asyncio
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_settings
from .database.sources import InMemoryObservationSource, ObservationSource
from .models.scope import FilterScope, InvalidScopeError
from .reports.export import EXPORT_FORMATS, export_report, write_export
from .service import AnalyticsService

app = typer.Typer(
    name="observation-insights",
    help="Observation Insights - lesson observation analytics and reports",
    add_completion=False,
)

console = Console()

DIMENSIONS = ("subject", "type", "key_stage", "department", "criteria", "trends", "staff", "summary")


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Logging level (defaults to APP_LOG_LEVEL)"),
):
    """Configure logging for every command."""
    level = (log_level or get_settings().app.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _source(path: Optional[Path]) -> ObservationSource:
    if path is not None:
        return InMemoryObservationSource.from_json_file(path)
    from .database.queries import PostgresObservationSource
    return PostgresObservationSource()


def _scope(
    date_from: Optional[str],
    date_to: Optional[str],
    subjects: Optional[List[str]],
    key_stages: Optional[List[str]],
    types: Optional[List[str]],
    teachers: Optional[List[str]],
    departments: Optional[List[str]],
) -> FilterScope:
    try:
        return FilterScope.from_filters({
            "dateFrom": date_from,
            "dateTo": date_to,
            "subjectIds": subjects,
            "keyStageIds": key_stages,
            "observationTypeIds": types,
            "teacherIds": teachers,
            "departmentIds": departments,
        })
    except InvalidScopeError as e:
        console.print(f"[red]Invalid filters: {e}[/red]")
        raise typer.Exit(code=2)


def _rows_table(title: str, rows: Sequence[Any]) -> Table:
    table = Table(title=title)
    if not rows:
        table.add_column("No data")
        return table

    dumped = [row.model_dump(mode="json") if isinstance(row, BaseModel) else dict(row) for row in rows]
    columns = list(dumped[0].keys())
    for column in columns:
        table.add_column(column.replace("_", " ").title())
    for row in dumped:
        table.add_row(*[_cell(row.get(column)) for column in columns])
    return table


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)


# Shared filter options
SOURCE_ARG = typer.Argument(None, help="JSON export of observations (defaults to the DATABASE_URL data store)")
FROM_OPT = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)")
TO_OPT = typer.Option(None, "--to", help="End date (YYYY-MM-DD)")
SUBJECT_OPT = typer.Option(None, "--subject", help="Subject id or name; repeatable")
KEY_STAGE_OPT = typer.Option(None, "--key-stage", help="Key stage id or name; repeatable")
TYPE_OPT = typer.Option(None, "--type", help="Observation type id or name; repeatable")
TEACHER_OPT = typer.Option(None, "--teacher", help="Teacher id; repeatable")
DEPARTMENT_OPT = typer.Option(None, "--department", help="Department name; repeatable")


@app.command()
def version():
    """Show version information."""
    from observation_insights import __version__

    console.print(Panel.fit(
        f"[bold blue]Observation Insights[/bold blue]\n"
        f"Version: [green]{__version__}[/green]",
        title="Version Info"
    ))


@app.command()
def test_db():
    """Test database connectivity."""
    from .database.connection import DatabaseConnectionError, close_database_pool, get_database_pool

    console.print("[yellow]Testing database connection...[/yellow]")

    async def check() -> bool:
        try:
            pool = await get_database_pool()
            return await pool.health_check()
        finally:
            await close_database_pool()

    try:
        healthy = asyncio.run(check())
    except DatabaseConnectionError as e:
        console.print(f"[red]❌ Database connection failed: {e}[/red]")
        raise typer.Exit(code=1)

    if healthy:
        console.print("[green]✅ Database connection successful![/green]")
    else:
        console.print("[red]❌ Database health check failed[/red]")
        raise typer.Exit(code=1)


@app.command()
def analyze(
    source: Optional[Path] = SOURCE_ARG,
    by: str = typer.Option("subject", "--by", "-b", help=f"Dimension: {', '.join(DIMENSIONS)}"),
    date_from: Optional[str] = FROM_OPT,
    date_to: Optional[str] = TO_OPT,
    subject: Optional[List[str]] = SUBJECT_OPT,
    key_stage: Optional[List[str]] = KEY_STAGE_OPT,
    observation_type: Optional[List[str]] = TYPE_OPT,
    teacher: Optional[List[str]] = TEACHER_OPT,
    department: Optional[List[str]] = DEPARTMENT_OPT,
    csv_output: Optional[Path] = typer.Option(None, "--csv", help="Also write the dataset as CSV"),
):
    """Aggregate observations along one dimension and print a table."""
    if by not in DIMENSIONS:
        console.print(f"[red]Unknown dimension '{by}'. Choose from: {', '.join(DIMENSIONS)}[/red]")
        raise typer.Exit(code=2)

    scope = _scope(date_from, date_to, subject, key_stage, observation_type, teacher, department)
    service = AnalyticsService(_source(source))

    getters = {
        "subject": service.get_subject_distribution,
        "type": service.get_type_distribution,
        "key_stage": service.get_key_stage_analysis,
        "department": service.get_department_distribution,
        "criteria": service.get_criteria_breakdown,
        "trends": service.get_observation_trends,
        "staff": service.get_staff_analysis,
        "summary": service.get_summary_stats,
    }
    result = asyncio.run(getters[by](scope))

    if by == "staff":
        console.print(_rows_table("Staff", result.staff_data))
        console.print(_rows_table("Observers", result.observer_data))
    elif by == "summary":
        console.print(Panel.fit(result.model_dump_json(indent=2), title="Summary"))
    else:
        console.print(_rows_table(by.replace("_", " ").title(), result))

    if csv_output:
        write_export(service.export_to_csv(result), csv_output)
        console.print(f"[green]Wrote {csv_output}[/green]")


@app.command()
def insights(
    source: Optional[Path] = SOURCE_ARG,
    date_from: Optional[str] = FROM_OPT,
    date_to: Optional[str] = TO_OPT,
    subject: Optional[List[str]] = SUBJECT_OPT,
    key_stage: Optional[List[str]] = KEY_STAGE_OPT,
    observation_type: Optional[List[str]] = TYPE_OPT,
    teacher: Optional[List[str]] = TEACHER_OPT,
    department: Optional[List[str]] = DEPARTMENT_OPT,
):
    """Print rule-based insights, recommendations, trends and action items."""
    scope = _scope(date_from, date_to, subject, key_stage, observation_type, teacher, department)
    service = AnalyticsService(_source(source))
    result = asyncio.run(service.generate_insights(scope))

    if not result.success:
        console.print(f"[red]❌ {result.error}[/red]")
        raise typer.Exit(code=1)

    if not any(result.data.values()):
        console.print("[yellow]No observations match these filters.[/yellow]")
        return

    for heading, items in result.data.items():
        if not items:
            continue
        body = "\n".join(f"• {item}" for item in items)
        console.print(Panel(body, title=heading.replace("_", " ").title()))


@app.command()
def report(
    source: Optional[Path] = SOURCE_ARG,
    analysis_type: str = typer.Option("report", "--analysis", "-a", help="report, analysis, insights or suggestions"),
    export_format: str = typer.Option("text", "--format", "-f", help=f"Export format: {', '.join(EXPORT_FORMATS)}"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the export to a file"),
    use_llm: bool = typer.Option(False, "--llm", help="Write the narrative with the configured language model"),
    date_from: Optional[str] = FROM_OPT,
    date_to: Optional[str] = TO_OPT,
    subject: Optional[List[str]] = SUBJECT_OPT,
    key_stage: Optional[List[str]] = KEY_STAGE_OPT,
    observation_type: Optional[List[str]] = TYPE_OPT,
    teacher: Optional[List[str]] = TEACHER_OPT,
    department: Optional[List[str]] = DEPARTMENT_OPT,
):
    """Assemble a report and export it."""
    if export_format not in EXPORT_FORMATS:
        console.print(f"[red]Unknown format '{export_format}'. Choose from: {', '.join(EXPORT_FORMATS)}[/red]")
        raise typer.Exit(code=2)

    narrative = None
    if use_llm:
        from .utils.llm import create_narrative_generator
        narrative = create_narrative_generator()
        if narrative is None:
            console.print("[yellow]LLM_API_KEY is not set; using the rule-based narrative[/yellow]")

    scope = _scope(date_from, date_to, subject, key_stage, observation_type, teacher, department)
    service = AnalyticsService(_source(source), narrative=narrative)
    result = asyncio.run(service.generate_report(scope, analysis_type))

    if not result.success:
        hint = " (retryable)" if result.metadata.get("retryable") else ""
        console.print(f"[red]❌ {result.error}{hint}[/red]")
        raise typer.Exit(code=1)

    content = export_report(result.data, export_format)
    if output:
        write_export(content, output)
        console.print(f"[green]✅ Report written to {output}[/green]")
    else:
        console.print(content, markup=False)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
