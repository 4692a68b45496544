"""CLI commands for ClinicOS."""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional, TypeVar

import typer
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from clinic_os.config import get_settings
from clinic_os.scheduling import (
    AppointmentHistoryAnalyzer,
    AppointmentType,
    ComputationError,
    DateRange,
    HistoricalAppointment,
    ProviderCapacityProfile,
    ScheduleInput,
    SchedulingEngine,
    SchedulingError,
    SchedulingOptimization,
    SuggestionInput,
    ValidationError,
)

app = typer.Typer(
    name="clinic-os",
    help="Scheduling optimization for clinic operations",
    add_completion=False,
)
console = Console()

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_engine(history_file: Optional[Path] = None) -> SchedulingEngine:
    """Build an engine, optionally backed by a file of past appointments."""
    historical_data = None
    if history_file is not None:
        records = _read_json(history_file)
        if not isinstance(records, list):
            console.print(f"[red]History file must contain a JSON list: {history_file}[/red]")
            raise typer.Exit(1)
        try:
            appointments = [HistoricalAppointment.model_validate(r) for r in records]
        except ModelValidationError as e:
            console.print(f"[red]Invalid history record in {history_file}:[/red]\n{e}")
            raise typer.Exit(1)
        historical_data = AppointmentHistoryAnalyzer(appointments)

    return SchedulingEngine(settings=get_settings(), historical_data=historical_data)


def _read_json(path: Path):
    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
        raise typer.Exit(1)


def _load_model(path: Path, model: type[ModelT]) -> ModelT:
    data = _read_json(path)
    try:
        return model.model_validate(data)
    except ModelValidationError as e:
        console.print(f"[red]Invalid {model.__name__} in {path}:[/red]\n{e}")
        raise typer.Exit(1)


def _report_error(error: SchedulingError) -> None:
    """Print a scheduling error and exit non-zero."""
    if isinstance(error, ValidationError):
        table = Table(title=f"Validation Errors ({len(error.issues)})", border_style="red")
        table.add_column("Field")
        table.add_column("Problem")
        for issue in error.issues:
            table.add_row(issue.field, issue.message)
        console.print(table)
        raise typer.Exit(1)

    console.print(f"[red]{type(error).__name__}: {error}[/red]")
    raise typer.Exit(2 if isinstance(error, ComputationError) else 1)


@app.command()
def optimize(
    input_file: Path = typer.Argument(..., help="JSON file with a schedule input"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Optimize a batch of appointment requests for one provider."""
    schedule_input = _load_model(input_file, ScheduleInput)
    engine = get_engine()

    try:
        result = engine.optimize_schedule(schedule_input)
    except SchedulingError as e:
        _report_error(e)

    if output_json:
        typer.echo(result.model_dump_json(indent=2))
    else:
        _display_optimization(result)


def _display_optimization(result: SchedulingOptimization):
    """Display an optimization result in rich format."""
    forecast = result.utilization_forecast
    console.print(
        Panel(
            f"[bold]Utilization:[/bold] {result.utilization_rate:.0%} "
            f"(pessimistic {forecast.pessimistic:.0%}, optimistic {forecast.optimistic:.0%})\n"
            f"[bold]Expected No-Shows:[/bold] {result.expected_no_shows:.2f}\n"
            f"[bold]Revenue Estimate:[/bold] ${result.revenue_estimate:,.2f}\n"
            f"[bold]Conflicts Resolved:[/bold] {result.conflicts_resolved}",
            title=f"Schedule for {result.provider_id}",
        )
    )

    if result.optimized_schedule:
        table = Table(title=f"Appointments ({len(result.optimized_schedule)})")
        table.add_column("Patient")
        table.add_column("Type")
        table.add_column("Start")
        table.add_column("Minutes", justify="right")
        table.add_column("Confidence", justify="right")
        for appt in result.optimized_schedule:
            patient = f"{appt.patient_id} [yellow](overbooked)[/yellow]" if appt.overbooked else appt.patient_id
            table.add_row(
                patient,
                appt.appointment_type.value,
                appt.scheduled_time.strftime("%Y-%m-%d %H:%M"),
                str(appt.duration),
                f"{appt.confidence:.0%}",
            )
        console.print(table)

    if result.unscheduled:
        table = Table(title="Unscheduled", border_style="red")
        table.add_column("Patient")
        table.add_column("Reason")
        for item in result.unscheduled:
            table.add_row(item.patient_id, item.reason)
        console.print(table)

    if result.recommendations:
        console.print(
            Panel("\n".join(f"- {r}" for r in result.recommendations), title="Recommendations")
        )

    console.print(f"\n[dim]{result.explanation}[/dim]")


@app.command()
def suggest(
    input_file: Path = typer.Argument(..., help="JSON file with a suggestion input"),
    max_suggestions: Optional[int] = typer.Option(
        None, "--max", "-m", help="Number of suggestions"
    ),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Suggest the best start times for a single appointment request."""
    body = _load_model(input_file, SuggestionInput)
    engine = get_engine()

    try:
        suggestions = engine.suggest_optimal_time_slots(
            body.request,
            body.provider_id,
            body.date_range,
            body.constraints,
            max_suggestions=max_suggestions or body.max_suggestions,
            preferences=body.preferences,
        )
    except SchedulingError as e:
        _report_error(e)

    if output_json:
        typer.echo(json.dumps([s.model_dump(mode="json") for s in suggestions], indent=2))
        return

    if not suggestions:
        console.print(f"[yellow]No open slot fits patient {body.request.patient_id}[/yellow]")
        return

    table = Table(title=f"Suggested Slots for {body.request.patient_id}")
    table.add_column("#", justify="right")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Score", justify="right")
    for i, slot in enumerate(suggestions, 1):
        table.add_row(
            str(i),
            slot.start_time.strftime("%Y-%m-%d %H:%M"),
            slot.end_time.strftime("%H:%M"),
            f"{slot.preference:.2f}",
        )
    console.print(table)


@app.command()
def capacity(
    provider_id: str = typer.Argument(..., help="Provider identifier"),
    start: datetime = typer.Option(..., "--start", "-s", formats=["%Y-%m-%d"], help="First day"),
    end: datetime = typer.Option(..., "--end", "-e", formats=["%Y-%m-%d"], help="Last day"),
    target: Optional[float] = typer.Option(None, "--target", "-t", help="Target utilization (0-1)"),
    tolerance: str = typer.Option("medium", "--tolerance", help="Risk tolerance: low, medium, high"),
    appointment_type: Optional[AppointmentType] = typer.Option(
        None, "--type", help="Size capacity for one appointment type"
    ),
    history_file: Optional[Path] = typer.Option(
        None, "--history", help="JSON file with past appointments"
    ),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Recommend capacity and an overbooking strategy for a provider."""
    engine = get_engine(history_file)
    date_range = DateRange(start_date=start.date(), end_date=end.date())

    try:
        profile = engine.optimize_provider_schedule(
            provider_id,
            date_range,
            target_utilization=target,
            risk_tolerance=tolerance,
            appointment_type=appointment_type,
        )
    except SchedulingError as e:
        _report_error(e)

    if output_json:
        typer.echo(profile.model_dump_json(indent=2))
    else:
        _display_capacity(profile)


def _display_capacity(profile: ProviderCapacityProfile):
    """Display a capacity profile in rich format."""
    strategy = profile.overbooking_strategy
    forecast = profile.utilization_forecast
    overbooking = f"{strategy.percentage:g}%" if strategy.enabled else "disabled"
    console.print(
        Panel(
            f"[bold]Recommended Capacity:[/bold] {profile.recommended_capacity} appointments\n"
            f"[bold]Overbooking:[/bold] {overbooking}\n"
            f"[bold]Utilization Forecast:[/bold] {forecast.expected:.0%} "
            f"({forecast.pessimistic:.0%}-{forecast.optimistic:.0%})",
            title=f"Capacity Plan for {profile.provider_id}",
        )
    )

    if strategy.time_slots:
        console.print(f"[bold]Overbooking slots:[/bold] {', '.join(strategy.time_slots)}")
    if profile.risk_mitigation.high_risk_slots:
        console.print(
            f"[bold]High-risk slots:[/bold] {', '.join(profile.risk_mitigation.high_risk_slots)}"
        )

    if profile.risk_mitigation.recommended_actions:
        console.print(
            Panel(
                "\n".join(f"- {a}" for a in profile.risk_mitigation.recommended_actions),
                title="Recommended Actions",
            )
        )

    for warning in profile.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting ClinicOS API server on {host}:{port}")
    uvicorn.run(
        "clinic_os.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version():
    """Show version information."""
    from clinic_os import __version__

    console.print(f"ClinicOS v{__version__}")


if __name__ == "__main__":
    app()
