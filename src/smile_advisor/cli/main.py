"""CLI for smile-advisor: generate / validate / catalog / serve commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from smile_advisor.api.app import build_pipeline
from smile_advisor.catalog.loader import load_catalog
from smile_advisor.core.config import AppSettings, CatalogConfig, ContentConfig
from smile_advisor.exceptions import CatalogError
from smile_advisor.hooks import setup_logging
from smile_advisor.intake.validator import IntakeValidator
from smile_advisor.models import IntakeData, PipelineResult, ProgressEvent, StageStatus
from smile_advisor.qa.models import QAOutcome

app = typer.Typer(name="smile-advisor", help="Questionnaire-to-advisory-report pipeline")
console = Console()

_OUTCOME_STYLE = {QAOutcome.PASS: "green", QAOutcome.FLAG: "yellow", QAOutcome.BLOCK: "red"}


def _build_settings(
    content_root: Path | None,
    catalog_dir: Path | None,
    verbose: bool,
) -> AppSettings:
    """Build settings, overriding env defaults with CLI flags."""
    settings = AppSettings()
    if content_root is not None:
        settings.content = ContentConfig(backend="file", root=content_root)
    if catalog_dir is not None:
        settings.catalog = CatalogConfig(directory=catalog_dir)
    if verbose:
        settings.observability = settings.observability.model_copy(update={"log_level": "DEBUG"})
    return settings


def _load_intake(path: Path) -> IntakeData:
    try:
        return IntakeData.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise typer.BadParameter(f"{path} is not a valid intake payload: {exc}") from exc


def _print_progress(event: ProgressEvent) -> None:
    if event.status == StageStatus.STARTED:
        return
    style = "green" if event.status == StageStatus.COMPLETED else "red"
    took = f" ({event.duration_ms:.1f} ms)" if event.duration_ms is not None else ""
    console.print(f"  [{style}]{event.stage_index}. {event.stage_name}: {event.status.value}{took}[/{style}]")


def _print_result(result: PipelineResult) -> None:
    audit = result.audit
    style = _OUTCOME_STYLE[result.outcome]
    console.print(f"\n[bold]Outcome:[/bold] [{style}]{result.outcome.value}[/{style}]")
    match = audit.scenario_match
    console.print(f"[bold]Scenario:[/bold] {match.matched_scenario} ({match.confidence.value}, score {match.score})")
    if audit.tone_selection is not None:
        console.print(f"[bold]Tone:[/bold] {audit.tone_selection.selected_tone}: {audit.tone_selection.reason}")
    if audit.qa_result is not None:
        for reason in audit.qa_result.reasons:
            console.print(f"  - {reason}")
    if result.error:
        console.print(f"[red]Error:[/red] {result.error}")

    report = audit.composed_report
    if report is None:
        return
    table = Table(title="Report Sections")
    table.add_column("#", style="cyan")
    table.add_column("Section", style="green")
    table.add_column("Words", justify="right")
    table.add_column("Sources", max_width=60)
    for section in report.sections:
        table.add_row(
            str(section.section_number), section.section_name, str(section.word_count), ", ".join(section.sources)
        )
    console.print(table)
    if report.suppressed_sections:
        console.print(f"Suppressed sections: {report.suppressed_sections}")


@app.command()
def generate(
    intake_file: Path = typer.Argument(..., help="JSON file with the intake payload"),
    output: Path | None = typer.Option(None, help="Write the full PipelineResult JSON here"),
    markdown: Path | None = typer.Option(None, help="Write the rendered report here when delivered"),
    content_root: Path | None = typer.Option(None, "--content-root", help="Content tree for the file backend"),
    catalog_dir: Path | None = typer.Option(None, "--catalog-dir", help="Alternative catalog directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run one intake through the pipeline."""
    settings = _build_settings(content_root, catalog_dir, verbose)
    setup_logging(settings.observability)
    pipeline = build_pipeline(settings)
    intake = _load_intake(intake_file)

    console.print(f"[bold]Generating report for session {intake.session_id}[/bold]")
    result = asyncio.run(pipeline.run(intake, on_progress=_print_progress))
    _print_result(result)

    if output:
        output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[green]Result saved to {output}[/green]")
    if markdown and result.report is not None:
        markdown.write_text(result.report.render(), encoding="utf-8")
        console.print(f"[green]Report saved to {markdown}[/green]")

    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def validate(
    intake_file: Path = typer.Argument(..., help="JSON file with the intake payload"),
    catalog_dir: Path | None = typer.Option(None, "--catalog-dir"),
) -> None:
    """Validate an intake payload without generating a report."""
    catalog = load_catalog(str(catalog_dir) if catalog_dir else None)
    result = IntakeValidator(catalog).validate(_load_intake(intake_file))

    table = Table(title="Intake Issues")
    table.add_column("Severity")
    table.add_column("Code", style="cyan")
    table.add_column("Question")
    table.add_column("Message", max_width=70)
    for issue in (*result.errors, *result.warnings):
        style = "red" if issue.severity == "error" else "yellow"
        table.add_row(f"[{style}]{issue.severity}[/{style}]", issue.code, issue.question_id or "", issue.message)
    if result.errors or result.warnings:
        console.print(table)

    if result.valid:
        console.print("[green]Intake is valid[/green]")
    else:
        console.print(f"[red]{result.summary()}[/red]")
        raise typer.Exit(code=1)


@app.command()
def catalog(
    catalog_dir: Path | None = typer.Option(None, "--catalog-dir"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
) -> None:
    """Load and validate the catalog, then summarize it."""
    try:
        loaded = load_catalog(str(catalog_dir) if catalog_dir else None)
    except CatalogError as exc:
        console.print(f"[red]Catalog invalid:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if as_json:
        summary = {
            "version": loaded.version,
            "questions": sorted(loaded.questions),
            "drivers": [d.driver_id for d in loaded.drivers],
            "scenarios": [s.scenario_id for s in loaded.scenarios],
            "tones": [t.tone_id for t in loaded.tones],
        }
        console.print_json(json.dumps(summary))
        return

    console.print(
        f"[bold]Catalog {loaded.version}[/bold]: {len(loaded.questions)} questions, "
        f"{len(loaded.drivers)} drivers, {len(loaded.tones)} tones"
    )
    table = Table(title="Scenarios")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Priority", justify="right")
    table.add_column("Flags")
    for scenario in loaded.scenarios:
        flags = [f for f, on in (("fallback", scenario.is_fallback), ("safety", scenario.is_safety)) if on]
        table.add_row(scenario.scenario_id, scenario.name, str(scenario.priority), ", ".join(flags))
    console.print(table)


@app.command()
def serve(
    host: str | None = typer.Option(None, help="Bind address (default SMILE_API_HOST)"),
    port: int | None = typer.Option(None, help="Port (default SMILE_API_PORT)"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = AppSettings()
    uvicorn.run(
        "smile_advisor.api.app:app",
        host=host or settings.api.host,
        port=port or settings.api.port,
        log_config=None,
    )


if __name__ == "__main__":
    app()
