"""CLI for the care-forms questionnaire engine."""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import jsonschema
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from care_forms import __version__
from care_forms.config import EngineConfig, get_config_home, load_config, write_config
from care_forms.diagnostics.models import SubmissionReport, SubmissionStatus
from care_forms.io import load_json, read_jsonl, write_json, write_jsonl
from care_forms.logging_setup import configure_logging
from care_forms.registry import (
    FIXED_QUESTIONNAIRES,
    Questionnaire,
    QuestionnaireNotFoundError,
    QuestionnaireRegistry,
    QuestionnaireValidationError,
    get_fixed_questionnaire,
)
from care_forms.responses import QuestionnaireResponse, create_form_state
from care_forms.responses.models import QuestionnaireFormState
from care_forms.structured import FileEncodingError, MissingContextError
from care_forms.submission import (
    BatchClient,
    HttpBatchClient,
    SubmissionContext,
    SubmissionOrchestrator,
    compile_requests,
)
from care_forms.validation import check_definition, validate_questionnaire

app = typer.Typer(
    name="care-forms",
    help="Questionnaire validation and submission engine.",
    no_args_is_help=True,
)
console = Console()

DEFAULT_SCHEMA = Path("schemas") / "questionnaire.schema.json"


def version_callback(value: bool) -> None:
    if value:
        console.print(f"care-forms version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """care-forms: questionnaire validation and submission engine."""
    pass


def _resolve_from_registry(slug: str) -> Questionnaire:
    """Resolve a slug through the configured questionnaire registry."""
    config = load_config()
    if config.registry_path is None:
        console.print(f"[red]Error:[/red] Definition not found: {slug}")
        raise typer.Exit(1)

    registry = QuestionnaireRegistry(
        config.registry_path,
        schema_path=DEFAULT_SCHEMA if DEFAULT_SCHEMA.exists() else None,
    )
    try:
        return registry.resolve(slug)
    except (QuestionnaireNotFoundError, QuestionnaireValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _load_questionnaire(definition: str, schema_path: Path | None = None) -> Questionnaire:
    """Load a definition file, a built-in questionnaire, or a registry slug."""
    path = Path(definition)
    if not path.exists():
        fixed = get_fixed_questionnaire(definition)
        if fixed is not None:
            return fixed
        return _resolve_from_registry(definition)

    try:
        data = load_json(path)
        if schema_path is not None:
            jsonschema.validate(data, load_json(schema_path))
        return Questionnaire.model_validate(data)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except jsonschema.ValidationError as e:
        console.print(f"[red]Invalid:[/red] {e.message}")
        raise typer.Exit(1)


def _load_form(questionnaire: Questionnaire, responses_path: Path | None) -> QuestionnaireFormState:
    """Build a form state, overlaying stored responses on empty ones."""
    form = create_form_state(questionnaire)
    if responses_path is None:
        return form
    if not responses_path.exists():
        console.print(f"[red]Error:[/red] Responses file not found: {responses_path}")
        raise typer.Exit(1)

    try:
        if responses_path.suffix == ".jsonl":
            records: Any = list(read_jsonl(responses_path))
        else:
            records = load_json(responses_path)
        if isinstance(records, dict):
            records = records.get("responses", [])
        stored = {r.question_id: r for r in (QuestionnaireResponse.model_validate(x) for x in records)}
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Error:[/red] Invalid responses: {e}")
        raise typer.Exit(1)

    responses = [stored.get(r.question_id, r) for r in form.responses]
    return form.model_copy(update={"responses": responses})


def _context(patient: str, encounter: str | None, facility: str | None) -> SubmissionContext:
    return SubmissionContext(patient_id=patient, encounter_id=encounter, facility_id=facility)


def build_batch_client(config: EngineConfig) -> BatchClient:
    """Create the batch client used by ``submit``."""
    return HttpBatchClient.from_config(config)


@app.command()
def check(
    definition: Annotated[Path, typer.Argument(help="Path to the questionnaire definition")],
    schema_path: Annotated[
        Path | None,
        typer.Option("--schema", "-s", help="Path to the questionnaire schema"),
    ] = None,
) -> None:
    """Validate a questionnaire definition against the schema and structural rules."""
    if not definition.exists():
        console.print(f"[red]Error:[/red] Definition file not found: {definition}")
        raise typer.Exit(1)

    if schema_path is None and DEFAULT_SCHEMA.exists():
        schema_path = DEFAULT_SCHEMA
    if schema_path is not None and not schema_path.exists():
        console.print(f"[red]Error:[/red] Schema file not found: {schema_path}")
        raise typer.Exit(1)

    questionnaire = _load_questionnaire(str(definition), schema_path)
    problems = check_definition(questionnaire)
    if problems:
        console.print(f"[red]Invalid:[/red] {definition}")
        for problem in problems:
            console.print(f"  - {problem}")
        raise typer.Exit(1)
    console.print(f"[green]Valid:[/green] {definition}")


@app.command()
def validate(
    definition: Annotated[str, typer.Argument(help="Definition file or built-in slug")],
    responses: Annotated[
        Path | None,
        typer.Argument(help="JSON/JSONL responses file (omit for empty responses)"),
    ] = None,
    errors_out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Write errors as JSONL to this path"),
    ] = None,
) -> None:
    """Validate responses against a questionnaire."""
    questionnaire = _load_questionnaire(definition)
    form = _load_form(questionnaire, responses)
    result = validate_questionnaire(questionnaire.questions, form.responses)

    if errors_out:
        write_jsonl(errors_out, (e.model_dump(mode="json") for e in result.errors))

    if result.valid:
        console.print(f"[green]Valid:[/green] {questionnaire.title}")
        return

    table = Table(title=f"Validation errors: {questionnaire.title}")
    table.add_column("Question")
    table.add_column("Field")
    table.add_column("Index", justify="right")
    table.add_column("Error", style="red")
    for error in result.errors:
        table.add_row(
            error.question_id,
            error.field_key or "",
            "" if error.index is None else str(error.index),
            error.error,
        )
    console.print(table)
    console.print(f"First error at: [bold]{result.first_error_id}[/bold]")
    raise typer.Exit(1)


@app.command(name="compile")
def compile_batch(
    definition: Annotated[str, typer.Argument(help="Definition file or built-in slug")],
    responses: Annotated[Path, typer.Argument(help="JSON/JSONL responses file")],
    patient: Annotated[str, typer.Option("--patient", "-p", help="Patient ID")],
    encounter: Annotated[str | None, typer.Option("--encounter", "-e", help="Encounter ID")] = None,
    facility: Annotated[str | None, typer.Option("--facility", "-f", help="Facility ID")] = None,
    out: Annotated[Path | None, typer.Option("--out", "-o", help="Write the batch body here")] = None,
) -> None:
    """Compile responses into the batch request body."""
    questionnaire = _load_questionnaire(definition)
    form = _load_form(questionnaire, responses)

    try:
        compiled = asyncio.run(compile_requests([form], _context(patient, encounter, facility)))
    except (MissingContextError, FileEncodingError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    envelope = compiled.envelope()
    if out:
        write_json(out, envelope)
        console.print(f"[green]Wrote {len(compiled.requests)} request(s) to[/green] {out}")
    else:
        console.print_json(json.dumps(envelope))


def _print_report(report: SubmissionReport) -> None:
    color = "green" if report.ok else "red"
    console.print(f"[{color}]Status:[/{color}] {report.status.value}")
    console.print(f"  Requests: {report.request_count}")
    if report.request_count:
        console.print(f"  Succeeded: {report.succeeded_count}")
        console.print(f"  Failed: {report.failed_count}")
    if report.message:
        console.print(f"  {report.message}")
    for warning in report.warnings:
        console.print(f"  [yellow]Warning:[/yellow] {warning.message}")
    for error in report.validation_errors:
        console.print(f"  [red]{error.question_id}:[/red] {error.error}")
    for server_error in report.server_errors:
        console.print(f"  [red]{server_error.title}:[/red] {server_error.message}")


@app.command()
def submit(
    definition: Annotated[str, typer.Argument(help="Definition file or built-in slug")],
    responses: Annotated[Path, typer.Argument(help="JSON/JSONL responses file")],
    patient: Annotated[str, typer.Option("--patient", "-p", help="Patient ID")],
    encounter: Annotated[str | None, typer.Option("--encounter", "-e", help="Encounter ID")] = None,
    facility: Annotated[str | None, typer.Option("--facility", "-f", help="Facility ID")] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Config file (default: config home)"),
    ] = None,
) -> None:
    """Validate, compile and submit responses to the batch endpoint."""
    try:
        config = load_config(config_path)
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        raise typer.Exit(1)
    configure_logging(config.log_level)

    questionnaire = _load_questionnaire(definition)
    form = _load_form(questionnaire, responses)
    orchestrator = SubmissionOrchestrator(
        context=_context(patient, encounter, facility),
        batch_client=build_batch_client(config),
        forms=[form],
    )
    report = asyncio.run(orchestrator.submit())
    _print_report(report)
    if report.status != SubmissionStatus.SUCCEEDED:
        raise typer.Exit(1)


@app.command()
def fixed() -> None:
    """List the built-in structured questionnaires."""
    table = Table(title="Built-in questionnaires")
    table.add_column("Slug")
    table.add_column("Title")
    table.add_column("Subject")
    for slug, questionnaire in FIXED_QUESTIONNAIRES.items():
        table.add_row(slug, questionnaire.title, questionnaire.subject_type)
    console.print(table)


@app.command()
def init(
    base_url: Annotated[
        str,
        typer.Option("--base-url", help="Backend base URL"),
    ] = EngineConfig().base_url,
    registry: Annotated[
        Path | None,
        typer.Option("--registry", help="Questionnaire registry directory"),
    ] = None,
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing config")] = False,
) -> None:
    """Create the care-forms config.yaml in the config home."""
    config_path = get_config_home() / "config.yaml"
    if config_path.exists() and not force:
        console.print(f"[yellow]Warning:[/yellow] Config already exists at {config_path}")
        console.print("Use --force to overwrite")
        raise typer.Exit(1)

    written = write_config(EngineConfig(base_url=base_url, registry_path=registry), config_path)
    console.print(f"[green]✓[/green] Created config at {written}")


if __name__ == "__main__":
    app()
