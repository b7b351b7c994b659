"""intakeflow CLI - typer application entry point."""

from __future__ import annotations

import atexit
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from intakeflow.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    session_context,
)

if TYPE_CHECKING:
    from intakeflow.graph.validation_types import FlowValidationReport
    from intakeflow.models.blocks import Block
    from intakeflow.models.flow import FlowGraph
    from intakeflow.personalize import PersonalizationParams
    from intakeflow.runtime import Navigator, Session


def _is_interactive_tty() -> bool:
    """Check if stdin/stdout are connected to a TTY."""
    return sys.stdin.isatty() and sys.stdout.isatty()


# Load environment variables from .env file
load_dotenv()

log = get_logger(__name__)

app = typer.Typer(
    name="intakeflow",
    help="intakeflow: validate and walk multi-step intake flows.",
    no_args_is_help=True,
)
console = Console()

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False

SAMPLE_FLOW: dict[str, Any] = {
    "metadata": {"title": "New project intake", "mode": "guided"},
    "sections": [
        {
            "id": "about",
            "title": "Hi {client_name}, tell us about your project",
            "blocks": [
                {
                    "id": "project_type",
                    "type": "question",
                    "label": "What do you need?",
                    "inputType": "select",
                    "required": True,
                    "options": ["Website", "Branding"],
                },
            ],
            "routing": [
                {
                    "id": "r-website",
                    "operator": "equals",
                    "fromBlockId": "project_type",
                    "value": "Website",
                    "nextSectionId": "website",
                },
                {
                    "id": "r-branding",
                    "operator": "equals",
                    "fromBlockId": "project_type",
                    "value": "Branding",
                    "nextSectionId": "branding",
                },
            ],
        },
        {
            "id": "website",
            "title": "Website",
            "blocks": [
                {
                    "id": "page_count",
                    "type": "question",
                    "label": "Roughly how many pages?",
                    "inputType": "short",
                },
            ],
            "routing": [{"id": "r-website-next", "operator": "any", "nextSectionId": "wrap_up"}],
        },
        {
            "id": "branding",
            "title": "Branding",
            "blocks": [
                {
                    "id": "brand_words",
                    "type": "question",
                    "label": "Three words for your brand",
                    "inputType": "long",
                },
            ],
            "routing": [{"id": "r-branding-next", "operator": "any", "nextSectionId": "wrap_up"}],
        },
        {
            "id": "wrap_up",
            "title": "Next steps",
            "description": "Thanks! One last thing.",
            "blocks": [
                {
                    "id": "book",
                    "type": "book_call",
                    "title": "Book a kickoff call",
                    "bookingUrl": "https://example.com/book",
                },
            ],
        },
    ],
}


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to {project}/logs/debug.jsonl.",
        ),
    ] = False,
) -> None:
    """intakeflow: validate and walk multi-step intake flows."""
    global _verbose, _log_enabled
    _verbose = verbose
    _log_enabled = log_file

    # Console logging now; file logging once the project directory is known
    configure_logging(verbosity=verbose)


def _configure_project_logging(project_path: Path) -> None:
    """Configure file logging if --log flag was set."""
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, project_path=project_path)
        atexit.register(close_file_logging)


def _resolve_flow(target: Path | None) -> tuple[FlowGraph, Path | None]:
    """Load a flow from a file, or from a project directory's config.

    Returns:
        The flow and the project directory (None when a bare file was given).

    Raises:
        typer.Exit: If the flow or project cannot be loaded.
    """
    from intakeflow.config import CONFIG_FILENAME, ProjectConfigError, load_project_config
    from intakeflow.graph.errors import FlowLoadError
    from intakeflow.graph.store import load_flow

    target = target if target is not None else Path()
    project_path: Path | None = None

    if target.is_dir():
        project_path = target
        try:
            config = load_project_config(project_path)
        except ProjectConfigError as e:
            console.print(f"[red]Error:[/red] {e}")
            console.print(f"Pass a flow file, or run inside a project with {CONFIG_FILENAME}.")
            raise typer.Exit(1) from e
        flow_path = config.flow_path(project_path)
        _configure_project_logging(project_path)
    else:
        flow_path = target

    try:
        return load_flow(flow_path), project_path
    except FlowLoadError as e:
        console.print(f"[red]Error:[/red] {e.to_feedback()}")
        raise typer.Exit(1) from e


def _project_strict(project_path: Path | None) -> bool:
    if project_path is None:
        return False
    from intakeflow.config import load_project_config

    return load_project_config(project_path).get_strict()


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from intakeflow import __version__

    console.print(f"intakeflow v{__version__}")


def _init_project(name: str, parent_dir: Path) -> Path:
    """Create a new project directory with config and a sample flow.

    Raises:
        typer.Exit: If the directory already exists.
    """
    from intakeflow.config import ProjectConfig, save_project_config
    from intakeflow.graph.store import parse_flow, save_flow

    parent_dir.mkdir(parents=True, exist_ok=True)

    project_path = parent_dir / name
    if project_path.exists():
        console.print(f"[red]Error:[/red] Directory '{project_path}' already exists")
        raise typer.Exit(1)

    project_path.mkdir(parents=True)
    config = ProjectConfig(name=name)
    save_project_config(config, project_path)

    graph = parse_flow(SAMPLE_FLOW, source=config.flow_path(project_path))
    save_flow(graph, config.flow_path(project_path))
    config.submissions_path(project_path).parent.mkdir(parents=True, exist_ok=True)

    return project_path


@app.command()
def init(
    name: Annotated[str, typer.Argument(help="Project name")],
    path: Annotated[
        Path,
        typer.Option("--path", "-p", help="Parent directory for the project."),
    ] = Path(),
) -> None:
    """Initialize a new intake project.

    Creates a project directory with:
    - intake.yaml: Project configuration
    - flow.json: A small branching sample flow
    - submissions/: Completed sessions (JSONL)
    """
    project_path = _init_project(name, path)

    console.print(f"[green]✓[/green] Created project: [bold]{name}[/bold]")
    console.print(f"  Location: {project_path.absolute()}")
    console.print()
    console.print("Next steps:")
    console.print(f"  intakeflow validate {project_path}")
    console.print(f"  intakeflow run {project_path}")


def _print_report(report: FlowValidationReport) -> None:
    if report.issues:
        table = Table(title="Flow validation")
        table.add_column("Severity", style="bold")
        table.add_column("Code", style="cyan")
        table.add_column("Message")
        table.add_column("Section", style="dim")
        table.add_column("Block", style="dim")
        for issue in report.issues:
            severity = (
                "[red]✗ error[/red]" if issue.severity == "error" else "[yellow]! warning[/yellow]"
            )
            table.add_row(
                severity,
                issue.code,
                issue.message,
                issue.section_id or "-",
                issue.block_id or "-",
            )
        console.print(table)

    stats = report.stats
    console.print(
        f"Sections: {stats.total_sections}  Rules: {stats.total_rules}  "
        f"Starts: {', '.join(stats.start_sections) or '-'}  "
        f"Ends: {', '.join(stats.end_sections) or '-'}"
    )
    if stats.unreachable_sections:
        console.print(f"Unreachable: {', '.join(stats.unreachable_sections)}")


@app.command()
def validate(
    target: Annotated[
        Path | None,
        typer.Argument(help="Flow file or project directory (default: current directory)."),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Treat warnings as blocking."),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the report as JSON."),
    ] = False,
) -> None:
    """Check a flow's structure before publishing.

    Exits with status 1 when the flow is not publishable.
    """
    from intakeflow.graph.validator import validate_flow

    graph, project_path = _resolve_flow(target)
    strict = strict or _project_strict(project_path)
    report = validate_flow(graph)
    publishable = report.is_publishable(strict=strict)

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)
        if publishable:
            console.print(f"[green]✓[/green] Flow is publishable ({report.summary})")
        else:
            console.print(f"[red]✗[/red] Flow is not publishable ({report.summary})")

    log.info("validate_command", errors=len(report.errors), warnings=len(report.warnings))
    if not publishable:
        raise typer.Exit(1)


@app.command()
def viz(
    target: Annotated[
        Path | None,
        typer.Argument(help="Flow file or project directory (default: current directory)."),
    ] = None,
    fmt: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: dot or mermaid."),
    ] = "mermaid",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to a file instead of stdout."),
    ] = None,
    no_labels: Annotated[
        bool,
        typer.Option("--no-labels", help="Omit condition labels on edges."),
    ] = False,
    show_linear: Annotated[
        bool,
        typer.Option("--show-linear", help="Draw the implicit next-section fallback."),
    ] = False,
) -> None:
    """Render a flow's routing graph as DOT or Mermaid."""
    from intakeflow.visualization import build_flow_diagram, render_dot, render_mermaid

    if fmt not in ("dot", "mermaid"):
        console.print(f"[red]Error:[/red] Unknown format '{fmt}'. Use 'dot' or 'mermaid'.")
        raise typer.Exit(1)

    graph, _ = _resolve_flow(target)
    diagram = build_flow_diagram(graph, show_linear=show_linear)
    rendered = (
        render_dot(diagram, no_labels=no_labels)
        if fmt == "dot"
        else render_mermaid(diagram, no_labels=no_labels)
    )

    if output is not None:
        output.write_text(rendered + "\n", encoding="utf-8")
        console.print(f"[green]✓[/green] Wrote {fmt} diagram to {output}")
    else:
        typer.echo(rendered)


# -----------------------------------------------------------------------------
# run
# -----------------------------------------------------------------------------


def _prompt_block(block: Block, current: Any, params: PersonalizationParams) -> Any:
    """Ask the respondent for one block's answer. Returns None to skip."""
    from intakeflow.models.blocks import (
        BookCallBlock,
        ContextBlock,
        ImageChoiceBlock,
        QuestionBlock,
        is_multi_select,
    )
    from intakeflow.personalize import personalize_text

    if isinstance(block, ContextBlock):
        console.print(personalize_text(block.text, params))
        return None
    if isinstance(block, BookCallBlock):
        console.print(f"{block.title or 'Book a call'}: {block.booking_url}")
        if block.required_to_continue:
            return typer.confirm("Have you booked a call?", default=bool(current)) or None
        return None

    if isinstance(block, QuestionBlock):
        label = personalize_text(block.label, params)
        options = list(block.options or [])
    elif isinstance(block, ImageChoiceBlock):
        label = personalize_text(block.label, params)
        options = [o.id for o in block.options]
        for option in block.options:
            console.print(f"  {option.id}: {option.label or option.image_url}")
    else:
        return None

    if options:
        console.print(f"  Options: {', '.join(options)}")
    default = ", ".join(current) if isinstance(current, list) else (current or "")
    raw = typer.prompt(label, default=default, show_default=bool(default))
    if is_multi_select(block):
        return [part.strip() for part in str(raw).split(",") if part.strip()]
    if isinstance(block, QuestionBlock) and block.input_type == "slider":
        try:
            return float(raw)
        except ValueError:
            return raw
    return raw


def _walk_interactive(navigator: Navigator, session: Session, params: PersonalizationParams) -> None:
    from intakeflow.personalize import personalize_text
    from intakeflow.runtime import Position

    while True:
        view = navigator.view(session)
        if view.position is Position.COMPLETE:
            return
        if view.position is Position.WELCOME:
            title = navigator.graph.metadata.title or "Welcome"
            console.print(Panel(personalize_text(title, params), title="Welcome"))
            if not typer.confirm("Start?", default=True):
                raise typer.Exit(0)
            navigator.advance(session)
            continue

        section = view.section
        if section is None:
            continue
        if view.position is Position.INTRO:
            console.print(
                Panel(
                    personalize_text(section.description, params),
                    title=personalize_text(section.title, params),
                )
            )
            if typer.confirm("Continue?", default=True):
                navigator.advance(session)
            else:
                navigator.retreat(session)
            continue

        console.rule(
            f"Step {view.step} of {view.total} · {personalize_text(section.title, params)}"
        )
        for block in section.blocks:
            value = _prompt_block(block, session.answers.get(block.id), params)
            if value not in (None, "", []):
                navigator.record_answer(session, block.id, value)

        if not typer.confirm("Continue?", default=True):
            navigator.retreat(session)
        elif not navigator.advance(session):
            console.print("[yellow]![/yellow] This step needs your interaction before continuing.")


def _walk_scripted(navigator: Navigator, session: Session, answers: dict[str, Any]) -> None:
    """Advance with a fixed answer set until the flow completes.

    Raises:
        typer.Exit: If the session stops making progress (an unmet gate).
    """
    from intakeflow.runtime import Position

    # Terminates: a rule jump never targets a section already in history and
    # linear steps only move to a higher index, so every walk reaches the end
    while navigator.position(session) is not Position.COMPLETE:
        if not navigator.advance(session, answers):
            break

    if navigator.position(session) is not Position.COMPLETE:
        section = navigator.current_section(session)
        section_id = section.id if section else "?"
        console.print(
            f"[red]Error:[/red] Stuck at section '{section_id}': "
            "a block requires interaction that the answers file does not record."
        )
        raise typer.Exit(1)


@app.command()
def run(
    target: Annotated[
        Path | None,
        typer.Argument(help="Flow file or project directory (default: current directory)."),
    ] = None,
    answers_file: Annotated[
        Path | None,
        typer.Option("--answers", "-a", help="JSON file of block id -> answer (non-interactive)."),
    ] = None,
    submissions: Annotated[
        Path | None,
        typer.Option("--submissions", "-s", help="JSONL file to append the submission to."),
    ] = None,
    client_name: Annotated[
        str | None, typer.Option("--client", help="Value for {client_name} tokens.")
    ] = None,
    company_name: Annotated[
        str | None, typer.Option("--company", help="Value for {company_name} tokens.")
    ] = None,
    project_name: Annotated[
        str | None, typer.Option("--project-name", help="Value for {project_name} tokens.")
    ] = None,
) -> None:
    """Walk a flow as a respondent and store the submission."""
    from intakeflow.config import load_project_config
    from intakeflow.graph.validator import CachedValidator
    from intakeflow.models.answers import check_answers
    from intakeflow.personalize import PersonalizationParams
    from intakeflow.runtime import JSONLSubmissionSink, MemorySubmissionSink, Navigator

    graph, project_path = _resolve_flow(target)

    validator = CachedValidator()
    if project_path is not None:
        config = load_project_config(project_path)
        validator = CachedValidator(config.validation_cache_size)
        if submissions is None:
            submissions = config.submissions_path(project_path)
    sink = JSONLSubmissionSink(submissions) if submissions is not None else MemorySubmissionSink()

    navigator = Navigator(graph, sink, validator=validator)
    report = navigator.report()
    if not report.is_valid:
        console.print(
            f"[yellow]![/yellow] Flow has {len(report.errors)} validation error(s); "
            "walking it anyway."
        )

    session = navigator.new_session()
    params = PersonalizationParams(
        client_name=client_name, company_name=company_name, project_name=project_name
    )

    scripted: dict[str, Any] | None = None
    if answers_file is not None:
        try:
            scripted = json.loads(answers_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            console.print(f"[red]Error:[/red] Cannot read answers file: {e}")
            raise typer.Exit(1) from e
        if not isinstance(scripted, dict):
            console.print("[red]Error:[/red] Answers file must contain a JSON object.")
            raise typer.Exit(1)
    elif not _is_interactive_tty():
        console.print("[red]Error:[/red] Not a terminal; pass --answers for a scripted run.")
        raise typer.Exit(1)

    with session_context(session.session_id):
        if scripted is not None:
            _walk_scripted(navigator, session, scripted)
        else:
            _walk_interactive(navigator, session, params)

    for problem in check_answers(graph, session.answers, visited=session.history):
        console.print(f"[yellow]![/yellow] {problem}")

    console.print(f"[green]✓[/green] Completed via: {' → '.join(session.history)}")
    if isinstance(sink, JSONLSubmissionSink):
        console.print(f"  Submission stored in {sink.path}")
    else:
        record = sink.records[0] if sink.records else None
        if record is not None:
            typer.echo(record.to_json())


if __name__ == "__main__":
    app()
