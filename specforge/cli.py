# specforge/cli.py
"""
CLI interface for specforge.

Thin presentation layer over the workflow engine. Every command maps a
result or SpecforgeError onto a process exit code; nothing below this layer
calls sys.exit.
"""

import asyncio
import contextlib
import signal
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from specforge.errors import ErrorRecord, ExitCode, RecoveryMode, SpecforgeError, format_error

app = typer.Typer(
    name="specforge",
    help="Generate onboarding screens from a YAML spec, with resumable checkpoints.",
    no_args_is_help=True,
)

console = Console(stderr=True)

DEFAULT_SPEC = "onboarding.yaml"

EXAMPLE_SPEC = """\
project_name: Acme
bundle_id: com.acme.app
theme:
  primary: "#4F46E5"
  secondary: "#F59E0B"
  font: Inter
welcome:
  headline: Welcome to Acme
  subtext: Everything you need, in one place.
  cta: Get started
  skip: Skip
steps:
  - title: Track
    headline: Track your progress
    subtext: See how far you have come every day.
  - title: Share
    headline: Share with friends
    subtext: Invite people and keep each other going.
login:
  headline: Create your account
  methods: [email, google, apple]
"""


def _fmt_duration(seconds: float) -> str:
    """Format seconds as human-readable duration (e.g. '5m17s', '42s')."""
    s = int(seconds)
    if s < 60:
        return f"{s}s"
    m, s = divmod(s, 60)
    return f"{m}m{s:02d}s"


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def _fail(record: ErrorRecord, verbose: bool = False) -> None:
    """Print a structured error and exit with its mapped code."""
    console.print(format_error(record, verbose=verbose))
    raise typer.Exit(int(record.exit_code))


def _load_config():
    from specforge.config import load_config

    try:
        return load_config()
    except SpecforgeError as e:
        _fail(e.record)


def _install_signal_handlers(cancel_event: asyncio.Event) -> list[signal.Signals]:
    """Set the cancel event on SIGINT/SIGTERM. Returns the signals handled."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, cancel_event.set)
            installed.append(sig)
    return installed


def _confirm_resume(checkpoint, age: str) -> bool:
    from specforge.workflow.phases import TOTAL_PHASES, WorkflowPhase

    last = WorkflowPhase(checkpoint.phase).display_name if checkpoint.phase else "none"
    return typer.confirm(
        f"Found a checkpoint from {age} (phase {checkpoint.phase}/{TOTAL_PHASES}, last: {last}). Resume?",
        default=True,
        err=True,
    )


def _confirm_recovery(prompt: str, actions) -> bool:
    for action in actions:
        command = f" [dim]({escape(action.command)})[/dim]" if action.command else ""
        console.print(f"  • {escape(action.description)}{command}")
    return typer.confirm(prompt, default=False, err=True)


def _print_result(result, output_path: Path) -> None:
    if result.success:
        finalize = result.outputs.finalize
        console.print()
        console.print(f"[green]✓ Done[/green]  time: {_fmt_duration(result.duration)}")
        if finalize is not None:
            verb = "Would write" if finalize.dry_run else "Wrote"
            console.print(f"[dim]{verb} {finalize.file_count} files ({finalize.total_size} bytes) to[/dim] {output_path}")
            if finalize.dry_run:
                for name in finalize.written_files:
                    console.print(f"  [dim]{escape(name)}[/dim]")
        return

    console.print()
    if result.failed_phase is not None:
        console.print(f"[red]✗ Failed[/red] during {result.failed_phase.display_name}")
    console.print(format_error(result.error))
    if result.recovery is not None:
        console.print(f"[dim]Recovery: {escape(result.recovery.message)}[/dim]")


@app.command()
def onboard(
    spec: Path = typer.Option(Path(DEFAULT_SPEC), "--spec", "-s", help="Spec file"),
    output: Path = typer.Option(None, "--output", "-o", help="Output directory (default from config)"),
    ai_repair: bool = typer.Option(False, "--ai-repair", help="Let the model fix validation errors"),
    ai_enhance: bool = typer.Option(False, "--ai-enhance", help="Let the model improve copy"),
    refine: bool = typer.Option(False, "--refine", help="Run the AI review of generated files"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be written"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Write into a non-empty output directory"),
    fresh: bool = typer.Option(False, "--fresh", help="Ignore any checkpoint and start over"),
    guided: bool = typer.Option(False, "--guided", help="Ask before applying recovery actions"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Warnings and errors only"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
):
    """Run (or resume) the onboarding generation workflow for a spec."""
    from specforge.logging_config import configure_logging
    from specforge.workflow import ProgressTracker, WorkflowEngine, WorkflowOptions

    config = _load_config()
    verbosity = "verbose" if verbose else "quiet" if quiet else config.output.verbosity
    configure_logging(verbosity, json_output=json_logs)

    output_path = output or Path(config.output.output_dir)
    options = WorkflowOptions(
        ai_repair=ai_repair,
        ai_enhance=ai_enhance,
        skip_refinement=not refine and config.workflow.skip_refinement,
        dry_run=dry_run,
        overwrite=overwrite,
        resume=not fresh,
        clear_on_success=config.workflow.clear_on_success,
        recovery_mode=RecoveryMode.GUIDED if guided else RecoveryMode.AUTOMATIC,
    )

    async def _onboard():
        ai = None
        if options.uses_ai:
            from specforge.ai.client import create_ai_client

            ai = create_ai_client(config)

        interactive = sys.stdin.isatty()
        engine = WorkflowEngine.from_config(
            config,
            ai=ai,
            tracker=ProgressTracker(console=console),
            confirm_resume=_confirm_resume if interactive else None,
            confirm_recovery=_confirm_recovery,
        )

        cancel_event = asyncio.Event()
        installed = _install_signal_handlers(cancel_event)
        try:
            return await engine.run_workflow(spec, output_path, options, cancel_event)
        finally:
            loop = asyncio.get_running_loop()
            for sig in installed:
                loop.remove_signal_handler(sig)

    try:
        result = _run(_onboard())
    except SpecforgeError as e:
        _fail(e.record, verbose)
    except KeyboardInterrupt:
        typer.echo("\nCancelled.", err=True)
        raise typer.Exit(int(ExitCode.CANCELLED))

    _print_result(result, output_path)
    if not result.success:
        raise typer.Exit(int(result.exit_code))


@app.command()
def reset(
    spec: Path = typer.Option(Path(DEFAULT_SPEC), "--spec", "-s", help="Spec file"),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation"),
):
    """Delete the saved checkpoint so the next run starts from phase 1."""
    from specforge.workflow import CheckpointStore

    config = _load_config()
    store = CheckpointStore(config.workflow.state_dir)
    if not store.exists(spec):
        typer.echo(f"No checkpoint for {spec}.")
        return

    if not force and not typer.confirm(f"Delete checkpoint for {spec}?", default=False, err=True):
        typer.echo("Aborted.", err=True)
        raise typer.Exit(1)

    try:
        _run(store.clear(spec))
    except SpecforgeError as e:
        _fail(e.record)
    typer.echo(f"Checkpoint for {spec} deleted.")


@app.command()
def status(spec: Path = typer.Option(Path(DEFAULT_SPEC), "--spec", "-s", help="Spec file")):
    """Show checkpoint progress for a spec."""
    from specforge.spec.fingerprint import compute_file_hash
    from specforge.workflow import CheckpointStore, TOTAL_PHASES, WorkflowPhase
    from specforge.workflow.checkpoint import format_checkpoint_age, validate_checkpoint_data

    config = _load_config()
    store = CheckpointStore(config.workflow.state_dir)
    checkpoint = _run(store.load(spec))
    if checkpoint is None:
        typer.echo(f"No checkpoint for {spec}.")
        return

    last = WorkflowPhase(checkpoint.phase).display_name if checkpoint.phase else "none"
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("key", style="cyan")
    table.add_column("value")
    table.add_row("Phase", f"{checkpoint.phase}/{TOTAL_PHASES} ({last})")
    table.add_row("Saved", format_checkpoint_age(checkpoint))
    table.add_row("Output", checkpoint.output_path)

    present = [name for name in checkpoint.data.model_fields_set if getattr(checkpoint.data, name)]
    table.add_row("Data", ", ".join(sorted(present)) or "-")
    if checkpoint.data.skipped:
        table.add_row("Skipped", ", ".join(checkpoint.data.skipped))

    try:
        current = compute_file_hash(spec) if spec.is_file() else None
    except SpecforgeError as e:
        _fail(e.record)
    if current is None:
        resumable = "no (spec file missing)"
    elif not store.is_valid_for(checkpoint, current):
        resumable = "no (spec modified)"
    elif problems := validate_checkpoint_data(checkpoint):
        resumable = f"no ({'; '.join(problems)})"
    else:
        resumable = "yes"
    table.add_row("Resumable", resumable)

    Console().print(table)


@app.command()
def validate(
    spec: Path = typer.Option(Path(DEFAULT_SPEC), "--spec", "-s", help="Spec file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print the parsed spec"),
):
    """Check a spec file against the schema without running the workflow."""
    from specforge.spec.loader import parse_spec, read_spec, validate_spec

    try:
        result = validate_spec(parse_spec(read_spec(spec), spec))
    except SpecforgeError as e:
        _fail(e.record, verbose)

    if not result.valid:
        console.print(f"[red]✗ {spec}: {len(result.issues)} issue(s)[/red]")
        for issue in result.issues:
            console.print(f"  [yellow]{escape(issue.path)}[/yellow]: {escape(issue.message)}")
        raise typer.Exit(int(ExitCode.VALIDATION_ERROR))

    typer.echo(f"✓ {spec} is valid ({len(result.spec.steps)} steps)")
    if verbose:
        typer.echo(result.spec.model_dump_json(indent=2))


@app.command("hash")
def hash_spec(spec: Path = typer.Option(Path(DEFAULT_SPEC), "--spec", "-s", help="Spec file")):
    """Print the spec fingerprint and whether it changed since the last run."""
    from specforge.spec.fingerprint import FingerprintStore, detect_modification

    config = _load_config()
    try:
        report = detect_modification(spec, FingerprintStore.for_spec(spec, config.workflow.state_dir))
    except SpecforgeError as e:
        _fail(e.record)

    typer.echo(report.current_hash)
    if report.saved_hash is None:
        console.print("[dim]No recorded fingerprint[/dim]")
    elif report.is_modified:
        console.print(f"[yellow]Modified[/yellow] since {report.saved_timestamp} (was {report.saved_hash[:12]})")
    else:
        console.print(f"[green]Unchanged[/green] since {report.saved_timestamp}")


@app.command()
def init(
    spec: Path = typer.Option(Path(DEFAULT_SPEC), "--spec", "-s", help="Spec file to create"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write an example spec file."""
    from specforge.storage import atomic_write_text

    if spec.exists() and not force:
        typer.echo(f"{spec} already exists (use --force to overwrite).", err=True)
        raise typer.Exit(int(ExitCode.FILE_SYSTEM_ERROR))
    atomic_write_text(spec, EXAMPLE_SPEC)
    typer.echo(f"Wrote example spec to {spec}")


@app.command("config-path")
def config_path():
    """Print the config file location."""
    from specforge.config import get_config_path

    typer.echo(str(get_config_path()))
