# specforge/workflow/progress.py
"""Per-phase progress display on stderr."""

import time
from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .phases import TOTAL_PHASES, WorkflowPhase


def _fmt_duration(seconds: float) -> str:
    """Format seconds as human-readable duration (e.g. '5m17s', '42s')."""
    s = int(seconds)
    if s < 60:
        return f"{s}s"
    m, s = divmod(s, 60)
    return f"{m}m{s:02d}s"


@dataclass
class PhaseSummary:
    phase: WorkflowPhase
    completed: bool = False
    skipped: bool = False
    failed: bool = False
    note: str | None = None
    started_at: float | None = None
    duration: float | None = None


class ProgressTracker:
    """
    Records phase status and timings and prints one line per transition.

    Phases before `start_phase` count as already done (resumed run).
    """

    def __init__(
        self,
        start_phase: WorkflowPhase = WorkflowPhase.AUTH_CHECK,
        console: Console | None = None,
    ) -> None:
        self._console = console or Console(stderr=True)
        self._started = time.monotonic()
        self._phases: dict[WorkflowPhase, PhaseSummary] = {
            phase: PhaseSummary(phase=phase, completed=phase < start_phase) for phase in WorkflowPhase
        }

    @property
    def phases(self) -> list[PhaseSummary]:
        return list(self._phases.values())

    def summary_for(self, phase: WorkflowPhase) -> PhaseSummary:
        return self._phases[phase]

    def start_phase(self, phase: WorkflowPhase) -> None:
        summary = self._phases[phase]
        summary.started_at = time.monotonic()
        summary.failed = False
        self._console.print(
            f"[cyan][{phase.value}/{TOTAL_PHASES}][/cyan] {phase.display_name} [dim]- {phase.description}[/dim]"
        )

    def update_phase(self, phase: WorkflowPhase, message: str) -> None:
        self._console.print(f"      [dim]{escape(message)}[/dim]")

    def complete_phase(self, phase: WorkflowPhase, message: str | None = None) -> None:
        summary = self._finish(phase)
        summary.completed = True
        summary.note = message
        suffix = f" - {escape(message)}" if message else ""
        self._console.print(
            f"[green]✓[/green] {phase.display_name}{suffix} [dim]({_fmt_duration(summary.duration or 0)})[/dim]"
        )

    def skip_phase(self, phase: WorkflowPhase, reason: str) -> None:
        summary = self._finish(phase)
        summary.completed = True
        summary.skipped = True
        summary.note = reason
        self._console.print(f"[dim]○ {phase.display_name} - {escape(reason)}[/dim]")

    def fail_phase(self, phase: WorkflowPhase, error: str) -> None:
        summary = self._finish(phase)
        summary.failed = True
        summary.note = error
        self._console.print(f"[red]✗[/red] {phase.display_name} - {escape(error)}")

    def progress(self) -> int:
        """Percentage of phases that are done (completed or skipped)."""
        done = sum(1 for s in self._phases.values() if s.completed)
        return done * 100 // TOTAL_PHASES

    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def show_resuming(self, phase: WorkflowPhase, age: str) -> None:
        """Mark phases before `phase` as done and announce the resume point."""
        for earlier in WorkflowPhase:
            if earlier < phase:
                self._phases[earlier].completed = True
        self._console.print(
            f"[yellow]⚡[/yellow] Resuming from {phase.display_name} [dim](saved {escape(age)})[/dim]"
        )

    def show_summary(self) -> None:
        table = Table(title="Workflow Summary", show_header=False, box=None, padding=(0, 2))
        table.add_column("status")
        table.add_column("phase")
        table.add_column("detail", style="dim")

        for summary in self._phases.values():
            if summary.failed:
                icon = "[red]✗[/red]"
            elif summary.skipped:
                icon = "[dim]○[/dim]"
            elif summary.completed:
                icon = "[green]✓[/green]"
            else:
                icon = "[dim]·[/dim]"
            detail = "(skipped)" if summary.skipped else (
                _fmt_duration(summary.duration) if summary.duration is not None else ""
            )
            table.add_row(icon, summary.phase.display_name, detail)

        completed = sum(1 for s in self._phases.values() if s.completed and not s.skipped)
        skipped = sum(1 for s in self._phases.values() if s.skipped)
        self._console.print()
        self._console.print(table)
        self._console.print(
            f"  [cyan]Completed:[/cyan] {completed}/{TOTAL_PHASES}  [dim]({skipped} skipped, "
            f"{_fmt_duration(self.elapsed())})[/dim]"
        )

    def _finish(self, phase: WorkflowPhase) -> PhaseSummary:
        summary = self._phases[phase]
        if summary.started_at is not None:
            summary.duration = time.monotonic() - summary.started_at
        return summary
