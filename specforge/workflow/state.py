# specforge/workflow/state.py
"""
Workflow state machine.

Tracks per-phase status and a cursor over the ordered phases. Only the
cursor phase may start; completing or skipping advances the cursor, failing
leaves it in place so the same phase can be attempted again.

    PENDING -> IN_PROGRESS -> COMPLETED | SKIPPED | FAILED
    FAILED  -> IN_PROGRESS (re-run)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from specforge.errors import ErrorCode, SpecforgeError, make_error

from .phases import FIRST_PHASE, WorkflowPhase

logger = logging.getLogger(__name__)


class PhaseStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class MachineStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class Transition(Enum):
    START = "start"
    COMPLETE = "complete"
    SKIP = "skip"
    FAIL = "fail"
    ABORT = "abort"


@dataclass(frozen=True)
class HistoryEntry:
    phase: WorkflowPhase | None
    transition: Transition
    reason: str | None
    timestamp: datetime


@dataclass
class WorkflowStateMachine:
    """Per-run phase bookkeeping. Not persisted; checkpoints carry progress."""

    cursor: WorkflowPhase | None = FIRST_PHASE
    status: MachineStatus = MachineStatus.RUNNING
    phases: dict[WorkflowPhase, PhaseStatus] = field(
        default_factory=lambda: {p: PhaseStatus.PENDING for p in WorkflowPhase}
    )
    reasons: dict[WorkflowPhase, str] = field(default_factory=dict)
    history: list[HistoryEntry] = field(default_factory=list)

    @classmethod
    def resumed(cls, last_phase: int, skipped: dict[str, str] | None = None) -> "WorkflowStateMachine":
        """
        Machine positioned after `last_phase` (the checkpoint ordinal).

        Earlier phases are marked completed, or skipped when listed in `skipped`.
        """
        skipped = skipped or {}
        machine = cls()
        for phase in WorkflowPhase:
            if phase > last_phase:
                break
            if phase.name in skipped:
                machine.phases[phase] = PhaseStatus.SKIPPED
                machine.reasons[phase] = skipped[phase.name]
            else:
                machine.phases[phase] = PhaseStatus.COMPLETED
        if last_phase >= len(WorkflowPhase):
            machine.cursor = None
            machine.status = MachineStatus.COMPLETED
        else:
            machine.cursor = WorkflowPhase(last_phase + 1)
        return machine

    @property
    def is_terminal(self) -> bool:
        return self.status is not MachineStatus.RUNNING

    def status_of(self, phase: WorkflowPhase) -> PhaseStatus:
        return self.phases[phase]

    def completed_phases(self) -> list[WorkflowPhase]:
        return [p for p, s in self.phases.items() if s is PhaseStatus.COMPLETED]

    def skipped_phases(self) -> list[WorkflowPhase]:
        return [p for p, s in self.phases.items() if s is PhaseStatus.SKIPPED]

    def failed_phase(self) -> WorkflowPhase | None:
        for phase, status in self.phases.items():
            if status is PhaseStatus.FAILED:
                return phase
        return None

    def start(self, phase: WorkflowPhase) -> None:
        self._require_running()
        if phase != self.cursor:
            self._invalid(f"Cannot start {phase.display_name}: current phase is {self._cursor_name()}", phase)
        if self.phases[phase] not in (PhaseStatus.PENDING, PhaseStatus.FAILED):
            self._invalid(f"Cannot start {phase.display_name} from {self.phases[phase].value}", phase)
        self.phases[phase] = PhaseStatus.IN_PROGRESS
        self.reasons.pop(phase, None)
        self._record(phase, Transition.START)

    def complete(self, phase: WorkflowPhase) -> None:
        self._finish(phase, PhaseStatus.COMPLETED, Transition.COMPLETE, None)

    def skip(self, phase: WorkflowPhase, reason: str) -> None:
        self._finish(phase, PhaseStatus.SKIPPED, Transition.SKIP, reason)

    def fail(self, phase: WorkflowPhase, reason: str) -> None:
        """Mark the phase failed. The cursor stays on it."""
        self._require_in_progress(phase)
        self.phases[phase] = PhaseStatus.FAILED
        self.reasons[phase] = reason
        self._record(phase, Transition.FAIL, reason)

    def abort(self, reason: str) -> None:
        self._require_running()
        self.status = MachineStatus.ABORTED
        self._record(self.cursor, Transition.ABORT, reason)

    def _finish(
        self, phase: WorkflowPhase, status: PhaseStatus, transition: Transition, reason: str | None
    ) -> None:
        self._require_in_progress(phase)
        self.phases[phase] = status
        if reason is not None:
            self.reasons[phase] = reason
        self._record(phase, transition, reason)

        self.cursor = phase.next
        if self.cursor is None:
            self.status = MachineStatus.COMPLETED

    def _require_running(self) -> None:
        if self.is_terminal:
            raise SpecforgeError(
                make_error(ErrorCode.WORKFLOW_STATE_INVALID, f"Workflow is already {self.status.value}")
            )

    def _require_in_progress(self, phase: WorkflowPhase) -> None:
        self._require_running()
        if self.phases[phase] is not PhaseStatus.IN_PROGRESS:
            self._invalid(f"{phase.display_name} is not in progress ({self.phases[phase].value})", phase)

    def _invalid(self, message: str, phase: WorkflowPhase) -> None:
        raise SpecforgeError(make_error(ErrorCode.WORKFLOW_STATE_INVALID, message, phase=phase.name))

    def _cursor_name(self) -> str:
        return self.cursor.display_name if self.cursor else "none"

    def _record(self, phase: WorkflowPhase | None, transition: Transition, reason: str | None = None) -> None:
        self.history.append(HistoryEntry(phase, transition, reason, datetime.now(timezone.utc)))
        logger.debug(f"{transition.value} {phase.name if phase else '-'}{f': {reason}' if reason else ''}")
