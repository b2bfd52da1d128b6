# specforge/workflow/stages/base.py
"""
Abstract base class for workflow stages.

Each stage is one phase body. Stages receive a StageContext holding the
accumulated outputs of earlier phases and return a StageResult whose output
is a CheckpointData fragment; the engine merges it and persists the
checkpoint. Stages never save checkpoints themselves.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from specforge.errors import ErrorRecord, RetryStrategy, cancelled_error

from ..checkpoint import CheckpointData
from ..phases import WorkflowPhase

if TYPE_CHECKING:
    from specforge.ai.client import AIClient
    from specforge.output.renderer import TemplateRenderer

    from ..engine import WorkflowOptions

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """
    Everything a stage may read.

    Attributes:
        spec_path: Spec file being processed
        output_path: Target directory for generated files
        options: Run options (AI flags, dry run, overwrite, ...)
        data: Outputs accumulated so far (rehydrated from the checkpoint on resume)
        spec_hash: Fingerprint of the spec content for this run
        cancel_event: Set by the caller to stop the run
        retry_strategy: Backoff policy for AI/network calls
        ai: AI client (None when no AI option is enabled)
        renderer: Template renderer for the generation phase
    """

    spec_path: Path
    output_path: Path
    options: "WorkflowOptions"
    data: CheckpointData
    spec_hash: str
    cancel_event: asyncio.Event
    retry_strategy: RetryStrategy
    ai: "AIClient | None" = None
    renderer: "TemplateRenderer | None" = None

    def check_cancelled(self) -> None:
        """Raise USER_CANCELLED if the run was cancelled."""
        if self.cancel_event.is_set():
            raise cancelled_error()


@dataclass
class StageResult:
    """
    Result of executing a workflow stage.

    Attributes:
        success: Whether the stage completed
        output: CheckpointData fragment to merge (None for nothing)
        skipped_reason: Set when the stage decided not to run
        error: ErrorRecord if success=False
        summary: One-line human summary for progress output
    """

    success: bool
    output: CheckpointData | None = None
    skipped_reason: str | None = None
    error: ErrorRecord | None = None
    summary: str | None = None

    @property
    def skipped(self) -> bool:
        return self.success and self.skipped_reason is not None

    @classmethod
    def ok(cls, output: CheckpointData | None = None, summary: str | None = None) -> "StageResult":
        return cls(success=True, output=output, summary=summary)

    @classmethod
    def skip(cls, reason: str, output: CheckpointData | None = None) -> "StageResult":
        return cls(success=True, output=output, skipped_reason=reason)

    @classmethod
    def failed(cls, error: ErrorRecord) -> "StageResult":
        return cls(success=False, error=error)


class WorkflowStage(ABC):
    """
    Abstract base class for workflow phase bodies.

    Stages may raise SpecforgeError (or anything else); the engine
    normalizes exceptions into ErrorRecords, so returning StageResult.failed
    and raising are equivalent.
    """

    def __init__(self) -> None:
        self._substep_cb: Callable[[str], Coroutine[Any, Any, None]] | None = None

    def set_substep_callback(self, cb: Callable[[str], Coroutine[Any, Any, None]] | None) -> None:
        """Set callback for reporting sub-step progress (e.g. 'repair:calling model')."""
        self._substep_cb = cb

    async def _report_substep(self, substep: str) -> None:
        if self._substep_cb:
            await self._substep_cb(substep)

    @property
    @abstractmethod
    def phase(self) -> WorkflowPhase:
        """The phase this stage implements."""

    @property
    def name(self) -> str:
        """Stage name (used in logging)."""
        return self.phase.display_name

    @property
    def progress_range(self) -> tuple[float, float]:
        """Slice of overall progress this stage covers (0.0 to 1.0)."""
        total = len(WorkflowPhase)
        return ((self.phase - 1) / total, self.phase / total)

    @abstractmethod
    async def execute(self, context: StageContext) -> StageResult:
        """
        Run the phase.

        Args:
            context: Accumulated state and collaborators

        Returns:
            StageResult with the output fragment for this phase
        """
