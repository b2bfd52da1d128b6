# specforge/workflow/engine.py
"""
Workflow engine.

Drives the seven phases in order for one spec, persisting a checkpoint
after every completed or skipped phase so an interrupted run resumes at
the next phase instead of starting over.

Workflow:
1. Acquire the run lock for the spec directory
2. Fingerprint the spec and record the fingerprint
3. Load the checkpoint; resume if it matches the fingerprint and is consistent
4. Execute remaining stages, saving the checkpoint after each
5. On failure: leave the checkpoint at the last good phase, run recovery
6. On success: clear the checkpoint
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from specforge.errors import (
    ErrorCategory,
    ErrorCode,
    ErrorRecord,
    ExitCode,
    RecoveryContext,
    RecoveryManager,
    RecoveryMode,
    RecoveryOutcome,
    RecoveryStatus,
    RetryStrategy,
    SpecforgeError,
    cancelled_error,
    make_error,
    normalize_exception,
)
from specforge.errors.recovery import ConfirmCallback
from specforge.spec.fingerprint import FingerprintStore, require_spec_file
from specforge.storage import STATE_DIR_NAME

from .checkpoint import (
    Checkpoint,
    CheckpointData,
    CheckpointStore,
    create_checkpoint,
    format_checkpoint_age,
    update_checkpoint,
    validate_checkpoint_data,
)
from .lock import DEFAULT_STALE_AFTER, RunLock
from .phases import TOTAL_PHASES, WorkflowPhase
from .progress import ProgressTracker
from .stages import StageContext, StageResult, WorkflowStage, default_stages
from .state import WorkflowStateMachine

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], Any]
ResumeConfirm = Callable[[Checkpoint, str], bool]


@dataclass
class WorkflowOptions:
    """
    Per-run options.

    Attributes:
        ai_repair: Let the AI fix validation errors (phase 3)
        ai_enhance: Let the AI improve copy (phase 4)
        skip_refinement: Skip the AI review of generated files (phase 6)
        dry_run: Report what finalize would write without touching disk
        overwrite: Allow writing into a non-empty output directory
        resume: Resume from a valid checkpoint (False forces a fresh start)
        clear_on_success: Delete the checkpoint after a successful run
        recovery_mode: AUTOMATIC (no prompts) or GUIDED (confirm callback)
    """

    ai_repair: bool = False
    ai_enhance: bool = False
    skip_refinement: bool = True
    dry_run: bool = False
    overwrite: bool = False
    resume: bool = True
    clear_on_success: bool = True
    recovery_mode: RecoveryMode = RecoveryMode.AUTOMATIC

    @property
    def uses_ai(self) -> bool:
        return self.ai_repair or self.ai_enhance or not self.skip_refinement


@dataclass
class WorkflowResult:
    """
    Result of a workflow run.

    Attributes:
        success: Whether every phase completed or was skipped
        outputs: Accumulated phase outputs
        completed_phases: Phases that ran to completion (including resumed ones)
        skipped_phases: Phases that were skipped
        failed_phase: Phase that failed (if success=False)
        error: ErrorRecord (if success=False)
        recovery: Outcome of the recovery attempt, if one was made
        exit_code: Process exit code for this result
        resumed_from: First phase executed when resuming (None for a fresh run)
        duration: Wall time in seconds
    """

    success: bool
    outputs: CheckpointData = field(default_factory=CheckpointData)
    completed_phases: list[WorkflowPhase] = field(default_factory=list)
    skipped_phases: list[WorkflowPhase] = field(default_factory=list)
    failed_phase: WorkflowPhase | None = None
    error: ErrorRecord | None = None
    recovery: RecoveryOutcome | None = None
    exit_code: ExitCode = ExitCode.SUCCESS
    resumed_from: WorkflowPhase | None = None
    duration: float = 0.0


class WorkflowEngine:
    """
    Sequential, checkpointed phase runner.

    Collaborators are injected so tests can replace stages, the AI client or
    the recovery manager.
    """

    def __init__(
        self,
        stages: list[WorkflowStage] | None = None,
        checkpoint_store: CheckpointStore | None = None,
        recovery_manager: RecoveryManager | None = None,
        ai: Any = None,
        renderer: Any = None,
        retry_strategy: RetryStrategy | None = None,
        state_dir_name: str = STATE_DIR_NAME,
        lock_stale_after: float = DEFAULT_STALE_AFTER,
        tracker: ProgressTracker | None = None,
        progress_callback: ProgressCallback | None = None,
        confirm_resume: ResumeConfirm | None = None,
        confirm_recovery: ConfirmCallback | None = None,
    ) -> None:
        self._stages = sorted(stages if stages is not None else default_stages(), key=lambda s: s.phase)
        phases = [s.phase for s in self._stages]
        if phases != list(WorkflowPhase):
            raise ValueError(f"Expected one stage per phase, got {[p.name for p in phases]}")
        self._dir_name = state_dir_name
        self._store = checkpoint_store or CheckpointStore(state_dir_name)
        self._recovery = recovery_manager or RecoveryManager()
        self._ai = ai
        self._renderer = renderer
        self._retry_strategy = retry_strategy or RetryStrategy()
        self._lock_stale_after = lock_stale_after
        self._tracker = tracker
        self._progress_callback = progress_callback
        self._confirm_resume = confirm_resume
        self._confirm_recovery = confirm_recovery
        logger.info(f"Created WorkflowEngine with {len(self._stages)} stages")

    @property
    def checkpoint_store(self) -> CheckpointStore:
        return self._store

    def has_checkpoint(self, spec_path: Path | str) -> bool:
        return self._store.exists(spec_path)

    async def reset(self, spec_path: Path | str) -> bool:
        """
        Delete the checkpoint for a spec. The fingerprint record is untouched.

        Returns:
            True if a checkpoint existed
        """
        existed = self._store.exists(spec_path)
        await self._store.clear(spec_path)
        return existed

    async def run_workflow(
        self,
        spec_path: Path | str,
        output_path: Path | str,
        options: WorkflowOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> WorkflowResult:
        """
        Run (or resume) the workflow for a spec.

        Args:
            spec_path: Spec file
            output_path: Output directory for generated files
            options: Run options (defaults to WorkflowOptions())
            cancel_event: Set by the caller (e.g. on SIGINT) to stop the run

        Returns:
            WorkflowResult. Failures are reported in the result, never raised.
        """
        started = time.monotonic()
        options = options or WorkflowOptions()
        cancel_event = cancel_event or asyncio.Event()
        spec_path = Path(spec_path)
        output_path = Path(output_path)

        try:
            require_spec_file(spec_path)
            lock = RunLock(spec_path, stale_after=self._lock_stale_after, dir_name=self._dir_name)
            lock.acquire()
        except SpecforgeError as e:
            logger.error(f"Cannot start workflow: {e.record.message}")
            return self._result_for_error(e.record, None, None, None, started)

        try:
            return await self._run(spec_path, output_path, options, cancel_event, started)
        finally:
            lock.release()

    async def _run(
        self,
        spec_path: Path,
        output_path: Path,
        options: WorkflowOptions,
        cancel_event: asyncio.Event,
        started: float,
    ) -> WorkflowResult:
        try:
            fingerprint = FingerprintStore.for_spec(spec_path, self._dir_name).record(spec_path)
        except SpecforgeError as e:
            return self._result_for_error(e.record, None, None, None, started)

        checkpoint = await self._resume_point(spec_path, fingerprint.hash, options)
        resumed_from: WorkflowPhase | None = None
        if checkpoint is None:
            checkpoint = create_checkpoint(spec_path, output_path, fingerprint.hash)
            machine = WorkflowStateMachine()
            logger.info(f"Starting fresh workflow for {spec_path}")
        else:
            checkpoint = checkpoint.model_copy(update={"output_path": str(output_path.resolve())})
            machine = WorkflowStateMachine.resumed(checkpoint.phase, checkpoint.data.skipped)
            if checkpoint.phase < TOTAL_PHASES:
                resumed_from = WorkflowPhase(checkpoint.phase + 1)
                logger.info(f"Resuming workflow for {spec_path} at {resumed_from.display_name}")
                if self._tracker:
                    self._tracker.show_resuming(resumed_from, format_checkpoint_age(checkpoint))

        context = StageContext(
            spec_path=spec_path,
            output_path=output_path,
            options=options,
            data=checkpoint.data,
            spec_hash=fingerprint.hash,
            cancel_event=cancel_event,
            retry_strategy=self._retry_strategy,
            ai=self._ai,
            renderer=self._renderer,
        )

        remaining = [s for s in self._stages if s.phase > checkpoint.phase]
        if not remaining:
            logger.info("All phases already completed (checkpoint recovery)")

        for stage in remaining:
            if cancel_event.is_set():
                return self._cancelled(machine, context.data, resumed_from, started)

            result, record, outcome = await self._execute_stage(stage, machine, context)
            if record is not None:
                if record.category is ErrorCategory.CANCELLED:
                    return self._cancelled(machine, context.data, resumed_from, started, record)
                return self._result_for_error(
                    record, machine, context.data, resumed_from, started, stage.phase, outcome
                )

            fragment = result.output or CheckpointData()
            if result.skipped:
                fragment = fragment.merge(CheckpointData(skipped={stage.phase.name: result.skipped_reason}))
                machine.skip(stage.phase, result.skipped_reason)
                if self._tracker:
                    self._tracker.skip_phase(stage.phase, result.skipped_reason)
            else:
                machine.complete(stage.phase)
                if self._tracker:
                    self._tracker.complete_phase(stage.phase, result.summary)

            checkpoint = update_checkpoint(checkpoint, stage.phase, fragment)
            context.data = checkpoint.data
            try:
                await self._store.save(checkpoint)
            except SpecforgeError as e:
                return self._result_for_error(
                    e.record, machine, context.data, resumed_from, started, stage.phase
                )
            await self._notify(stage.progress_range[1], f"{stage.phase.name.lower()}_complete")

        if options.clear_on_success:
            await self._store.clear(spec_path)
        if self._tracker:
            self._tracker.show_summary()

        duration = time.monotonic() - started
        logger.info(f"Workflow completed in {duration:.1f}s")
        return WorkflowResult(
            success=True,
            outputs=context.data,
            completed_phases=machine.completed_phases(),
            skipped_phases=machine.skipped_phases(),
            resumed_from=resumed_from,
            duration=duration,
        )

    async def _resume_point(
        self, spec_path: Path, current_hash: str, options: WorkflowOptions
    ) -> Checkpoint | None:
        """Return the checkpoint to resume from, or None to start fresh."""
        if not options.resume:
            logger.info("Resume disabled, starting fresh")
            return None

        checkpoint = await self._store.load(spec_path)
        if checkpoint is None:
            return None

        if not self._store.is_valid_for(checkpoint, current_hash):
            logger.warning("Spec file has been modified since last checkpoint. Starting fresh...")
            return None

        problems = validate_checkpoint_data(checkpoint)
        if problems:
            logger.warning(f"Checkpoint data is inconsistent ({'; '.join(problems)}). Starting fresh...")
            return None

        if self._confirm_resume and not self._confirm_resume(checkpoint, format_checkpoint_age(checkpoint)):
            logger.info("Resume declined, starting fresh")
            return None
        return checkpoint

    async def _execute_stage(
        self, stage: WorkflowStage, machine: WorkflowStateMachine, context: StageContext
    ) -> tuple[StageResult | None, ErrorRecord | None, RecoveryOutcome | None]:
        """
        Run one stage, re-running it once if recovery says so.

        Returns:
            (result, None, None) on success, else (None, record, recovery outcome)
        """
        phase = stage.phase

        async def _substep_cb(detail: str) -> None:
            if self._tracker:
                self._tracker.update_phase(phase, detail)
            await self._notify(stage.progress_range[0], f"{phase.name.lower()}:{detail}")

        stage.set_substep_callback(_substep_cb)
        rerun_after: str | None = None

        while True:
            machine.start(phase)
            if self._tracker:
                self._tracker.start_phase(phase)
            await self._notify(stage.progress_range[0], phase.name.lower())
            logger.info(f"Executing phase {phase.value}/{TOTAL_PHASES}: {stage.name}")

            try:
                result = await stage.execute(context)
                record = None if result.success else (
                    result.error or make_error(ErrorCode.WORKFLOW_PHASE_FAILED, f"{stage.name} failed")
                )
            except Exception as e:
                logger.debug(f"Phase {stage.name} raised", exc_info=True)
                result = None
                record = normalize_exception(e)

            if record is None:
                return result, None, None

            record = record.with_context(phase=phase.name)
            machine.fail(phase, record.message)
            if self._tracker:
                self._tracker.fail_phase(phase, record.message)
            logger.error(f"Phase {stage.name} failed: {record.code.value}: {record.message}")

            if record.category is ErrorCategory.CANCELLED:
                return None, record, None

            # One re-run per phase; a second failure is terminal
            if rerun_after:
                outcome = RecoveryOutcome(
                    status=RecoveryStatus.FAILED,
                    message=f"{stage.name} failed again after {rerun_after} recovery",
                    actions=record.recovery_actions,
                    strategy=rerun_after,
                )
                return None, record, outcome

            outcome = self._recovery.recover(
                record,
                RecoveryContext(
                    spec_path=context.spec_path,
                    output_path=context.output_path,
                    has_checkpoint=self._store.exists(context.spec_path),
                    confirm=self._confirm_recovery,
                ),
                context.options.recovery_mode,
            )
            if outcome.retry_phase and not context.cancel_event.is_set():
                rerun_after = outcome.strategy or "recovery"
                logger.info(f"Re-running {stage.name} after {rerun_after} recovery")
                continue
            return None, record, outcome

    async def _notify(self, progress: float, label: str) -> None:
        if not self._progress_callback:
            return
        result_or_coro = self._progress_callback(progress, label)
        if hasattr(result_or_coro, "__await__"):
            await result_or_coro

    def _cancelled(
        self,
        machine: WorkflowStateMachine,
        data: CheckpointData,
        resumed_from: WorkflowPhase | None,
        started: float,
        record: ErrorRecord | None = None,
    ) -> WorkflowResult:
        record = record or cancelled_error().record
        if not machine.is_terminal:
            machine.abort(record.message)
        logger.warning("Workflow cancelled; progress is saved up to the last completed phase")
        return WorkflowResult(
            success=False,
            outputs=data,
            completed_phases=machine.completed_phases(),
            skipped_phases=machine.skipped_phases(),
            failed_phase=machine.failed_phase(),
            error=record,
            exit_code=record.exit_code,
            resumed_from=resumed_from,
            duration=time.monotonic() - started,
        )

    def _result_for_error(
        self,
        record: ErrorRecord,
        machine: WorkflowStateMachine | None,
        data: CheckpointData | None,
        resumed_from: WorkflowPhase | None,
        started: float,
        failed_phase: WorkflowPhase | None = None,
        recovery: RecoveryOutcome | None = None,
    ) -> WorkflowResult:
        return WorkflowResult(
            success=False,
            outputs=data or CheckpointData(),
            completed_phases=machine.completed_phases() if machine else [],
            skipped_phases=machine.skipped_phases() if machine else [],
            failed_phase=failed_phase,
            error=record,
            recovery=recovery,
            exit_code=record.exit_code,
            resumed_from=resumed_from,
            duration=time.monotonic() - started,
        )

    @classmethod
    def from_config(cls, config, **kwargs) -> "WorkflowEngine":
        """Engine wired from SpecforgeConfig (retry policy, state dir, lock staleness)."""
        return cls(
            retry_strategy=config.retry.to_strategy(),
            state_dir_name=config.workflow.state_dir,
            lock_stale_after=config.workflow.lock_stale_after,
            **kwargs,
        )


async def run_workflow(
    spec_path: Path | str,
    output_path: Path | str,
    options: WorkflowOptions | None = None,
    cancel_event: asyncio.Event | None = None,
    **engine_kwargs: Any,
) -> WorkflowResult:
    """Run the workflow with a default-wired engine."""
    engine = WorkflowEngine(**engine_kwargs)
    return await engine.run_workflow(spec_path, output_path, options, cancel_event)


async def reset(spec_path: Path | str, state_dir_name: str = STATE_DIR_NAME) -> bool:
    """Delete the checkpoint for a spec. Returns True if one existed."""
    store = CheckpointStore(state_dir_name)
    existed = store.exists(spec_path)
    await store.clear(spec_path)
    return existed


def has_checkpoint(spec_path: Path | str, state_dir_name: str = STATE_DIR_NAME) -> bool:
    return CheckpointStore(state_dir_name).exists(spec_path)
