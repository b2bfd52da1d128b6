# specforge/workflow/stages/refinement.py
"""Phase 6: optional AI review of generated files."""

import logging

from specforge.ai.operations import refine_files
from specforge.errors import ErrorCode, make_error

from ..checkpoint import CheckpointData, RefinementOutput
from ..phases import WorkflowPhase
from .base import StageContext, StageResult, WorkflowStage

logger = logging.getLogger(__name__)


class RefinementStage(WorkflowStage):
    @property
    def phase(self) -> WorkflowPhase:
        return WorkflowPhase.REFINEMENT

    async def execute(self, context: StageContext) -> StageResult:
        if context.options.skip_refinement:
            return StageResult.skip("Refinement disabled")
        if context.ai is None:
            return StageResult.failed(
                make_error(ErrorCode.AUTH_NOT_CONFIGURED, "Refinement requested but no AI provider is configured")
            )

        generation = context.data.generation
        if generation is None:
            return StageResult.failed(make_error(ErrorCode.GENERATION_FAILED, "No generated files to refine"))

        spec = context.data.current_spec() or {}
        await self._report_substep(f"reviewing {len(generation.files)} files")
        notes = await refine_files(
            context.ai,
            str(spec.get("project_name", "app")),
            generation.files,
            strategy=context.retry_strategy,
            cancel_event=context.cancel_event,
        )
        for note in notes:
            logger.info(f"Refinement note: {note}")
        return StageResult.ok(
            CheckpointData(refinement=RefinementOutput(notes=notes)), summary=f"{len(notes)} note(s)"
        )
