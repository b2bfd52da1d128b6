# specforge/workflow/stages/enhancement.py
"""Phase 4: optional AI copy enhancement."""

import logging

from specforge.ai.operations import enhance_spec
from specforge.errors import ErrorCode, make_error

from ..checkpoint import CheckpointData, EnhancementChange, EnhancementOutput
from ..phases import WorkflowPhase
from .base import StageContext, StageResult, WorkflowStage

logger = logging.getLogger(__name__)


class EnhancementStage(WorkflowStage):
    @property
    def phase(self) -> WorkflowPhase:
        return WorkflowPhase.ENHANCEMENT

    async def execute(self, context: StageContext) -> StageResult:
        if not context.options.ai_enhance:
            return StageResult.skip("AI enhancement not requested")
        if context.ai is None:
            return StageResult.failed(
                make_error(ErrorCode.AUTH_NOT_CONFIGURED, "AI enhancement requested but no AI provider is configured")
            )

        spec = context.data.current_spec()
        if spec is None:
            return StageResult.failed(make_error(ErrorCode.GENERATION_FAILED, "No validated spec to enhance"))

        await self._report_substep("improving copy")
        result = await enhance_spec(
            context.ai, spec, strategy=context.retry_strategy, cancel_event=context.cancel_event
        )
        output = EnhancementOutput(
            enhanced_spec=result.spec,
            enhancements=[EnhancementChange(**e) for e in result.enhancements],
        )
        return StageResult.ok(
            CheckpointData(enhancement=output), summary=f"{len(output.enhancements)} enhancement(s)"
        )
