# specforge/workflow/stages/auth.py
"""Phase 1: verify the AI provider is reachable before any AI phase runs."""

import logging

from specforge.errors import ErrorCode, make_error, with_retry

from ..checkpoint import CheckpointData
from ..phases import WorkflowPhase
from .base import StageContext, StageResult, WorkflowStage

logger = logging.getLogger(__name__)


class AuthCheckStage(WorkflowStage):
    """Skipped when the run uses no AI features."""

    @property
    def phase(self) -> WorkflowPhase:
        return WorkflowPhase.AUTH_CHECK

    async def execute(self, context: StageContext) -> StageResult:
        if not context.options.uses_ai:
            return StageResult.skip("AI features disabled")

        if context.ai is None:
            return StageResult.failed(
                make_error(ErrorCode.AUTH_NOT_CONFIGURED, "AI features requested but no AI provider is configured")
            )

        await self._report_substep("contacting AI provider")
        await with_retry(
            context.ai.verify,
            strategy=context.retry_strategy,
            cancel_event=context.cancel_event,
        )
        return StageResult.ok(
            CheckpointData(metadata={"aiVerified": True}),
            summary="AI provider reachable",
        )
