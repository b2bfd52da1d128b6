# specforge/workflow/stages/repair.py
"""Phase 3: AI repair of validation errors."""

import asyncio
import logging

from specforge.ai.operations import repair_spec
from specforge.errors import ErrorCode, make_error
from specforge.spec.loader import parse_spec, read_spec

from ..checkpoint import CheckpointData, RepairChange, RepairOutput
from ..phases import WorkflowPhase
from .base import StageContext, StageResult, WorkflowStage

logger = logging.getLogger(__name__)


class RepairStage(WorkflowStage):
    @property
    def phase(self) -> WorkflowPhase:
        return WorkflowPhase.REPAIR

    async def execute(self, context: StageContext) -> StageResult:
        spec_check = context.data.spec_check
        if spec_check is None or not spec_check.validation_errors:
            return StageResult.skip("No validation errors")
        if not context.options.ai_repair:
            return StageResult.skip("AI repair not requested")
        if context.ai is None:
            return StageResult.failed(
                make_error(ErrorCode.AUTH_NOT_CONFIGURED, "AI repair requested but no AI provider is configured")
            )

        # The spec content is pinned by the fingerprint, so re-reading is safe on resume
        raw = parse_spec(await asyncio.to_thread(read_spec, context.spec_path), context.spec_path)
        context.check_cancelled()

        await self._report_substep(f"repairing {len(spec_check.validation_errors)} issue(s)")
        result = await repair_spec(
            context.ai,
            raw,
            [i.model_dump() for i in spec_check.validation_errors],
            strategy=context.retry_strategy,
            cancel_event=context.cancel_event,
        )
        output = RepairOutput(
            repaired_spec=result.spec,
            changes=[RepairChange(**c) for c in result.changes],
        )
        return StageResult.ok(CheckpointData(repair=output), summary=f"{len(output.changes)} change(s)")
