# specforge/workflow/stages/generation.py
"""Phase 5: render source files from the best available spec."""

import logging

from specforge.errors import ErrorCode, make_error
from specforge.output.renderer import TemplateRenderer
from specforge.spec.schema import AppSpec

from ..checkpoint import CheckpointData, GenerationOutput
from ..phases import WorkflowPhase
from .base import StageContext, StageResult, WorkflowStage

logger = logging.getLogger(__name__)


class GenerationStage(WorkflowStage):
    @property
    def phase(self) -> WorkflowPhase:
        return WorkflowPhase.GENERATION

    async def execute(self, context: StageContext) -> StageResult:
        spec_data = context.data.current_spec()
        if spec_data is None:
            return StageResult.failed(
                make_error(ErrorCode.GENERATION_FAILED, "No spec available for generation")
            )

        spec = AppSpec.model_validate(spec_data)
        renderer = context.renderer or TemplateRenderer()
        files = renderer.render(spec)
        return StageResult.ok(
            CheckpointData(generation=GenerationOutput(files=files)),
            summary=f"{len(files)} files",
        )
