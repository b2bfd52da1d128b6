# specforge/workflow/stages/spec_check.py
"""Phase 2: read, parse and validate the spec file."""

import asyncio
import logging

from specforge.errors import ErrorCode, make_error
from specforge.spec.loader import parse_spec, read_spec, validate_spec

from ..checkpoint import CheckpointData, SpecCheckOutput, ValidationIssue
from ..phases import WorkflowPhase
from .base import StageContext, StageResult, WorkflowStage

logger = logging.getLogger(__name__)


class SpecCheckStage(WorkflowStage):
    @property
    def phase(self) -> WorkflowPhase:
        return WorkflowPhase.SPEC_CHECK

    async def execute(self, context: StageContext) -> StageResult:
        text = await asyncio.to_thread(read_spec, context.spec_path)
        context.check_cancelled()
        validation = validate_spec(parse_spec(text, context.spec_path))

        issues = [ValidationIssue(path=i.path, message=i.message) for i in validation.issues]
        if issues and not context.options.ai_repair:
            return StageResult.failed(
                make_error(
                    ErrorCode.SPEC_VALIDATION_ERROR,
                    f"Spec validation failed with {len(issues)} error(s)",
                    path=str(context.spec_path),
                    errors=[i.model_dump() for i in issues],
                )
            )

        output = SpecCheckOutput(
            validated_spec=validation.spec.model_dump(mode="json") if validation.valid else None,
            validation_errors=issues,
        )
        summary = "Spec is valid" if not issues else f"{len(issues)} issue(s), AI repair requested"
        return StageResult.ok(CheckpointData(spec_check=output), summary=summary)
