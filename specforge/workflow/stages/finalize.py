# specforge/workflow/stages/finalize.py
"""Phase 7: write generated files and the metadata manifest."""

import asyncio
import logging

from specforge.errors import ErrorCode, make_error
from specforge.output.writer import ensure_output_dir, write_files, write_metadata

from ..checkpoint import CheckpointData, FinalizeOutput
from ..phases import WorkflowPhase
from .base import StageContext, StageResult, WorkflowStage

logger = logging.getLogger(__name__)


class FinalizeStage(WorkflowStage):
    @property
    def phase(self) -> WorkflowPhase:
        return WorkflowPhase.FINALIZE

    async def execute(self, context: StageContext) -> StageResult:
        generation = context.data.generation
        if generation is None:
            return StageResult.failed(make_error(ErrorCode.GENERATION_FAILED, "No generated files to write"))

        files = generation.files
        dry_run = context.options.dry_run
        if not dry_run:
            await asyncio.to_thread(ensure_output_dir, context.output_path, context.options.overwrite)
            context.check_cancelled()

        summary = await asyncio.to_thread(write_files, context.output_path, files, dry_run)
        if not dry_run:
            await asyncio.to_thread(write_metadata, context.output_path, context.spec_hash, files)

        output = FinalizeOutput(
            file_count=summary.file_count,
            total_size=summary.total_size,
            written_files=summary.written_files,
            dry_run=dry_run,
        )
        verb = "would write" if dry_run else "wrote"
        return StageResult.ok(
            CheckpointData(finalize=output),
            summary=f"{verb} {summary.file_count} files to {context.output_path}",
        )
