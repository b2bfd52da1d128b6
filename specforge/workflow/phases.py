# specforge/workflow/phases.py
"""The seven ordered workflow phases."""

from dataclasses import dataclass
from enum import IntEnum


class WorkflowPhase(IntEnum):
    AUTH_CHECK = 1
    SPEC_CHECK = 2
    REPAIR = 3
    ENHANCEMENT = 4
    GENERATION = 5
    REFINEMENT = 6
    FINALIZE = 7

    @property
    def display_name(self) -> str:
        return PHASE_INFO[self].name

    @property
    def description(self) -> str:
        return PHASE_INFO[self].description

    @property
    def next(self) -> "WorkflowPhase | None":
        """The following phase, or None after FINALIZE."""
        if self is WorkflowPhase.FINALIZE:
            return None
        return WorkflowPhase(self + 1)


@dataclass(frozen=True)
class PhaseInfo:
    name: str
    description: str


PHASE_INFO: dict[WorkflowPhase, PhaseInfo] = {
    WorkflowPhase.AUTH_CHECK: PhaseInfo("Auth Check", "Verify AI provider access"),
    WorkflowPhase.SPEC_CHECK: PhaseInfo("Spec Check", "Parse and validate the spec file"),
    WorkflowPhase.REPAIR: PhaseInfo("Repair", "Fix validation errors with AI"),
    WorkflowPhase.ENHANCEMENT: PhaseInfo("Enhancement", "Improve the spec with AI suggestions"),
    WorkflowPhase.GENERATION: PhaseInfo("Generation", "Render source files from templates"),
    WorkflowPhase.REFINEMENT: PhaseInfo("Refinement", "Review generated files with AI"),
    WorkflowPhase.FINALIZE: PhaseInfo("Finalize", "Write files to the output directory"),
}

FIRST_PHASE = WorkflowPhase.AUTH_CHECK
LAST_PHASE = WorkflowPhase.FINALIZE
TOTAL_PHASES = len(WorkflowPhase)
