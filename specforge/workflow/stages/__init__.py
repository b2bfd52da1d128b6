# specforge/workflow/stages/__init__.py
"""Workflow stage implementations, one per phase."""

from .auth import AuthCheckStage
from .base import StageContext, StageResult, WorkflowStage
from .enhancement import EnhancementStage
from .finalize import FinalizeStage
from .generation import GenerationStage
from .refinement import RefinementStage
from .repair import RepairStage
from .spec_check import SpecCheckStage


def default_stages() -> list[WorkflowStage]:
    """The seven stages in phase order."""
    return [
        AuthCheckStage(),
        SpecCheckStage(),
        RepairStage(),
        EnhancementStage(),
        GenerationStage(),
        RefinementStage(),
        FinalizeStage(),
    ]


__all__ = [
    "WorkflowStage",
    "StageContext",
    "StageResult",
    "AuthCheckStage",
    "SpecCheckStage",
    "RepairStage",
    "EnhancementStage",
    "GenerationStage",
    "RefinementStage",
    "FinalizeStage",
    "default_stages",
]
