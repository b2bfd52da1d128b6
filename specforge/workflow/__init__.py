# specforge/workflow/__init__.py
"""Checkpointed seven-phase workflow: phases, state machine, checkpoints, engine."""

from .checkpoint import Checkpoint, CheckpointData, CheckpointStore
from .engine import (
    WorkflowEngine,
    WorkflowOptions,
    WorkflowResult,
    has_checkpoint,
    reset,
    run_workflow,
)
from .lock import RunLock
from .phases import PHASE_INFO, TOTAL_PHASES, WorkflowPhase
from .progress import ProgressTracker
from .state import MachineStatus, PhaseStatus, WorkflowStateMachine

__all__ = [
    "Checkpoint",
    "CheckpointData",
    "CheckpointStore",
    "MachineStatus",
    "PHASE_INFO",
    "PhaseStatus",
    "ProgressTracker",
    "RunLock",
    "TOTAL_PHASES",
    "WorkflowEngine",
    "WorkflowOptions",
    "WorkflowPhase",
    "WorkflowResult",
    "WorkflowStateMachine",
    "has_checkpoint",
    "reset",
    "run_workflow",
]
