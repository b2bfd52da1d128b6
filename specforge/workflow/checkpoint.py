# specforge/workflow/checkpoint.py
"""
Checkpoint persistence for workflow recovery.

One record per spec directory at <spec dir>/.specforge/checkpoint.json,
holding the ordinal of the last completed (or skipped) phase and the
accumulated phase outputs. A checkpoint is only trusted when its spec hash
equals the current spec fingerprint; a mismatching or malformed record is
ignored rather than mutated.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError
from pydantic.alias_generators import to_camel

from specforge.errors import ErrorCode, SpecforgeError, make_error, normalize_exception
from specforge.storage import STATE_DIR_NAME, atomic_write_json, load_json, state_dir

from .phases import TOTAL_PHASES, WorkflowPhase

logger = logging.getLogger(__name__)

CHECKPOINT_FILE = "checkpoint.json"


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ValidationIssue(_Record):
    path: str
    message: str


class SpecCheckOutput(_Record):
    validated_spec: dict[str, Any] | None = None
    validation_errors: list[ValidationIssue] = Field(default_factory=list)


class RepairChange(_Record):
    path: str
    description: str


class RepairOutput(_Record):
    repaired_spec: dict[str, Any]
    changes: list[RepairChange] = Field(default_factory=list)


class EnhancementChange(_Record):
    path: str
    before: Any = None
    after: Any = None


class EnhancementOutput(_Record):
    enhanced_spec: dict[str, Any]
    enhancements: list[EnhancementChange] = Field(default_factory=list)


class GenerationOutput(_Record):
    files: dict[str, str]


class RefinementOutput(_Record):
    notes: list[str] = Field(default_factory=list)


class FinalizeOutput(_Record):
    file_count: int
    total_size: int
    written_files: list[str] = Field(default_factory=list)
    dry_run: bool = False


class CheckpointData(_Record):
    """
    Accumulated phase outputs, one typed slot per phase.

    `skipped` maps phase name to skip reason; `metadata` is free-form.
    """

    spec_check: SpecCheckOutput | None = None
    repair: RepairOutput | None = None
    enhancement: EnhancementOutput | None = None
    generation: GenerationOutput | None = None
    refinement: RefinementOutput | None = None
    finalize: FinalizeOutput | None = None
    skipped: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def merge(self, update: "CheckpointData | None") -> "CheckpointData":
        """
        Return a new CheckpointData with update's fields applied.

        Fields absent from the update are preserved; fields present replace
        the existing value. The `skipped` and `metadata` maps are merged key
        by key.
        """
        if update is None:
            return self.model_copy(deep=True)
        values: dict[str, Any] = {}
        for name in update.model_fields_set:
            value = getattr(update, name)
            if name in ("skipped", "metadata"):
                value = {**getattr(self, name), **value}
            values[name] = value
        return self.model_copy(update=values, deep=True)

    def current_spec(self) -> dict[str, Any] | None:
        """The most refined spec available: enhanced > repaired > validated."""
        if self.enhancement is not None:
            return self.enhancement.enhanced_spec
        if self.repair is not None:
            return self.repair.repaired_spec
        if self.spec_check is not None:
            return self.spec_check.validated_spec
        return None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Checkpoint(_Record):
    """Persisted workflow progress for one spec."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    phase: StrictInt = Field(ge=0, le=TOTAL_PHASES)
    spec_hash: StrictStr
    timestamp: StrictStr
    spec_path: StrictStr
    output_path: StrictStr
    data: CheckpointData = Field(default_factory=CheckpointData)

    def to_json(self) -> dict[str, Any]:
        record = self.model_dump(by_alias=True, exclude={"data"}, mode="json")
        record["data"] = self.data.to_json()
        return record


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_checkpoint(
    spec_path: Path | str,
    output_path: Path | str,
    spec_hash: str,
    phase: int = 0,
    data: CheckpointData | None = None,
) -> Checkpoint:
    """New checkpoint (phase 0 = no phase finished yet)."""
    return Checkpoint(
        phase=phase,
        spec_hash=spec_hash,
        timestamp=_now(),
        spec_path=str(Path(spec_path).resolve()),
        output_path=str(Path(output_path).resolve()),
        data=data or CheckpointData(),
    )


def update_checkpoint(
    checkpoint: Checkpoint, phase: int, data: CheckpointData | None = None
) -> Checkpoint:
    """
    Advance a checkpoint to `phase` and merge `data` into its outputs.

    Raises:
        SpecforgeError: WORKFLOW_STATE_INVALID if the phase would decrease
    """
    if phase < checkpoint.phase:
        raise SpecforgeError(
            make_error(
                ErrorCode.WORKFLOW_STATE_INVALID,
                f"Checkpoint phase cannot go backwards ({checkpoint.phase} -> {phase})",
                phase=phase,
            )
        )
    return checkpoint.model_copy(
        update={"phase": phase, "timestamp": _now(), "data": checkpoint.data.merge(data)}
    )


def checkpoint_age(checkpoint: Checkpoint, now: datetime | None = None) -> timedelta:
    """Time since the checkpoint was written (zero if the timestamp is unparseable)."""
    now = now or datetime.now(timezone.utc)
    try:
        written = datetime.fromisoformat(checkpoint.timestamp)
    except ValueError:
        return timedelta(0)
    if written.tzinfo is None:
        written = written.replace(tzinfo=timezone.utc)
    return max(now - written, timedelta(0))


def format_checkpoint_age(checkpoint: Checkpoint, now: datetime | None = None) -> str:
    """Human-readable age, e.g. "3 minutes ago"."""
    seconds = int(checkpoint_age(checkpoint, now).total_seconds())
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        count = seconds // size
        if count > 0:
            return f"{count} {unit}{'s' if count > 1 else ''} ago"
    return "just now"


def validate_checkpoint_data(checkpoint: Checkpoint) -> list[str]:
    """
    Phase-specific integrity check of checkpoint data.

    Returns:
        List of problems (empty when the data is consistent with the phase)
    """
    errors: list[str] = []
    data = checkpoint.data
    phase = checkpoint.phase

    if phase >= WorkflowPhase.SPEC_CHECK and data.spec_check is None:
        errors.append("Missing spec validation data")
    if (
        phase >= WorkflowPhase.REPAIR
        and data.spec_check is not None
        and data.spec_check.validation_errors
        and data.repair is None
    ):
        errors.append("Missing repair data")
    if phase >= WorkflowPhase.GENERATION and data.generation is None:
        errors.append("Missing generated files")
    if phase >= WorkflowPhase.FINALIZE and data.finalize is None:
        errors.append("Missing finalize data")
    return errors


class CheckpointStore:
    """
    Reads and writes checkpoint records next to spec files.

    All writes are atomic (temp file + fsync + rename); load() never raises
    for a missing or malformed record.
    """

    def __init__(self, dir_name: str = STATE_DIR_NAME) -> None:
        self._dir_name = dir_name

    def path_for(self, spec_path: Path | str) -> Path:
        return state_dir(spec_path, self._dir_name) / CHECKPOINT_FILE

    async def save(self, checkpoint: Checkpoint) -> None:
        """
        Persist a checkpoint, replacing any previous record for the spec.

        Raises:
            SpecforgeError: Filesystem category on write failure
        """
        path = self.path_for(checkpoint.spec_path)
        try:
            await asyncio.to_thread(atomic_write_json, path, checkpoint.to_json())
        except OSError as e:
            raise SpecforgeError(normalize_exception(e, str(path))) from e
        logger.info(f"Saved checkpoint at phase {checkpoint.phase} to {path}")

    async def load(self, spec_path: Path | str) -> Checkpoint | None:
        """
        Load the checkpoint for a spec.

        Returns:
            Checkpoint, or None if missing, unreadable, not JSON or structurally invalid
        """
        path = self.path_for(spec_path)
        raw = await asyncio.to_thread(load_json, path)
        if raw is None:
            return None
        if not isinstance(raw, dict) or not isinstance(raw.get("data"), dict):
            logger.warning(f"Ignoring malformed checkpoint {path}")
            return None
        try:
            return Checkpoint.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed checkpoint {path}: {e.error_count()} error(s)")
            return None

    async def clear(self, spec_path: Path | str) -> None:
        """Delete the checkpoint record. Absent is a no-op."""
        path = self.path_for(spec_path)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise SpecforgeError(normalize_exception(e, str(path))) from e
        logger.info(f"Cleared checkpoint {path}")

    def exists(self, spec_path: Path | str) -> bool:
        return self.path_for(spec_path).is_file()

    @staticmethod
    def is_valid_for(checkpoint: Checkpoint, current_hash: str) -> bool:
        """Whether a checkpoint was taken against exactly this spec content."""
        return checkpoint.spec_hash == current_hash
