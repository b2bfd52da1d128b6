# specforge/errors/recovery.py
"""
Recovery strategies selected by error category.

Recovery is distinct from retrying an operation: a strategy either decides
the failed phase can be re-run (checkpoint, confirmed network), changes something on
disk first (cleanup, permissions) or only surfaces remediation steps.

Modes:
    AUTOMATIC: no user interaction, only safe/idempotent actions
    GUIDED: presents recovery actions through a confirm() callback
"""

import logging
import os
import shutil
import stat
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .types import ErrorCategory, ErrorCode, ErrorRecord, RecoveryAction

logger = logging.getLogger(__name__)


class RecoveryMode(Enum):
    AUTOMATIC = "automatic"
    GUIDED = "guided"


class RecoveryStatus(Enum):
    RECOVERED = "recovered"
    DECLINED = "declined"
    INAPPLICABLE = "inapplicable"
    FAILED = "failed"


ConfirmCallback = Callable[[str, tuple[RecoveryAction, ...]], bool]


@dataclass
class RecoveryContext:
    """
    What a strategy may know about the failed run.

    Attributes:
        spec_path: Spec file of the run
        output_path: Output directory of the run
        has_checkpoint: Whether a checkpoint record exists for the spec
        confirm: Asks the user to accept a recovery (guided mode only)
    """

    spec_path: Path | None = None
    output_path: Path | None = None
    has_checkpoint: bool = False
    confirm: ConfirmCallback | None = None


@dataclass
class RecoveryOutcome:
    """
    Result of a recovery attempt.

    Attributes:
        status: recovered / declined / inapplicable / failed
        message: Human-readable summary
        actions: Remediation steps to show the user
        strategy: Name of the strategy that handled the error (None if none applied)
        retry_phase: True if the failed phase may now be re-run once
    """

    status: RecoveryStatus
    message: str
    actions: tuple[RecoveryAction, ...] = field(default_factory=tuple)
    strategy: str | None = None
    retry_phase: bool = False

    @property
    def recovered(self) -> bool:
        return self.status is RecoveryStatus.RECOVERED


class RecoveryStrategy(ABC):
    """A named remediation procedure for one class of failures."""

    name: str = "recovery"

    @abstractmethod
    def can_recover(self, record: ErrorRecord) -> bool:
        """Whether this strategy applies to the error."""

    @abstractmethod
    def recover(
        self, record: ErrorRecord, context: RecoveryContext, mode: RecoveryMode
    ) -> RecoveryOutcome:
        """Attempt recovery. May raise; the manager reports that as FAILED."""

    def _ask(self, context: RecoveryContext, prompt: str, actions: tuple[RecoveryAction, ...]) -> bool:
        if context.confirm is None:
            return False
        return bool(context.confirm(prompt, actions))

    def _outcome(self, status: RecoveryStatus, message: str, **kwargs) -> RecoveryOutcome:
        return RecoveryOutcome(status=status, message=message, strategy=self.name, **kwargs)


class CheckpointRecovery(RecoveryStrategy):
    """Resume from the last good checkpoint after a workflow failure."""

    name = "checkpoint"

    def can_recover(self, record: ErrorRecord) -> bool:
        return record.category is ErrorCategory.WORKFLOW and record.can_rollback

    def recover(self, record, context, mode):
        if not context.has_checkpoint:
            return self._outcome(
                RecoveryStatus.INAPPLICABLE,
                "No checkpoint to resume from",
                actions=(RecoveryAction("Start the workflow from the beginning", "specforge onboard"),),
            )

        phase = record.context.get("phase")
        actions = (
            RecoveryAction(
                f"Resume from the last completed phase{f' (before {phase})' if phase else ''}",
                "specforge onboard",
                automatic=True,
            ),
        )
        if mode is RecoveryMode.GUIDED and not self._ask(context, "Resume from the last checkpoint?", actions):
            return self._outcome(RecoveryStatus.DECLINED, "Resume declined", actions=actions)
        return self._outcome(
            RecoveryStatus.RECOVERED, "Resuming from the last checkpoint", actions=actions, retry_phase=True
        )


class CleanupRecovery(RecoveryStrategy):
    """Remove partially written output before the next attempt."""

    name = "cleanup"

    def can_recover(self, record: ErrorRecord) -> bool:
        return record.category is ErrorCategory.FILESYSTEM and record.code in (
            ErrorCode.FILE_ALREADY_EXISTS,
            ErrorCode.DIRECTORY_NOT_EMPTY,
        )

    def recover(self, record, context, mode):
        raw_path = record.context.get("path")
        if not raw_path:
            return self._outcome(RecoveryStatus.INAPPLICABLE, "No path to clean up")

        path = Path(raw_path)
        if not path.exists():
            return self._outcome(
                RecoveryStatus.RECOVERED, "Path does not exist, no cleanup needed", retry_phase=True
            )

        actions = (
            RecoveryAction("Remove the existing output", f"rm -rf {path}"),
            RecoveryAction("Or re-run with --overwrite to replace files in place"),
        )

        # Only ever delete inside the run's own output directory
        if context.output_path is None or not _is_within(path, context.output_path):
            return self._outcome(
                RecoveryStatus.DECLINED, "Manual cleanup required (path outside output directory)", actions=actions
            )

        # Deleting files has user-visible consequences: guided mode only
        if mode is RecoveryMode.AUTOMATIC:
            return self._outcome(RecoveryStatus.DECLINED, "Manual cleanup required", actions=actions)

        if not self._ask(context, f"Delete {path} and retry?", actions):
            return self._outcome(RecoveryStatus.DECLINED, "Cleanup declined", actions=actions)

        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
        logger.info(f"Removed partial output at {path}")
        return self._outcome(RecoveryStatus.RECOVERED, f"Removed {path}", actions=actions, retry_phase=True)


class PermissionRecovery(RecoveryStrategy):
    """Surface (and in guided mode apply) file mode fixes."""

    name = "permission"

    def can_recover(self, record: ErrorRecord) -> bool:
        return record.category is ErrorCategory.FILESYSTEM and record.code is ErrorCode.FILE_ACCESS_DENIED

    def recover(self, record, context, mode):
        raw_path = record.context.get("path")
        if not raw_path:
            return self._outcome(RecoveryStatus.INAPPLICABLE, "No path specified")

        path = Path(raw_path)
        actions = (
            RecoveryAction("Check file permissions", f"ls -la {path}"),
            RecoveryAction("Grant yourself read/write access", f"chmod u+rw {path}"),
        )
        if mode is RecoveryMode.AUTOMATIC:
            return self._outcome(RecoveryStatus.DECLINED, "Permission issue detected", actions=actions)

        if not self._ask(context, f"Run chmod u+rw on {path} and retry?", actions):
            return self._outcome(RecoveryStatus.DECLINED, "Permission fix declined", actions=actions)

        current = path.stat().st_mode
        os.chmod(path, current | stat.S_IRUSR | stat.S_IWUSR)
        logger.info(f"Added user read/write permission on {path}")
        return self._outcome(
            RecoveryStatus.RECOVERED, f"Updated permissions on {path}", actions=actions, retry_phase=True
        )


class NetworkRecovery(RecoveryStrategy):
    """
    Offer to re-run the failed phase once connectivity is presumed back.

    The phase's own calls have already used their retry budget, so the
    re-run only happens after guided confirmation.
    """

    name = "network"

    def can_recover(self, record: ErrorRecord) -> bool:
        return record.category in (ErrorCategory.NETWORK, ErrorCategory.TIMEOUT, ErrorCategory.RATE_LIMIT)

    def recover(self, record, context, mode):
        actions = (
            RecoveryAction("Check your network connection and the AI provider"),
            RecoveryAction("Run the workflow again to resume from the last checkpoint", "specforge onboard"),
        )
        if mode is RecoveryMode.AUTOMATIC:
            return self._outcome(
                RecoveryStatus.DECLINED, "Retries exhausted; not re-running automatically", actions=actions
            )
        if not self._ask(context, "Re-run the failed phase?", actions):
            return self._outcome(RecoveryStatus.DECLINED, "Re-run declined", actions=actions)
        return self._outcome(
            RecoveryStatus.RECOVERED, "Re-running the failed phase", actions=actions, retry_phase=True
        )


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


class RecoveryManager:
    """
    Selects the first applicable strategy for an ErrorRecord and runs it.

    Example:
        manager = RecoveryManager()
        outcome = manager.recover(record, RecoveryContext(output_path=out), RecoveryMode.AUTOMATIC)
        if outcome.retry_phase:
            ...
    """

    def __init__(self, strategies: list[RecoveryStrategy] | None = None) -> None:
        self._strategies: list[RecoveryStrategy] = strategies if strategies is not None else [
            CheckpointRecovery(),
            CleanupRecovery(),
            PermissionRecovery(),
            NetworkRecovery(),
        ]

    @property
    def strategies(self) -> list[RecoveryStrategy]:
        return list(self._strategies)

    def add_strategy(self, strategy: RecoveryStrategy) -> None:
        """Add a strategy with the highest priority."""
        self._strategies.insert(0, strategy)

    def select(self, record: ErrorRecord) -> RecoveryStrategy | None:
        for strategy in self._strategies:
            if strategy.can_recover(record):
                return strategy
        return None

    def recover(
        self,
        record: ErrorRecord,
        context: RecoveryContext,
        mode: RecoveryMode = RecoveryMode.AUTOMATIC,
    ) -> RecoveryOutcome:
        """
        Attempt recovery for a failure.

        Returns:
            RecoveryOutcome. INAPPLICABLE if no strategy applies, FAILED if the
            strategy itself raised.
        """
        strategy = self.select(record)
        if strategy is None:
            return RecoveryOutcome(
                status=RecoveryStatus.INAPPLICABLE,
                message="No recovery strategy available",
                actions=record.recovery_actions,
            )

        logger.info(f"Attempting {strategy.name} recovery for {record.code.value} ({mode.value})")
        try:
            outcome = strategy.recover(record, context, mode)
        except Exception as e:
            logger.error(f"{strategy.name} recovery failed: {e}")
            return RecoveryOutcome(
                status=RecoveryStatus.FAILED,
                message=f"Recovery attempt failed: {e}",
                actions=record.recovery_actions,
                strategy=strategy.name,
            )

        logger.info(f"{strategy.name} recovery: {outcome.status.value} - {outcome.message}")
        return outcome
