# specforge/errors/__init__.py
"""Error taxonomy, normalization, retry executor and recovery strategies."""

from .catalog import cancelled_error, exit_code_for, format_error, make_error
from .normalize import normalize_exception, to_specforge_error
from .recovery import (
    RecoveryContext,
    RecoveryManager,
    RecoveryMode,
    RecoveryOutcome,
    RecoveryStatus,
)
from .retry import (
    DEFAULT_RETRY_STRATEGY,
    RetryStrategy,
    calculate_delay,
    is_retryable,
    retry_batch,
    with_retry,
    with_retry_progress,
)
from .types import (
    ErrorCategory,
    ErrorCode,
    ErrorRecord,
    ErrorSeverity,
    ExitCode,
    RecoveryAction,
    SpecforgeError,
)

__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "ErrorRecord",
    "ErrorSeverity",
    "ExitCode",
    "RecoveryAction",
    "SpecforgeError",
    "make_error",
    "cancelled_error",
    "exit_code_for",
    "format_error",
    "normalize_exception",
    "to_specforge_error",
    "RecoveryContext",
    "RecoveryManager",
    "RecoveryMode",
    "RecoveryOutcome",
    "RecoveryStatus",
    "DEFAULT_RETRY_STRATEGY",
    "RetryStrategy",
    "calculate_delay",
    "is_retryable",
    "retry_batch",
    "with_retry",
    "with_retry_progress",
]
