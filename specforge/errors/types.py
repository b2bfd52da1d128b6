# specforge/errors/types.py
"""
Error taxonomy for the workflow engine.

One exception type (SpecforgeError) carries an immutable ErrorRecord.
Callers branch on record.category, never on exception subclasses.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Mapping


class ExitCode(IntEnum):
    """Process exit codes, one per top-level error category."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    MISUSE = 2
    AUTHENTICATION_ERROR = 3
    NETWORK_ERROR = 4
    FILE_SYSTEM_ERROR = 5
    VALIDATION_ERROR = 6
    GENERATION_ERROR = 7
    WORKFLOW_ERROR = 8
    CANCELLED = 130


class ErrorCode(Enum):
    """Closed set of domain error codes."""

    # File system
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FILE_ACCESS_DENIED = "FILE_ACCESS_DENIED"
    FILE_ALREADY_EXISTS = "FILE_ALREADY_EXISTS"
    DIRECTORY_NOT_EMPTY = "DIRECTORY_NOT_EMPTY"
    NO_SPACE_LEFT = "NO_SPACE_LEFT"
    TOO_MANY_OPEN_FILES = "TOO_MANY_OPEN_FILES"

    # Spec
    SPEC_NOT_FOUND = "SPEC_NOT_FOUND"
    SPEC_PARSE_ERROR = "SPEC_PARSE_ERROR"
    SPEC_VALIDATION_ERROR = "SPEC_VALIDATION_ERROR"
    SPEC_INVALID_FORMAT = "SPEC_INVALID_FORMAT"

    # Configuration
    CONFIG_INVALID = "CONFIG_INVALID"

    # Authentication
    AUTH_NOT_CONFIGURED = "AUTH_NOT_CONFIGURED"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_PROVIDER_UNAVAILABLE = "AUTH_PROVIDER_UNAVAILABLE"

    # Network
    NETWORK_CONNECTION_FAILED = "NETWORK_CONNECTION_FAILED"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    NETWORK_DNS_FAILED = "NETWORK_DNS_FAILED"
    NETWORK_SSL_ERROR = "NETWORK_SSL_ERROR"
    NETWORK_RATE_LIMIT = "NETWORK_RATE_LIMIT"

    # AI / generation
    AI_PROVIDER_ERROR = "AI_PROVIDER_ERROR"
    AI_RESPONSE_INVALID = "AI_RESPONSE_INVALID"
    AI_CONTEXT_TOO_LARGE = "AI_CONTEXT_TOO_LARGE"
    GENERATION_FAILED = "GENERATION_FAILED"
    TEMPLATE_ERROR = "TEMPLATE_ERROR"

    # Workflow
    WORKFLOW_CHECKPOINT_MISSING = "WORKFLOW_CHECKPOINT_MISSING"
    WORKFLOW_PHASE_FAILED = "WORKFLOW_PHASE_FAILED"
    WORKFLOW_STATE_INVALID = "WORKFLOW_STATE_INVALID"
    WORKFLOW_LOCKED = "WORKFLOW_LOCKED"

    # Generic
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    USER_CANCELLED = "USER_CANCELLED"


class ErrorSeverity(Enum):
    """Severity tiers."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Top-level failure classes used for retry and recovery decisions."""

    FILESYSTEM = "filesystem"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    GENERATION = "generation"
    WORKFLOW = "workflow"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


@dataclass(frozen=True)
class CategoryDefaults:
    severity: ErrorSeverity
    exit_code: ExitCode
    retryable: bool


CATEGORY_DEFAULTS: dict[ErrorCategory, CategoryDefaults] = {
    ErrorCategory.FILESYSTEM: CategoryDefaults(ErrorSeverity.HIGH, ExitCode.FILE_SYSTEM_ERROR, False),
    ErrorCategory.VALIDATION: CategoryDefaults(ErrorSeverity.HIGH, ExitCode.VALIDATION_ERROR, False),
    ErrorCategory.AUTHENTICATION: CategoryDefaults(ErrorSeverity.HIGH, ExitCode.AUTHENTICATION_ERROR, False),
    ErrorCategory.NETWORK: CategoryDefaults(ErrorSeverity.MEDIUM, ExitCode.NETWORK_ERROR, True),
    ErrorCategory.TIMEOUT: CategoryDefaults(ErrorSeverity.MEDIUM, ExitCode.NETWORK_ERROR, True),
    ErrorCategory.RATE_LIMIT: CategoryDefaults(ErrorSeverity.LOW, ExitCode.NETWORK_ERROR, True),
    ErrorCategory.GENERATION: CategoryDefaults(ErrorSeverity.HIGH, ExitCode.GENERATION_ERROR, False),
    ErrorCategory.WORKFLOW: CategoryDefaults(ErrorSeverity.HIGH, ExitCode.WORKFLOW_ERROR, False),
    ErrorCategory.CANCELLED: CategoryDefaults(ErrorSeverity.LOW, ExitCode.CANCELLED, False),
    ErrorCategory.INTERNAL: CategoryDefaults(ErrorSeverity.CRITICAL, ExitCode.GENERAL_ERROR, False),
}

# Categories that are retryable by default
RETRYABLE_CATEGORIES = frozenset(
    category for category, defaults in CATEGORY_DEFAULTS.items() if defaults.retryable
)


@dataclass(frozen=True)
class RecoveryAction:
    """A human-readable remediation step, optionally with a command to run."""

    description: str
    command: str | None = None
    automatic: bool = False


@dataclass(frozen=True)
class ErrorRecord:
    """
    Structured, immutable description of a failed operation.

    Attributes:
        code: Domain error code
        message: Human-readable message
        category: Failure class (drives retry, recovery and exit code)
        severity: Severity tier
        recovery_actions: Remediation steps shown to the user
        can_retry: Explicit retry override (None = use category default)
        can_rollback: Whether a checkpoint rollback/resume makes sense
        context: Free-form data (path, status_code, retry_after, phase, ...)
    """

    code: ErrorCode
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    recovery_actions: tuple[RecoveryAction, ...] = ()
    can_retry: bool | None = None
    can_rollback: bool = False
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the context so the record is immutable end to end
        object.__setattr__(self, "context", MappingProxyType(dict(self.context)))
        object.__setattr__(self, "recovery_actions", tuple(self.recovery_actions))

    @property
    def exit_code(self) -> ExitCode:
        return CATEGORY_DEFAULTS[self.category].exit_code

    @property
    def retry_after(self) -> float | None:
        """Provider-supplied retry-after hint in seconds, if any."""
        value = self.context.get("retry_after")
        if value is None:
            return None
        try:
            return max(float(value), 0.0)
        except (TypeError, ValueError):
            return None

    def with_context(self, **extra: Any) -> "ErrorRecord":
        """Return a copy with additional context entries."""
        return replace(self, context={**self.context, **extra})

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "recovery_actions": [
                {"description": a.description, "command": a.command, "automatic": a.automatic}
                for a in self.recovery_actions
            ],
            "can_retry": self.can_retry,
            "can_rollback": self.can_rollback,
            "context": dict(self.context),
        }


class SpecforgeError(Exception):
    """The single exception type raised by the engine. Carries an ErrorRecord."""

    def __init__(self, record: ErrorRecord) -> None:
        super().__init__(record.message)
        self.record = record

    @property
    def category(self) -> ErrorCategory:
        return self.record.category

    @property
    def code(self) -> ErrorCode:
        return self.record.code
