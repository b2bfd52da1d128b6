# specforge/errors/catalog.py
"""
Error catalog: default category, message and guidance per error code.

make_error() is the one place ErrorRecords are built from a code, so every
record leaving a component carries consistent severity, exit code and
recovery actions.
"""

import json
from typing import Any

from rich.markup import escape

from .types import (
    CATEGORY_DEFAULTS,
    ErrorCategory,
    ErrorCode,
    ErrorRecord,
    ErrorSeverity,
    ExitCode,
    RecoveryAction,
    SpecforgeError,
)

CODE_CATEGORIES: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.FILE_NOT_FOUND: ErrorCategory.FILESYSTEM,
    ErrorCode.FILE_ACCESS_DENIED: ErrorCategory.FILESYSTEM,
    ErrorCode.FILE_ALREADY_EXISTS: ErrorCategory.FILESYSTEM,
    ErrorCode.DIRECTORY_NOT_EMPTY: ErrorCategory.FILESYSTEM,
    ErrorCode.NO_SPACE_LEFT: ErrorCategory.FILESYSTEM,
    ErrorCode.TOO_MANY_OPEN_FILES: ErrorCategory.FILESYSTEM,
    ErrorCode.SPEC_NOT_FOUND: ErrorCategory.VALIDATION,
    ErrorCode.SPEC_PARSE_ERROR: ErrorCategory.VALIDATION,
    ErrorCode.SPEC_VALIDATION_ERROR: ErrorCategory.VALIDATION,
    ErrorCode.SPEC_INVALID_FORMAT: ErrorCategory.VALIDATION,
    ErrorCode.CONFIG_INVALID: ErrorCategory.VALIDATION,
    ErrorCode.AUTH_NOT_CONFIGURED: ErrorCategory.AUTHENTICATION,
    ErrorCode.AUTH_TOKEN_EXPIRED: ErrorCategory.AUTHENTICATION,
    ErrorCode.AUTH_TOKEN_INVALID: ErrorCategory.AUTHENTICATION,
    ErrorCode.AUTH_PROVIDER_UNAVAILABLE: ErrorCategory.NETWORK,
    ErrorCode.NETWORK_CONNECTION_FAILED: ErrorCategory.NETWORK,
    ErrorCode.NETWORK_TIMEOUT: ErrorCategory.TIMEOUT,
    ErrorCode.NETWORK_DNS_FAILED: ErrorCategory.NETWORK,
    ErrorCode.NETWORK_SSL_ERROR: ErrorCategory.NETWORK,
    ErrorCode.NETWORK_RATE_LIMIT: ErrorCategory.RATE_LIMIT,
    ErrorCode.AI_PROVIDER_ERROR: ErrorCategory.NETWORK,
    ErrorCode.AI_RESPONSE_INVALID: ErrorCategory.GENERATION,
    ErrorCode.AI_CONTEXT_TOO_LARGE: ErrorCategory.GENERATION,
    ErrorCode.GENERATION_FAILED: ErrorCategory.GENERATION,
    ErrorCode.TEMPLATE_ERROR: ErrorCategory.GENERATION,
    ErrorCode.WORKFLOW_CHECKPOINT_MISSING: ErrorCategory.WORKFLOW,
    ErrorCode.WORKFLOW_PHASE_FAILED: ErrorCategory.WORKFLOW,
    ErrorCode.WORKFLOW_STATE_INVALID: ErrorCategory.WORKFLOW,
    ErrorCode.WORKFLOW_LOCKED: ErrorCategory.WORKFLOW,
    ErrorCode.UNKNOWN_ERROR: ErrorCategory.INTERNAL,
    ErrorCode.INTERNAL_ERROR: ErrorCategory.INTERNAL,
    ErrorCode.USER_CANCELLED: ErrorCategory.CANCELLED,
}

# Per-code overrides of the category retry default
CODE_RETRY_OVERRIDES: dict[ErrorCode, bool] = {
    # A malformed AI response is usually fixed by asking again
    ErrorCode.AI_RESPONSE_INVALID: True,
    ErrorCode.NETWORK_SSL_ERROR: False,
}

_A = RecoveryAction

ERROR_MESSAGES: dict[ErrorCode, tuple[str, tuple[RecoveryAction, ...]]] = {
    ErrorCode.FILE_NOT_FOUND: (
        "File not found",
        (_A("Check that the file path is correct"), _A("If looking for a spec file, create one", "specforge init")),
    ),
    ErrorCode.FILE_ACCESS_DENIED: (
        "Permission denied",
        (_A("Check file permissions", "ls -la <file>"), _A("Try running with appropriate permissions")),
    ),
    ErrorCode.FILE_ALREADY_EXISTS: (
        "File or directory already exists",
        (
            _A("Use --overwrite to replace existing files"),
            _A("Choose a different output directory", "specforge onboard --output <different-path>"),
        ),
    ),
    ErrorCode.DIRECTORY_NOT_EMPTY: (
        "Directory is not empty",
        (_A("Use --overwrite to replace existing content"), _A("Remove the directory first", "rm -rf <directory>")),
    ),
    ErrorCode.NO_SPACE_LEFT: (
        "No space left on device",
        (_A("Free up disk space"), _A("Choose a different output location")),
    ),
    ErrorCode.TOO_MANY_OPEN_FILES: (
        "Too many open files",
        (_A("Close other applications"), _A("Increase the file descriptor limit", "ulimit -n 4096")),
    ),
    ErrorCode.SPEC_NOT_FOUND: (
        "Spec file not found",
        (_A("Create a new spec file", "specforge init"), _A("Point at a spec file", "specforge onboard --spec path/to/spec.yaml")),
    ),
    ErrorCode.SPEC_PARSE_ERROR: (
        "Failed to parse spec file",
        (_A("Check that the spec file is valid YAML"), _A("See detailed errors", "specforge validate --verbose")),
    ),
    ErrorCode.SPEC_VALIDATION_ERROR: (
        "Spec validation failed",
        (_A("Review the validation errors above"), _A("Let the AI repair the spec", "specforge onboard --ai-repair")),
    ),
    ErrorCode.SPEC_INVALID_FORMAT: (
        "Spec file has invalid format",
        (_A("Check the spec format requirements"),),
    ),
    ErrorCode.CONFIG_INVALID: (
        "Configuration file is invalid",
        (
            _A("Show where the config file lives", "specforge config-path"),
            _A("Fix the reported setting or delete the file to regenerate defaults"),
        ),
    ),
    ErrorCode.AUTH_NOT_CONFIGURED: (
        "Authentication not configured",
        (_A("Configure the AI provider in the config file", "specforge config-path"),),
    ),
    ErrorCode.AUTH_TOKEN_EXPIRED: (
        "Authentication token expired",
        (_A("Re-authenticate with your provider"),),
    ),
    ErrorCode.AUTH_TOKEN_INVALID: (
        "Authentication token is invalid",
        (_A("Check the credentials configured for the AI provider"),),
    ),
    ErrorCode.AUTH_PROVIDER_UNAVAILABLE: (
        "AI provider is unavailable",
        (_A("Check that the AI provider is running and reachable"), _A("Try again in a few moments")),
    ),
    ErrorCode.NETWORK_CONNECTION_FAILED: (
        "Network connection failed",
        (_A("Check your network connection"), _A("Check firewall settings"), _A("Try again in a few moments")),
    ),
    ErrorCode.NETWORK_TIMEOUT: (
        "Network request timed out",
        (_A("Check your connection speed"), _A("The operation will be retried automatically", automatic=True)),
    ),
    ErrorCode.NETWORK_DNS_FAILED: (
        "DNS resolution failed",
        (_A("Check your DNS settings"),),
    ),
    ErrorCode.NETWORK_SSL_ERROR: (
        "SSL/TLS certificate error",
        (_A("Check system date and time"), _A("Update your system certificates")),
    ),
    ErrorCode.NETWORK_RATE_LIMIT: (
        "Rate limit exceeded",
        (_A("Wait before trying again"), _A("The request will be retried automatically", automatic=True)),
    ),
    ErrorCode.AI_PROVIDER_ERROR: (
        "AI provider error",
        (_A("Check the AI provider status"), _A("Try again in a few moments")),
    ),
    ErrorCode.AI_RESPONSE_INVALID: (
        "AI response could not be parsed",
        (_A("The request will be retried automatically", automatic=True), _A("If this persists, try again later")),
    ),
    ErrorCode.AI_CONTEXT_TOO_LARGE: (
        "Input is too large for the AI provider",
        (_A("Reduce the spec file size"),),
    ),
    ErrorCode.GENERATION_FAILED: (
        "Code generation failed",
        (_A("Check validation errors", "specforge validate --verbose"), _A("Run the workflow again", "specforge onboard")),
    ),
    ErrorCode.TEMPLATE_ERROR: (
        "Template rendering error",
        (_A("Check the spec file for invalid values"),),
    ),
    ErrorCode.WORKFLOW_CHECKPOINT_MISSING: (
        "Workflow checkpoint not found",
        (_A("Start the workflow from the beginning", "specforge onboard"),),
    ),
    ErrorCode.WORKFLOW_PHASE_FAILED: (
        "Workflow phase failed",
        (_A("Check the error details above"), _A("Resume from the last checkpoint", "specforge onboard")),
    ),
    ErrorCode.WORKFLOW_STATE_INVALID: (
        "Workflow state is invalid",
        (_A("Reset the workflow state", "specforge reset"), _A("Start fresh", "specforge onboard --fresh")),
    ),
    ErrorCode.WORKFLOW_LOCKED: (
        "Another run is in progress for this spec",
        (_A("Wait for the other run to finish"), _A("Remove a stale lock file", "rm <spec-dir>/.specforge/run.lock")),
    ),
    ErrorCode.UNKNOWN_ERROR: ("An unknown error occurred", ()),
    ErrorCode.INTERNAL_ERROR: (
        "Internal error",
        (_A("Re-run with --verbose and report the output"),),
    ),
    ErrorCode.USER_CANCELLED: (
        "Operation cancelled",
        (_A("Run the command again to resume from the last checkpoint", "specforge onboard"),),
    ),
}


def make_error(
    code: ErrorCode,
    message: str | None = None,
    *,
    severity: ErrorSeverity | None = None,
    can_retry: bool | None = None,
    can_rollback: bool | None = None,
    recovery_actions: tuple[RecoveryAction, ...] | None = None,
    **context: Any,
) -> ErrorRecord:
    """
    Build an ErrorRecord with catalog defaults for the given code.

    Args:
        code: Domain error code
        message: Message (defaults to the catalog message)
        severity: Override the category's default severity
        can_retry: Explicit retry override (defaults to code-level override, if any)
        can_rollback: Defaults to True for workflow errors
        recovery_actions: Override the catalog guidance
        **context: Free-form context data (None values are dropped)

    Returns:
        Immutable ErrorRecord
    """
    category = CODE_CATEGORIES[code]
    default_message, guidance = ERROR_MESSAGES.get(code, (code.value, ()))
    if can_retry is None:
        can_retry = CODE_RETRY_OVERRIDES.get(code)
    if can_rollback is None:
        can_rollback = category is ErrorCategory.WORKFLOW and code is not ErrorCode.WORKFLOW_LOCKED

    return ErrorRecord(
        code=code,
        message=message or default_message,
        category=category,
        severity=severity or CATEGORY_DEFAULTS[category].severity,
        recovery_actions=recovery_actions if recovery_actions is not None else guidance,
        can_retry=can_retry,
        can_rollback=can_rollback,
        context={k: v for k, v in context.items() if v is not None},
    )


def cancelled_error(message: str = "Operation cancelled") -> SpecforgeError:
    return SpecforgeError(make_error(ErrorCode.USER_CANCELLED, message))


def exit_code_for(record: ErrorRecord | None) -> ExitCode:
    """Process exit code for a failure (SUCCESS when there is none)."""
    if record is None:
        return ExitCode.SUCCESS
    return record.exit_code


def format_error(record: ErrorRecord, verbose: bool = False) -> str:
    """
    Render an ErrorRecord for terminal output (rich markup).

    Includes the message, recovery actions and, in verbose mode, the context.
    """
    lines = [f"[red]✗ {escape(record.message)}[/red]  [dim]({record.code.value})[/dim]"]

    if record.recovery_actions:
        lines.append("")
        lines.append("[bold]How to fix:[/bold]")
        for i, action in enumerate(record.recovery_actions, 1):
            line = f"  {i}. {escape(action.description)}"
            if action.command:
                line += f"\n     [cyan]$ {escape(action.command)}[/cyan]"
            lines.append(line)

    if verbose and record.context:
        details = json.dumps(dict(record.context), indent=2, default=str)
        lines.append("")
        lines.append("[dim]Error details:[/dim]")
        lines.append(f"[dim]{escape(details)}[/dim]")

    return "\n".join(lines)
