# specforge/errors/normalize.py
"""
Normalize arbitrary exceptions into ErrorRecords.

Every failure leaves the component that detected it as a SpecforgeError;
this module is the translation table for exceptions raised by the standard
library, httpx, ollama and pydantic.
"""

import asyncio
import errno
import logging
import socket
import ssl
from dataclasses import replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx
from ollama import ResponseError
from pydantic import ValidationError

from .catalog import make_error
from .types import ErrorCategory, ErrorCode, ErrorRecord, ErrorSeverity, SpecforgeError

logger = logging.getLogger(__name__)

_ERRNO_CODES: dict[int, tuple[ErrorCode, str]] = {
    errno.ENOENT: (ErrorCode.FILE_NOT_FOUND, "File not found"),
    errno.EACCES: (ErrorCode.FILE_ACCESS_DENIED, "Permission denied"),
    errno.EPERM: (ErrorCode.FILE_ACCESS_DENIED, "Permission denied"),
    errno.EEXIST: (ErrorCode.FILE_ALREADY_EXISTS, "File already exists"),
    errno.ENOSPC: (ErrorCode.NO_SPACE_LEFT, "No space left on device"),
    errno.EMFILE: (ErrorCode.TOO_MANY_OPEN_FILES, "Too many open files"),
    errno.ENFILE: (ErrorCode.TOO_MANY_OPEN_FILES, "Too many open files"),
    errno.ENOTDIR: (ErrorCode.FILE_NOT_FOUND, "Not a directory"),
    errno.EISDIR: (ErrorCode.FILE_NOT_FOUND, "Is a directory"),
    errno.ENOTEMPTY: (ErrorCode.DIRECTORY_NOT_EMPTY, "Directory not empty"),
}


def parse_retry_after(value: str | None) -> float | None:
    """
    Parse an HTTP Retry-After header value into seconds.

    Accepts delta-seconds ("120") or an HTTP date. Returns None if unparseable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def from_status_code(
    status: int,
    message: str,
    url: str | None = None,
    retry_after: float | None = None,
) -> ErrorRecord:
    """Map an HTTP status code from the AI provider to an ErrorRecord."""
    if status in (401, 403):
        code = ErrorCode.AUTH_TOKEN_INVALID if status == 401 else ErrorCode.AUTH_NOT_CONFIGURED
        return make_error(code, message, status_code=status, url=url)
    if status == 408:
        return make_error(ErrorCode.NETWORK_TIMEOUT, message, status_code=status, url=url)
    if status == 413:
        return make_error(ErrorCode.AI_CONTEXT_TOO_LARGE, message, status_code=status, url=url)
    if status == 429:
        return make_error(
            ErrorCode.NETWORK_RATE_LIMIT, message, status_code=status, url=url, retry_after=retry_after
        )
    if status >= 500:
        # 500 with an OOM message is a model-size problem, not a transient one
        if status == 500 and "requires more system memory" in message.lower():
            return make_error(
                ErrorCode.AI_PROVIDER_ERROR, message, can_retry=False, status_code=status, url=url
            )
        return make_error(
            ErrorCode.AI_PROVIDER_ERROR, message, status_code=status, url=url, retry_after=retry_after
        )
    return make_error(ErrorCode.AI_PROVIDER_ERROR, message, can_retry=False, status_code=status, url=url)


def _from_os_error(exc: OSError, path: str | None) -> ErrorRecord:
    path = path or exc.filename
    mapped = _ERRNO_CODES.get(exc.errno) if exc.errno is not None else None
    if mapped:
        code, prefix = mapped
        message = f"{prefix}: {path}" if path else prefix
        return make_error(code, message, path=path)
    record = make_error(
        ErrorCode.UNKNOWN_ERROR,
        str(exc) or f"File system error: {exc.errno}",
        errno=exc.errno,
        path=path,
    )
    # Unknown errno, but still a filesystem failure for exit-code purposes
    return replace(record, category=ErrorCategory.FILESYSTEM, severity=ErrorSeverity.HIGH)


def normalize_exception(exc: BaseException, path: str | None = None) -> ErrorRecord:
    """
    Convert any exception into an ErrorRecord.

    Args:
        exc: The exception to classify
        path: Optional filesystem path the failing operation touched

    Returns:
        ErrorRecord (the exception's own record for SpecforgeError)
    """
    if isinstance(exc, SpecforgeError):
        return exc.record

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return from_status_code(
            response.status_code,
            f"HTTP {response.status_code} from {exc.request.url}",
            url=str(exc.request.url),
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )

    if isinstance(exc, httpx.TimeoutException):
        return make_error(ErrorCode.NETWORK_TIMEOUT, f"Request timed out: {exc}")

    if isinstance(exc, httpx.ConnectError):
        return make_error(ErrorCode.NETWORK_CONNECTION_FAILED, f"Connection failed: {exc}")

    if isinstance(exc, httpx.RequestError):
        return make_error(ErrorCode.NETWORK_CONNECTION_FAILED, f"Network error: {exc}")

    if isinstance(exc, ResponseError):
        return from_status_code(exc.status_code, str(exc.error))

    if isinstance(exc, ValidationError):
        return make_error(
            ErrorCode.SPEC_VALIDATION_ERROR,
            f"Validation failed with {exc.error_count()} error(s)",
            errors=[
                {"path": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ],
        )

    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return make_error(ErrorCode.NETWORK_TIMEOUT, str(exc) or "Operation timed out")

    if isinstance(exc, ssl.SSLError):
        return make_error(ErrorCode.NETWORK_SSL_ERROR, str(exc))

    if isinstance(exc, socket.gaierror):
        return make_error(ErrorCode.NETWORK_DNS_FAILED, f"DNS resolution failed: {exc}")

    if isinstance(exc, ConnectionError):
        return make_error(ErrorCode.NETWORK_CONNECTION_FAILED, str(exc) or "Connection failed")

    if isinstance(exc, OSError):
        return _from_os_error(exc, path)

    logger.debug(f"Unclassified exception {type(exc).__name__}: {exc}")
    return make_error(
        ErrorCode.INTERNAL_ERROR,
        f"{type(exc).__name__}: {exc}",
        exception_type=type(exc).__name__,
    )


def to_specforge_error(exc: BaseException, path: str | None = None) -> SpecforgeError:
    """Wrap an exception as SpecforgeError (identity for SpecforgeError)."""
    if isinstance(exc, SpecforgeError):
        return exc
    return SpecforgeError(normalize_exception(exc, path))
