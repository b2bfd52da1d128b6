# specforge/errors/retry.py
"""
Bounded, cancellable retry with geometric backoff.

Built on tenacity's AsyncRetrying. Retryability comes from the error
taxonomy (is_retryable), the delay from RetryStrategy, and a provider
retry-after hint overrides the computed delay for that one wait.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from rich.console import Console
from rich.markup import escape
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from .catalog import cancelled_error
from .normalize import normalize_exception
from .types import RETRYABLE_CATEGORIES, ErrorCategory, ErrorRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryStrategy:
    """
    Retry configuration. Delays are in seconds.

    Attributes:
        max_retries: Retries after the initial attempt (total attempts = max_retries + 1)
        initial_delay: Delay before the first retry
        max_delay: Upper bound for any computed delay
        backoff_multiplier: Geometric growth factor
        jitter: Fraction of the delay used as a uniform perturbation window (0 disables)
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 8.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be between 0 and 1")


DEFAULT_RETRY_STRATEGY = RetryStrategy()

RetryObserver = Callable[[int, float, BaseException], None]


def is_retryable(error: BaseException | ErrorRecord) -> bool:
    """
    Decide whether a failure should be retried.

    Order: cancellation is never retried; an explicit can_retry on the
    record wins; otherwise the category's default applies.
    """
    record = error if isinstance(error, ErrorRecord) else normalize_exception(error)
    if record.category is ErrorCategory.CANCELLED:
        return False
    if record.can_retry is not None:
        return record.can_retry
    return record.category in RETRYABLE_CATEGORIES


def calculate_delay(attempt: int, strategy: RetryStrategy = DEFAULT_RETRY_STRATEGY) -> float:
    """Backoff delay before retry number `attempt` (1-based), capped at max_delay."""
    delay = strategy.initial_delay * strategy.backoff_multiplier ** (attempt - 1)
    return min(delay, strategy.max_delay)


def add_jitter(delay: float, jitter: float) -> float:
    """Perturb delay uniformly within +/- (delay * jitter / 2). Never negative."""
    if jitter <= 0 or delay <= 0:
        return delay
    window = delay * jitter
    return max(delay + random.uniform(-window / 2, window / 2), 0.0)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    strategy: RetryStrategy | None = None,
    cancel_event: asyncio.Event | None = None,
    on_retry: RetryObserver | None = None,
    on_success: Callable[[], None] | None = None,
    on_failure: Callable[[BaseException], None] | None = None,
) -> T:
    """
    Run `operation` with retry and backoff.

    Args:
        operation: No-argument coroutine function
        strategy: RetryStrategy (defaults to DEFAULT_RETRY_STRATEGY)
        cancel_event: Set by the caller to abandon the operation
        on_retry: Called before each wait with (attempt, delay, error)
        on_success: Called once on eventual success
        on_failure: Called once when a retryable failure exhausts the attempts

    Returns:
        The operation's result

    Raises:
        SpecforgeError(USER_CANCELLED): If cancel_event is set before an attempt or a wait
        Exception: The last error from the operation (not wrapped)
    """
    strategy = strategy or DEFAULT_RETRY_STRATEGY

    def _check_cancelled(retry_state: RetryCallState | None = None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise cancelled_error()

    def _wait(retry_state: RetryCallState) -> float:
        record = normalize_exception(retry_state.outcome.exception())
        hint = record.retry_after
        if hint is not None:
            return hint
        return add_jitter(calculate_delay(retry_state.attempt_number, strategy), strategy.jitter)

    def _before_sleep(retry_state: RetryCallState) -> None:
        _check_cancelled()
        error = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep
        logger.warning(
            f"Attempt {retry_state.attempt_number} failed ({error}); retrying in {delay:.2f}s"
        )
        if on_retry:
            on_retry(retry_state.attempt_number, delay, error)

    async def _sleep(seconds: float) -> None:
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise cancelled_error()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(strategy.max_retries + 1),
        wait=_wait,
        retry=retry_if_exception(is_retryable),
        before=_check_cancelled,
        before_sleep=_before_sleep,
        sleep=_sleep,
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                result = await operation()
    except Exception as exc:
        # Non-retryable errors (cancellation included) never used the retry budget
        if on_failure and is_retryable(exc):
            on_failure(exc)
        raise

    if on_success:
        on_success()
    return result


async def with_retry_progress(
    operation: Callable[[], Awaitable[T]],
    operation_name: str = "Operation",
    strategy: RetryStrategy | None = None,
    cancel_event: asyncio.Event | None = None,
    console: Console | None = None,
) -> T:
    """with_retry that also prints retry progress to stderr."""
    console = console or Console(stderr=True)

    def _on_retry(attempt: int, delay: float, error: BaseException) -> None:
        console.print(f"[yellow]{escape(operation_name)} failed (attempt {attempt}):[/yellow] {escape(str(error))}")
        console.print(f"[dim]Retrying in {delay:.0f}s...[/dim]")

    def _on_failure(error: BaseException) -> None:
        console.print(f"[red]{escape(operation_name)} failed after all retries:[/red] {escape(str(error))}")

    return await with_retry(
        operation,
        strategy=strategy,
        cancel_event=cancel_event,
        on_retry=_on_retry,
        on_failure=_on_failure,
    )


@dataclass
class BatchOutcome:
    """Outcome of one operation in retry_batch()."""

    success: bool
    result: Any = None
    error: ErrorRecord | None = None


async def retry_batch(
    operations: list[Callable[[], Awaitable[Any]]],
    strategy: RetryStrategy | None = None,
    concurrency: int = 5,
    cancel_event: asyncio.Event | None = None,
) -> list[BatchOutcome]:
    """
    Run operations in batches of `concurrency`, each with its own retry.

    Failures are captured per operation; results keep the input order.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    async def _one(op: Callable[[], Awaitable[Any]]) -> BatchOutcome:
        try:
            value = await with_retry(op, strategy=strategy, cancel_event=cancel_event)
            return BatchOutcome(success=True, result=value)
        except Exception as exc:
            return BatchOutcome(success=False, error=normalize_exception(exc))

    outcomes: list[BatchOutcome] = []
    for start in range(0, len(operations), concurrency):
        batch = operations[start:start + concurrency]
        outcomes.extend(await asyncio.gather(*(_one(op) for op in batch)))
    return outcomes
