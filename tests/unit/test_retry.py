# tests/unit/test_retry.py
"""
Unit tests for the retry/backoff executor.

Strategies use zero delays so the suite never actually sleeps, except where
a test checks that a retry-after hint replaces the computed delay.
"""

import asyncio
import io
from unittest.mock import AsyncMock, MagicMock

import pytest
from rich.console import Console

from specforge.errors import (
    ErrorCode,
    RetryStrategy,
    SpecforgeError,
    calculate_delay,
    is_retryable,
    make_error,
    retry_batch,
    with_retry,
    with_retry_progress,
)
from specforge.errors.retry import add_jitter

FAST = RetryStrategy(max_retries=3, initial_delay=0.0, max_delay=0.0, jitter=0.0)


def _error(code, **kwargs):
    return SpecforgeError(make_error(code, **kwargs))


class TestCalculateDelay:
    def test_geometric_growth(self):
        strategy = RetryStrategy(initial_delay=1.0, backoff_multiplier=2.0, max_delay=100.0)
        assert [calculate_delay(n, strategy) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        strategy = RetryStrategy(initial_delay=1.0, backoff_multiplier=2.0, max_delay=8.0)
        assert calculate_delay(10, strategy) == 8.0

    def test_jitter_window(self):
        for _ in range(200):
            value = add_jitter(10.0, 0.2)
            assert 9.0 <= value <= 11.0

    def test_zero_jitter_is_identity(self):
        assert add_jitter(3.0, 0.0) == 3.0

    def test_jitter_never_negative(self):
        assert add_jitter(0.0, 1.0) == 0.0

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_retries": -1}, {"initial_delay": -1}, {"backoff_multiplier": 0.5}, {"jitter": 1.5}],
    )
    def test_invalid_strategy(self, kwargs):
        with pytest.raises(ValueError):
            RetryStrategy(**kwargs)


class TestIsRetryable:
    @pytest.mark.parametrize(
        "code",
        [ErrorCode.NETWORK_CONNECTION_FAILED, ErrorCode.NETWORK_TIMEOUT, ErrorCode.NETWORK_RATE_LIMIT],
    )
    def test_transient_categories(self, code):
        assert is_retryable(make_error(code))

    @pytest.mark.parametrize(
        "code",
        [
            ErrorCode.AUTH_TOKEN_INVALID,
            ErrorCode.SPEC_VALIDATION_ERROR,
            ErrorCode.FILE_ACCESS_DENIED,
            ErrorCode.USER_CANCELLED,
            ErrorCode.INTERNAL_ERROR,
        ],
    )
    def test_permanent_categories(self, code):
        assert not is_retryable(make_error(code))

    def test_explicit_override_wins(self):
        assert not is_retryable(make_error(ErrorCode.NETWORK_CONNECTION_FAILED, can_retry=False))
        assert is_retryable(make_error(ErrorCode.GENERATION_FAILED, can_retry=True))

    def test_invalid_ai_response_is_retryable(self):
        assert is_retryable(make_error(ErrorCode.AI_RESPONSE_INVALID))

    def test_cancellation_never_retryable(self):
        assert not is_retryable(make_error(ErrorCode.USER_CANCELLED, can_retry=True))

    def test_raw_exceptions_are_normalized(self):
        assert is_retryable(ConnectionError("reset"))
        assert not is_retryable(ValueError("bad"))


@pytest.mark.asyncio
class TestWithRetry:
    async def test_success_first_try(self):
        op = AsyncMock(return_value="ok")
        on_success = MagicMock()
        assert await with_retry(op, FAST, on_success=on_success) == "ok"
        assert op.await_count == 1
        on_success.assert_called_once()

    async def test_recovers_after_transient_failures(self):
        op = AsyncMock(side_effect=[_error(ErrorCode.NETWORK_TIMEOUT), _error(ErrorCode.NETWORK_TIMEOUT), "ok"])
        on_retry = MagicMock()
        assert await with_retry(op, FAST, on_retry=on_retry) == "ok"
        assert op.await_count == 3
        assert [c.args[0] for c in on_retry.call_args_list] == [1, 2]

    async def test_non_retryable_propagates_immediately(self):
        error = _error(ErrorCode.AUTH_TOKEN_INVALID)
        op = AsyncMock(side_effect=error)
        on_retry = MagicMock()
        on_failure = MagicMock()
        with pytest.raises(SpecforgeError) as exc_info:
            await with_retry(op, FAST, on_retry=on_retry, on_failure=on_failure)
        assert exc_info.value is error
        assert op.await_count == 1
        on_retry.assert_not_called()
        on_failure.assert_not_called()

    async def test_exhaustion_raises_last_error(self):
        errors = [_error(ErrorCode.NETWORK_CONNECTION_FAILED, message=f"fail {i}") for i in range(4)]
        op = AsyncMock(side_effect=errors)
        on_failure = MagicMock()
        with pytest.raises(SpecforgeError) as exc_info:
            await with_retry(op, FAST, on_failure=on_failure)
        assert exc_info.value is errors[-1]
        assert op.await_count == FAST.max_retries + 1
        on_failure.assert_called_once_with(errors[-1])

    async def test_zero_retries_means_one_attempt(self):
        op = AsyncMock(side_effect=_error(ErrorCode.NETWORK_TIMEOUT))
        with pytest.raises(SpecforgeError):
            await with_retry(op, RetryStrategy(max_retries=0, initial_delay=0, jitter=0))
        assert op.await_count == 1

    async def test_raw_exception_is_not_wrapped(self):
        op = AsyncMock(side_effect=KeyError("x"))
        with pytest.raises(KeyError):
            await with_retry(op, FAST)
        assert op.await_count == 1

    async def test_retry_after_hint_overrides_delay(self):
        strategy = RetryStrategy(max_retries=1, initial_delay=30.0, max_delay=30.0, jitter=0.0)
        op = AsyncMock(side_effect=[_error(ErrorCode.NETWORK_RATE_LIMIT, retry_after=0.01), "ok"])
        delays = []
        result = await with_retry(op, strategy, on_retry=lambda attempt, delay, err: delays.append(delay))
        assert result == "ok"
        assert delays == [0.01]

    async def test_cancelled_before_first_attempt(self):
        event = asyncio.Event()
        event.set()
        op = AsyncMock(return_value="ok")
        with pytest.raises(SpecforgeError) as exc_info:
            await with_retry(op, FAST, cancel_event=event)
        assert exc_info.value.code is ErrorCode.USER_CANCELLED
        op.assert_not_awaited()

    async def test_cancel_interrupts_backoff_sleep(self):
        event = asyncio.Event()
        strategy = RetryStrategy(max_retries=3, initial_delay=60.0, max_delay=60.0, jitter=0.0)
        op = AsyncMock(side_effect=_error(ErrorCode.NETWORK_TIMEOUT))

        with pytest.raises(SpecforgeError) as exc_info:
            await asyncio.wait_for(
                with_retry(op, strategy, cancel_event=event, on_retry=lambda *a: event.set()),
                timeout=5,
            )
        assert exc_info.value.code is ErrorCode.USER_CANCELLED
        assert op.await_count == 1

    async def test_on_failure_not_called_for_cancellation(self):
        event = asyncio.Event()
        event.set()
        on_failure = MagicMock()
        with pytest.raises(SpecforgeError):
            await with_retry(AsyncMock(), FAST, cancel_event=event, on_failure=on_failure)
        on_failure.assert_not_called()


@pytest.mark.asyncio
class TestWithRetryProgress:
    def _console(self) -> tuple[Console, io.StringIO]:
        buffer = io.StringIO()
        return Console(file=buffer, width=200, no_color=True), buffer

    async def test_prints_retry_lines(self):
        console, out = self._console()
        op = AsyncMock(side_effect=[_error(ErrorCode.NETWORK_TIMEOUT, message="slow provider"), "ok"])
        result = await with_retry_progress(op, "Enhancement", FAST, console=console)
        assert result == "ok"
        text = out.getvalue()
        assert "Enhancement failed (attempt 1): slow provider" in text
        assert "Retrying in 0s..." in text
        assert "failed after all retries" not in text

    async def test_prints_exhaustion(self):
        console, out = self._console()
        op = AsyncMock(side_effect=_error(ErrorCode.NETWORK_CONNECTION_FAILED, message="refused"))
        with pytest.raises(SpecforgeError):
            await with_retry_progress(op, "Auth check", FAST, console=console)
        text = out.getvalue()
        assert text.count("Auth check failed (attempt") == FAST.max_retries
        assert "Auth check failed after all retries: refused" in text

    async def test_non_retryable_prints_nothing(self):
        console, out = self._console()
        op = AsyncMock(side_effect=_error(ErrorCode.AUTH_TOKEN_INVALID))
        with pytest.raises(SpecforgeError):
            await with_retry_progress(op, "Auth check", FAST, console=console)
        assert out.getvalue() == ""


@pytest.mark.asyncio
class TestRetryBatch:
    async def test_results_keep_order(self):
        ops = [AsyncMock(return_value=i) for i in range(5)]
        outcomes = await retry_batch(ops, FAST, concurrency=2)
        assert [o.result for o in outcomes] == [0, 1, 2, 3, 4]
        assert all(o.success for o in outcomes)

    async def test_failures_are_captured(self):
        ops = [AsyncMock(return_value="a"), AsyncMock(side_effect=_error(ErrorCode.AUTH_TOKEN_INVALID))]
        outcomes = await retry_batch(ops, FAST)
        assert outcomes[0].success
        assert not outcomes[1].success
        assert outcomes[1].error.code is ErrorCode.AUTH_TOKEN_INVALID

    async def test_each_operation_retries(self):
        flaky = AsyncMock(side_effect=[_error(ErrorCode.NETWORK_TIMEOUT), "ok"])
        outcomes = await retry_batch([flaky], FAST)
        assert outcomes[0].result == "ok"
        assert flaky.await_count == 2

    async def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            await retry_batch([], FAST, concurrency=0)
