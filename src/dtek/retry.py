"""Stepped-delay retry for service calls.

Wraps an async operation that either returns a plain value, returns an
``Ok``/``Err`` result, or raises. Raised exceptions and ``Err`` results are
retried alike; the delays list decides both the sleeps and the retry count.

Example:
    result = await with_retry(
        lambda: service.get_status(city, street),
        delays=config.retry_delays,
        on_retry=lambda attempt, error, delay: log.info("retrying", attempt=attempt),
    )
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
    wait_none,
)

from src.dtek.errors import RetryExhausted, format_error_for_log
from src.dtek.logging import get_logger
from src.dtek.result import Err, Ok, Result

log = get_logger(__name__)

T = TypeVar("T")

# Sleep before retry 1, 2, 3 (seconds)
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (0.5, 1.0, 2.0)

RetryObserver = Callable[[int, Any, float], None]


def _is_failure(value: Any) -> bool:
    return isinstance(value, Err)


def _last_error(retry_state: RetryCallState) -> Any:
    outcome = retry_state.outcome
    if outcome is None:
        return None
    if outcome.failed:
        return outcome.exception()
    return outcome.result().error


def _error_fields(error: Any) -> dict[str, Any]:
    if isinstance(error, BaseException):
        return {"error": repr(error)}
    return format_error_for_log(error)


async def with_retry(
    operation: Callable[[], Awaitable[T | Result[T, Any]]],
    *,
    delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
    on_retry: RetryObserver | None = None,
) -> Result[T, Any]:
    """Run ``operation`` up to ``len(delays) + 1`` times.

    Args:
        operation: Zero-argument coroutine function.
        delays: Seconds to sleep before each retry.
        on_retry: Called as ``on_retry(attempt, error, delay)`` before each
            sleep. Diagnostics only, it cannot stop the retries.

    Returns:
        The first ``Ok`` (plain values are wrapped in ``Ok``), or
        ``Err(RetryExhausted)`` carrying the last error or exception.
    """
    delays = list(delays)

    def _before_sleep(retry_state: RetryCallState) -> None:
        error = _last_error(retry_state)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        log.info(
            "retry_scheduled",
            attempt=retry_state.attempt_number,
            delay_seconds=delay,
            **_error_fields(error),
        )
        if on_retry is not None:
            on_retry(retry_state.attempt_number, error, delay)

    def _exhausted(retry_state: RetryCallState) -> Err[RetryExhausted]:
        error = _last_error(retry_state)
        log.warning("retry_exhausted", attempts=retry_state.attempt_number, **_error_fields(error))
        return Err(
            RetryExhausted(
                message=f"All {retry_state.attempt_number} attempts failed",
                attempts=retry_state.attempt_number,
                last_error=error,
            )
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(len(delays) + 1),
        wait=wait_chain(*(wait_fixed(d) for d in delays)) if delays else wait_none(),
        retry=retry_if_exception_type(Exception) | retry_if_result(_is_failure),
        before_sleep=_before_sleep,
        retry_error_callback=_exhausted,
    )
    outcome = await retrying(operation)

    if isinstance(outcome, (Ok, Err)):
        return outcome
    return Ok(outcome)
