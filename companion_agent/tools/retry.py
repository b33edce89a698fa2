"""
Fixed-Delay Polling

One retry loop shared by every readiness gate: call a probe up to ``attempts``
times, ``interval`` seconds apart, until it produces a value.
"""

from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _exhausted(retry_state: RetryCallState) -> None:
    """Re-raise the last error, or report exhaustion as ``None``."""
    outcome = retry_state.outcome
    if outcome is not None and outcome.failed:
        raise outcome.exception()
    return None


async def poll_until(
    probe: Callable[[], Awaitable[Optional[T]]],
    *,
    attempts: int,
    interval: float,
    retry_on: tuple[type[BaseException], ...] = (),
    label: str = "poll",
    on_retry: Optional[Callable[[int, Any], None]] = None,
) -> Optional[T]:
    """
    Poll ``probe`` until it returns something other than ``None``.

    Args:
        probe: Async callable; ``None`` means "not yet"
        attempts: Maximum number of calls
        interval: Seconds between calls
        retry_on: Exception types absorbed as "not yet"; anything else propagates
        label: Name used in retry log events
        on_retry: Called with (attempt_number, last outcome value or error) before each sleep

    Returns:
        The first non-None probe result, or None when the budget ran out.
        If the final attempt raised one of ``retry_on``, that error is raised.
    """
    retry = retry_if_result(lambda value: value is None)
    if retry_on:
        retry = retry | retry_if_exception_type(retry_on)

    def before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        detail = outcome.exception() if outcome.failed else outcome.result()
        if outcome.failed:
            logger.info(
                "Probe failed, retrying",
                label=label,
                attempt=retry_state.attempt_number,
                error=str(detail),
            )
        if on_retry is not None:
            on_retry(retry_state.attempt_number, detail)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(interval),
        retry=retry,
        before_sleep=before_sleep,
        retry_error_callback=_exhausted,
    )
    return await retrying(probe)
