"""Bounded exponential retry for idempotent calls to the cache and blob backends."""

from collections.abc import Awaitable, Callable

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.monitoring import get_logger

logger = get_logger(__name__)

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
)


def _report_retry(attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        logger.warning(
            "retrying_call",
            call=getattr(state.fn, "__qualname__", "unknown"),
            attempt=state.attempt_number,
            attempts=attempts,
            delay=round(state.next_action.sleep, 3) if state.next_action else 0.0,
            error=repr(state.outcome.exception()) if state.outcome else None,
        )

    return before_sleep


def with_retry[**P, R](
    max_retries: int = 3,
    base_delay: float = 0.1,
    max_delay: float = 2.0,
    exec_retry: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """
    Retry an async call on transient transport errors.

    Only wrap operations that are safe to repeat: reads, overwriting puts and
    deletes. The last error is re-raised unchanged once ``max_retries``
    attempts are spent, so callers keep mapping it to their own error types.
    """
    return retry(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=base_delay, min=base_delay, max=max_delay),
        retry=retry_if_exception_type(exec_retry),
        before_sleep=_report_retry(max_retries),
        reraise=True,
    )
