"""Tests for the transient-error retry decorator."""

from collections.abc import Awaitable, Callable

import pytest

from app.decorators import with_retry


def flaky(
    failures: int,
    calls: list[int],
    error: type[Exception] = ConnectionError,
) -> Callable[[], Awaitable[str]]:
    async def call() -> str:
        calls.append(1)
        if len(calls) <= failures:
            raise error("transient")
        return "ok"

    return call


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_recovers_after_transient_errors(self) -> None:
        calls: list[int] = []
        wrapped = with_retry(max_retries=3, base_delay=0.001, max_delay=0.001)(flaky(2, calls))
        assert await wrapped() == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_reraises_last_error(self) -> None:
        """Attempts are bounded and the original exception type survives."""
        calls: list[int] = []
        wrapped = with_retry(max_retries=2, base_delay=0.001, max_delay=0.001)(flaky(5, calls))
        with pytest.raises(ConnectionError):
            await wrapped()
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self) -> None:
        calls: list[int] = []
        wrapped = with_retry(max_retries=3, base_delay=0.001)(flaky(1, calls, ValueError))
        with pytest.raises(ValueError):
            await wrapped()
        assert len(calls) == 1
