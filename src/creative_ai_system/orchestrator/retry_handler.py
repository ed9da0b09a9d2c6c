"""Retry policy for single synchronous provider calls, with linear backoff."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from creative_ai_system.exceptions import OVERLOAD_SIGNATURES, is_transient_error

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class RetryPolicy:
    """Bounded retries for one call. Does not span provider fallback."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: int = 1000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize retry policy."""
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
        base_delay_ms: int | None = None,
    ) -> T:
        """Run ``fn`` until it succeeds, fails fatally, or attempts run out.

        Transient failures wait ``base_delay_ms * attempt_number`` before the
        next try. The last error is re-raised unchanged.
        """
        attempts = max_attempts or self.max_attempts
        delay_s = (self.base_delay_ms if base_delay_ms is None else base_delay_ms) / 1000

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Transient provider error, retrying",
                attempt=retry_state.attempt_number,
                max_attempts=attempts,
                wait_seconds=delay_s * retry_state.attempt_number,
                error=str(error),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(start=delay_s, increment=delay_s),
            retry=retry_if_exception(is_transient_error),
            before_sleep=log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await fn()

        # This should never be reached
        raise RuntimeError("Retry loop completed without returning")


__all__ = ["OVERLOAD_SIGNATURES", "RetryPolicy", "is_transient_error"]
