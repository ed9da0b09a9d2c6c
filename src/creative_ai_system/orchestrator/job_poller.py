"""Submit-then-poll execution for long-running provider jobs."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, Optional, Protocol, TypeVar

import structlog

from creative_ai_system.exceptions import (
    CreativeException,
    FatalProviderError,
    GenerationTimeoutError,
)

H = TypeVar("H")

logger = structlog.get_logger(__name__)


@dataclass
class JobStatus(Generic[H]):
    """Status returned by one poll call."""

    done: bool
    handle: H
    error: Optional[str] = None


class PollableJob(Protocol[H]):
    """A provider job with a submit/poll API instead of call/response."""

    provider: str

    async def submit(self) -> H: ...

    async def poll(self, handle: H) -> JobStatus[H]: ...

    def extract(self, status: JobStatus[H]) -> Any: ...


class AsyncJobPoller:
    """Polls a submitted job on a fixed interval until done or deadline.

    The wait happens in the caller's task. On deadline the remote job is
    left running; its result is discarded.
    """

    def __init__(
        self,
        poll_interval_ms: int = 10_000,
        deadline_ms: int = 300_000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.poll_interval_ms = poll_interval_ms
        self.deadline_ms = deadline_ms
        self._sleep = sleep
        self._clock = clock

    async def submit_and_await(
        self,
        job: PollableJob,
        poll_interval_ms: int | None = None,
        deadline_ms: int | None = None,
    ) -> Any:
        interval_ms = poll_interval_ms or self.poll_interval_ms
        deadline = deadline_ms or self.deadline_ms
        provider = getattr(job, "provider", None)

        # No retry at this layer: a submission failure propagates as is
        handle = await job.submit()
        created_at = self._clock()
        polls = 0

        logger.info(
            "Job submitted, polling",
            provider=provider,
            poll_interval_ms=interval_ms,
            deadline_ms=deadline,
        )

        while True:
            await self._sleep(interval_ms / 1000)

            try:
                status = await job.poll(handle)
            except (FatalProviderError, GenerationTimeoutError):
                raise
            except CreativeException as e:
                raise FatalProviderError(
                    f"Job status query failed: {e.message}", provider=provider
                ) from e
            except Exception as e:
                raise FatalProviderError(f"Job status query failed: {e}", provider=provider) from e
            polls += 1

            if status.done:
                if status.error:
                    raise FatalProviderError(f"Job failed: {status.error}", provider=provider)
                logger.info("Job completed", provider=provider, polls=polls)
                return job.extract(status)

            handle = status.handle
            elapsed_ms = (self._clock() - created_at) * 1000
            if elapsed_ms >= deadline:
                logger.warning(
                    "Job deadline elapsed, abandoning remote job",
                    provider=provider,
                    polls=polls,
                    elapsed_ms=int(elapsed_ms),
                )
                raise GenerationTimeoutError(
                    f"Generation timed out after {deadline // 1000} seconds", provider=provider
                )
