"""
Completion poller — bounded-retry status watcher for one remote job.

Build jobs run for minutes to an hour. The poller fetches the job status,
returns as soon as it is terminal, and otherwise sleeps a fixed interval on
the injected clock. When the attempt budget runs out it raises
:class:`~clusterspine.core.errors.TimeoutError`; there is no other way to
stop waiting.

State machine::

    pending ──► running ──► succeeded   → returned to caller
                   │
                   ├──────► failed      → returned to caller (caller raises)
                   │
        attempts exhausted ──► TimeoutError

The poller decides only *terminal or not*. What a failed job means is up to
the caller (the image builder raises ``BuildFailedError``). Progress
callbacks are for display only and receive a copy of the state.

Example:
    poller = CompletionPoller(SystemClock(), interval=2.0, max_attempts=1800)
    job = await poller.wait(job.id, management.get_build)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Generic, Protocol, TypeVar

from clusterspine.core.clock import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_MAX_ATTEMPTS, Clock, SystemClock
from clusterspine.core.errors import TimeoutError
from clusterspine.core.logging import get_logger
from clusterspine.core.models import JobState

logger = get_logger(__name__)

DEFAULT_INTERVAL = DEFAULT_POLL_INTERVAL
DEFAULT_MAX_ATTEMPTS = DEFAULT_POLL_MAX_ATTEMPTS


class HasState(Protocol):
    @property
    def state(self) -> JobState: ...


S = TypeVar("S", bound=HasState)

ProgressCallback = Callable[[str, int, int, JobState], None]


class CompletionPoller(Generic[S]):
    """Polls one job until it is terminal or the attempt budget is spent."""

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        interval: float = DEFAULT_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be >= 0")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.clock = clock or SystemClock()
        self.interval = interval
        self.max_attempts = max_attempts
        self.on_progress = on_progress

    async def wait(self, job_id: str, fetch: Callable[[str], Awaitable[S]]) -> S:
        """Return the first terminal status of ``job_id``.

        Raises:
            TimeoutError: ``max_attempts`` fetches returned a non-terminal state.
        """
        for attempt in range(1, self.max_attempts + 1):
            status = await fetch(job_id)
            state = JobState(status.state)

            if state.is_terminal:
                logger.info("poller.terminal", job_id=job_id, state=state.value, attempts=attempt)
                return status

            if attempt == self.max_attempts:
                break
            if self.on_progress is not None:
                self.on_progress(job_id, attempt, self.max_attempts, state)
            logger.debug(
                "poller.waiting",
                job_id=job_id,
                state=state.value,
                attempt=attempt,
                max_attempts=self.max_attempts,
            )
            await self.clock.sleep(self.interval)

        logger.error("poller.timeout", job_id=job_id, attempts=self.max_attempts)
        raise TimeoutError(job_id, self.max_attempts, self.interval)
