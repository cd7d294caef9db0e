"""Injectable clock for everything that waits.

Polling loops never call ``asyncio.sleep`` directly; they go through a
``Clock`` so tests can run the full attempt budget without real delay.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_POLL_MAX_ATTEMPTS = 1800  # ~1 hour at the default interval


@runtime_checkable
class Clock(Protocol):
    """Source of time and suspension for the current run."""

    def now(self) -> datetime: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall clock backed by :func:`asyncio.sleep`."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def new_tag(clock: Clock | None = None) -> str:
    """Default run Tag: the UTC timestamp ``%Y%m%d%H%M%S``."""
    return (clock or SystemClock()).now().strftime("%Y%m%d%H%M%S")
