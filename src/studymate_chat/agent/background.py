"""Detached background work with an isolated error sink."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


def _log_failure(name: str, exc: BaseException) -> None:
    logger.warning("Background task %s failed: %s", name, exc, exc_info=exc)


class BackgroundTaskQueue:
    """Schedules coroutines that the response path never awaits.

    Failures go to `error_sink` and nowhere else. `drain()` waits for pending
    work, which the app calls on shutdown and tests call before asserting.
    """

    def __init__(self, error_sink: Callable[[str, BaseException], None] | None = None) -> None:
        self._error_sink = error_sink or _log_failure
        self._pending: set[asyncio.Task[None]] = set()

    def submit(self, name: str, work: Callable[[], Awaitable[None]]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self._run(name, work), name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self, name: str, work: Callable[[], Awaitable[None]]) -> None:
        try:
            await work()
        except Exception as exc:
            self._error_sink(name, exc)
