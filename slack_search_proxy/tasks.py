"""Supervision of fire-and-forget side effects."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any, Optional

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str, BaseException], None]


def log_task_failure(name: str, exc: BaseException) -> None:
    logger.error("Background task %s failed: %s", name, exc, exc_info=exc)


class TaskSupervisor:
    """Spawns background tasks the request path never waits on.

    Tasks are referenced until they finish so the loop cannot drop them;
    exceptions that escape a task go to ``on_error`` instead of vanishing.
    """

    def __init__(self, on_error: Optional[ErrorCallback] = None) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._on_error = on_error or log_task_failure

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._on_error(task.get_name(), exc)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every task spawned so far (and any they spawn)."""

        while self._tasks:
            done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            if pending:
                logger.warning("%s background task(s) still running after drain timeout", len(pending))
                return


__all__ = ["TaskSupervisor", "ErrorCallback", "log_task_failure"]
