"""At-most-one-in-flight task per key."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlight:
    """Shares one running task between every caller asking for the same key.

    Callers await the task through asyncio.shield(), so a caller that is
    cancelled abandons only its own wait; the shared work runs to completion
    and its result or error goes to everyone else still waiting.
    """

    def __init__(self) -> None:
        self._tasks: dict[Hashable, asyncio.Task[Any]] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def keys(self) -> list[Hashable]:
        return list(self._tasks)

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda t, k=key: self._finished(k, t))
        else:
            logger.debug("Joining in-flight task for %s", key)
        return await asyncio.shield(task)

    def _finished(self, key: Hashable, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        # marks the exception as retrieved
        if not task.cancelled() and task.exception() is not None:
            logger.debug("In-flight task for %s failed: %r", key, task.exception())

    async def drain(self) -> None:
        """Wait for every running task, ignoring their outcomes."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
