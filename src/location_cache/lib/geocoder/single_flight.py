"""Coalesce concurrent calls that share a key into one in-flight task."""

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any


class SingleFlight:
    """Per-key in-flight registry.

    The first caller for a key starts the work; callers arriving while it is
    still running await the same task. The key is released once the task
    finishes, so later calls start fresh work. Cancelling one waiter does not
    cancel the shared task.
    """

    def __init__(self) -> None:
        self._calls: dict[Hashable, asyncio.Task[Any]] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._calls

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        task = self._calls.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._calls[key] = task
            task.add_done_callback(lambda _t, k=key: self._calls.pop(k, None))
        return await asyncio.shield(task)
