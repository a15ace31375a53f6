"""
Trailing-edge write-behind buffer.

Each key has its own inactivity timer. A burst of submissions for the same
key collapses into one write carrying the latest (or merged) value, issued
``window`` seconds after the last submission. Keys never share a timer, so a
client edit cannot cancel a pending draft edit.

A failed write is not retried on its own. Its value goes back into the
buffer and the error is kept in ``failures`` until a later write of that key
succeeds, either after the next submission or on an explicit flush.
"""

import asyncio
import copy
import inspect
from typing import Any, Awaitable, Callable, Hashable
from loguru import logger

Writer = Callable[[Hashable, Any], Awaitable[None] | None]


class CoalescingWriteBehind:
    def __init__(self, writer: Writer, window: float = 1.0):
        """
        Args:
            writer: Called as ``writer(key, value)``; may be sync or async
            window: Seconds of inactivity before a key is written
        """
        self.writer = writer
        self.window = window
        self.failures: dict[Hashable, Exception] = {}
        self.write_count = 0
        self._pending: dict[Hashable, Any] = {}
        self._timers: dict[Hashable, asyncio.TimerHandle] = {}
        self._inflight: set[asyncio.Task] = set()

    def submit(self, key: Hashable, value: Any, merge: bool = False) -> None:
        """
        Queue ``value`` for ``key`` and restart that key's timer.

        With ``merge=True`` a dict value is folded into the pending dict
        instead of replacing it. Must be called from inside the event loop.
        """
        current = self._pending.get(key)
        if merge and isinstance(current, dict) and isinstance(value, dict):
            value = {**current, **value}
        self._pending[key] = value

        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.window, self._expire, key)

    def pending(self, key: Hashable) -> Any:
        """Unflushed value for ``key`` (a copy), or None."""
        if key not in self._pending:
            return None
        return copy.deepcopy(self._pending[key])

    def pending_keys(self) -> list[Hashable]:
        return list(self._pending)

    def _expire(self, key: Hashable) -> None:
        self._timers.pop(key, None)
        task = asyncio.get_running_loop().create_task(self._write(key))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _write(self, key: Hashable) -> None:
        if key not in self._pending:
            return
        value = self._pending.pop(key)
        try:
            result = self.writer(key, value)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            # Kept for reads and the next flush; no timer is restarted
            self._restore(key, value)
            self.failures[key] = exc
            logger.error("Deferred write failed", key=key, error=repr(exc))
            return
        self.failures.pop(key, None)
        self.write_count += 1
        logger.debug("Deferred write completed", key=key)

    def _restore(self, key: Hashable, value: Any) -> None:
        newer = self._pending.get(key)
        if newer is None:
            self._pending[key] = value
        elif isinstance(newer, dict) and isinstance(value, dict):
            self._pending[key] = {**value, **newer}

    async def flush(self, key: Hashable | None = None) -> None:
        """Write pending values now: one key, or every key when ``key`` is None."""
        await self.flush_keys([key] if key is not None else list(self._pending))

    async def flush_keys(self, keys: list[Hashable]) -> None:
        """Write the given keys now, then wait for writes already in flight."""
        for pending_key in keys:
            timer = self._timers.pop(pending_key, None)
            if timer is not None:
                timer.cancel()
            await self._write(pending_key)
        if self._inflight:
            await asyncio.gather(*list(self._inflight))

    async def close(self) -> None:
        await self.flush()
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
