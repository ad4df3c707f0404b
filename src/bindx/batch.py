"""Batched notification — coalesce external updates into one tick.

Every changed write is scheduled here after the synchronous registry has
run. Within one tick, repeated writes to a path collapse to the last value;
the queue then delivers each path once, in the order paths were first
written.

The "next tick" is injectable. A tick is any object with
schedule(callback) -> token and cancel(token):

    ManualTick   callbacks wait until the host calls run()
    LoopTick     defers through a call-later function (asyncio, Textual)
    AsyncioTick  LoopTick bound to the running asyncio loop
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

logger = logging.getLogger("bindx.batch")

UpdateHandler = Callable[[str, object], None]


class Tick(Protocol):
    def schedule(self, callback: Callable[[], None]) -> object: ...

    def cancel(self, token: object) -> None: ...


class ManualTick:
    """A tick the host pumps explicitly. Deterministic; the default."""

    def __init__(self) -> None:
        self._queue: dict[int, Callable[[], None]] = {}
        self._next_token = 0

    def schedule(self, callback: Callable[[], None]) -> int:
        token = self._next_token
        self._next_token += 1
        self._queue[token] = callback
        return token

    def cancel(self, token: int) -> None:
        self._queue.pop(token, None)

    def run(self) -> int:
        """Run every queued callback. Returns how many ran."""
        batch = list(self._queue.values())
        self._queue.clear()
        for callback in batch:
            callback()
        return len(batch)

    @property
    def pending(self) -> int:
        return len(self._queue)


class _Handle:
    __slots__ = ("callback", "cancelled")

    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def __call__(self) -> None:
        if not self.cancelled:
            self.callback()


class LoopTick:
    """Defers through a host call-later function.

    Usage:
        LoopTick(loop.call_soon)
        LoopTick(app.call_later)   # Textual
    """

    def __init__(self, call_later: Callable[[Callable[[], None]], object]) -> None:
        self._call_later = call_later

    def schedule(self, callback: Callable[[], None]) -> _Handle:
        handle = _Handle(callback)
        self._call_later(handle)
        return handle

    def cancel(self, token: _Handle) -> None:
        token.cancelled = True


class AsyncioTick(LoopTick):
    """LoopTick on the asyncio loop running at schedule time."""

    def __init__(self) -> None:
        super().__init__(lambda fn: asyncio.get_running_loop().call_soon(fn))


class BatchQueue:
    """Per-path coalescing queue with a manual flush escape hatch."""

    def __init__(self, update_handler: UpdateHandler, tick: Tick | None = None) -> None:
        self._update_handler = update_handler
        self.tick: Tick = tick if tick is not None else ManualTick()
        self._pending: dict[str, object] = {}
        self._token: object | None = None

    @property
    def is_scheduled(self) -> bool:
        return self._token is not None

    def schedule(self, path: str, value: object) -> None:
        """Store the latest value for path; request a tick if none is pending."""
        self._pending[path] = value
        if self._token is None:
            self._token = self.tick.schedule(self._deliver)

    def flush(self) -> None:
        """Deliver everything pending now and cancel the scheduled tick."""
        if self._token is not None:
            self.tick.cancel(self._token)
        self._deliver()

    def pending(self) -> dict[str, object]:
        return dict(self._pending)

    def _deliver(self) -> None:
        # Swap first: handlers that write schedule into a fresh batch.
        updates, self._pending = self._pending, {}
        self._token = None
        if updates:
            logger.debug("Delivering %d batched update(s)", len(updates))
        for path, value in updates.items():
            try:
                self._update_handler(path, value)
            except Exception:
                logger.exception("Batch update failed for %r", path)

    def __len__(self) -> int:
        return len(self._pending)

    def __repr__(self) -> str:
        state = "scheduled" if self.is_scheduled else "idle"
        return f"BatchQueue(pending={len(self._pending)}, {state})"
