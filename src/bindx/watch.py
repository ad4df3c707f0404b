"""watch() — deferred path watchers fed by the batch queue.

Where subscribe() fires inline with every write, a watcher only sees the
coalesced result: callback(path, value) runs once per batch delivery with
the last value written to the path in that tick. This is the tier meant
for UI-facing consumers.

Watchers live in the default runtime's watcher registry unless one is
passed; a custom BatchQueue can feed a custom registry with
registry.notify as its update handler.
"""

from __future__ import annotations

from typing import Callable

from bindx import runtime
from bindx.registry import SubscriptionRegistry

Watcher = Callable[[str, object], None]


class WatchHandle:
    """Disposable handle for a deferred path watcher."""

    __slots__ = ("path", "_unsubscribe", "_disposed")

    def __init__(self, path: str, unsubscribe: Callable[[], None]) -> None:
        self.path = path
        self._unsubscribe = unsubscribe
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Stop watching. Safe to call more than once."""
        if not self._disposed:
            self._disposed = True
            self._unsubscribe()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"WatchHandle({self.path!r}, {state})"


def watch(path: str, callback: Watcher, *, registry: SubscriptionRegistry | None = None) -> WatchHandle:
    """Call callback(path, value) when a batch carrying path is delivered.

    Usage:
        state = wrap({"count": 0})
        seen = []
        handle = watch("count", lambda path, value: seen.append(value))

        state.count = 1
        state.count = 2
        flush()
        # seen == [2] — one delivery with the last value

        handle.dispose()
    """
    watchers = registry if registry is not None else runtime.get_watchers()
    return WatchHandle(path, watchers.subscribe(path, callback))
