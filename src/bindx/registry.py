"""Path subscription registry — synchronous change notification by path.

Writes on an ObservableView call notify(path) inline, before the write
returns. Computed invalidation and autorun reactions hang off this tier,
so it is never deferred.

A subscriber that raises is logged and skipped; the remaining subscribers
for the same path still run.
"""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from typing import Callable

logger = logging.getLogger("bindx.registry")

Unsubscribe = Callable[[], None]


class SubscriptionRegistry:
    """Maps a path to the callbacks interested in it."""

    def __init__(self) -> None:
        # dict-as-ordered-set: registration order is notification order
        self._subscribers: dict[str, dict[int, Callable]] = {}
        self._next_key = 0

    def subscribe(self, path: str, callback: Callable) -> Unsubscribe:
        """Register callback(path, *args) for exact writes to path.

        Returns an unsubscribe function. Calling it more than once is safe.
        """
        key = self._next_key
        self._next_key += 1
        self._subscribers.setdefault(path, {})[key] = callback

        def _unsubscribe() -> None:
            subscribers = self._subscribers.get(path)
            if subscribers is None or key not in subscribers:
                return
            del subscribers[key]
            if not subscribers:
                del self._subscribers[path]

        return _unsubscribe

    def notify(self, path: str, *args) -> None:
        """Invoke every subscriber for path, isolating failures."""
        subscribers = self._subscribers.get(path)
        if not subscribers:
            return
        # Snapshot: late subscribers wait for the next notify, removed ones are skipped.
        for key, callback in list(subscribers.items()):
            if key not in self._subscribers.get(path, {}):
                continue
            try:
                callback(path, *args)
            except Exception:
                logger.exception("Subscriber for %r failed", path)

    def callbacks(self, path: str) -> list[Callable]:
        return list(self._subscribers.get(path, {}).values())

    def match(self, pattern: str) -> list[str]:
        """Subscribed paths matching a glob pattern, e.g. "user.*"."""
        return [path for path in self._subscribers if fnmatchcase(path, pattern)]

    def paths(self) -> list[str]:
        return list(self._subscribers)

    def clear(self) -> None:
        self._subscribers.clear()

    def __contains__(self, path: str) -> bool:
        return path in self._subscribers

    def __len__(self) -> int:
        return sum(len(s) for s in self._subscribers.values())

    def __repr__(self) -> str:
        return f"SubscriptionRegistry(paths={len(self._subscribers)}, subscribers={len(self)})"
