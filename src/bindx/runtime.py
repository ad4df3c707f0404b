"""Default runtime — the shared instances used when none are passed.

Every component accepts explicit instances. For the common case of one
reactive state per process, wrap(), computed(), autorun() and watch() fall
back to the instances held here:

    registry  synchronous path subscriptions
    watchers  deferred path watchers, fed by the batch queue
    batch     the BatchQueue every default-scoped write is scheduled on

Configure the host's "next tick" once at startup:

    bindx.set_tick(AsyncioTick())       # inside an asyncio program
    bindx.set_tick(bindx.textual.tick(app))

Until then the default tick is a ManualTick: call bindx.flush() (or
get_batch_queue().tick.run()) to deliver batched updates.
"""

from __future__ import annotations

from typing import Callable

from bindx.batch import BatchQueue, ManualTick, Tick
from bindx.registry import SubscriptionRegistry, Unsubscribe

_registry: SubscriptionRegistry = SubscriptionRegistry()
_watchers: SubscriptionRegistry = SubscriptionRegistry()
_batch: BatchQueue | None = None


def _deliver_to_watchers(path: str, value: object) -> None:
    _watchers.notify(path, value)


def get_registry() -> SubscriptionRegistry:
    return _registry


def get_watchers() -> SubscriptionRegistry:
    return _watchers


def get_batch_queue() -> BatchQueue:
    """Default batch queue, created lazily. Delivers to the watcher registry."""
    global _batch
    if _batch is None:
        _batch = BatchQueue(_deliver_to_watchers, ManualTick())
    return _batch


def set_tick(tick: Tick) -> None:
    """Install the host's deferred-execution primitive on the default queue.

    Anything already pending is delivered first so no update is stranded
    on the old tick.
    """
    queue = get_batch_queue()
    queue.flush()
    queue.tick = tick


def subscribe(path: str, callback: Callable) -> Unsubscribe:
    """Synchronous subscription on the default registry."""
    return _registry.subscribe(path, callback)


def flush() -> None:
    """Deliver the default batch queue now."""
    get_batch_queue().flush()


def reset() -> None:
    """Replace every default instance. Views wrapped earlier keep the old ones."""
    global _registry, _watchers, _batch
    _registry = SubscriptionRegistry()
    _watchers = SubscriptionRegistry()
    _batch = None
