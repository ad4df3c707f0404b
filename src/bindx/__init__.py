"""bindx: reactive path tracking, computed values and batched notification."""

from importlib.metadata import version as _version

__version__ = _version("bindx")

from bindx._tracking import Tracked, untracked, with_tracking
from bindx.errors import BindxError, CircularDependencyError, PathError
from bindx.registry import SubscriptionRegistry
from bindx.batch import AsyncioTick, BatchQueue, LoopTick, ManualTick
from bindx.runtime import flush, get_batch_queue, get_registry, set_tick, subscribe
from bindx.observable import ObservableDict, ObservableList, ObservableView, is_reactive, unwrap, wrap
from bindx.computed import Computed, computed
from bindx.reaction import Reaction, autorun, reaction
from bindx.watch import WatchHandle, watch
from bindx._path import get_nested, set_nested
# textual is not auto-imported; opt-in only

__all__ = [
    "wrap",
    "is_reactive",
    "unwrap",
    "ObservableView",
    "ObservableDict",
    "ObservableList",
    "with_tracking",
    "untracked",
    "Tracked",
    "SubscriptionRegistry",
    "subscribe",
    "Computed",
    "computed",
    "BatchQueue",
    "ManualTick",
    "LoopTick",
    "AsyncioTick",
    "get_batch_queue",
    "get_registry",
    "set_tick",
    "flush",
    "watch",
    "WatchHandle",
    "Reaction",
    "autorun",
    "reaction",
    "get_nested",
    "set_nested",
    "BindxError",
    "CircularDependencyError",
    "PathError",
]
