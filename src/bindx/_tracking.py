"""Dependency tracking — records which paths a function reads.

Uses contextvars to hold the currently-recording context. Every read that
goes through an ObservableView calls track(); if a context is active the
(registry, path) pair is added to it. Computeds read during the execution
are recorded separately so computed-of-computed chains are real edges, not
path strings.

Contexts nest: with_tracking() installs a fresh context and restores the
previous one on return, including when fn raises.
"""

from __future__ import annotations

import contextvars
from typing import TYPE_CHECKING, Callable, Generic, NamedTuple, TypeVar

if TYPE_CHECKING:
    from bindx.computed import Computed
    from bindx.registry import SubscriptionRegistry

T = TypeVar("T")


class TrackingContext:
    """Accumulates reads for one tracked execution."""

    __slots__ = ("owner", "parent", "reads", "computeds")

    def __init__(self, owner: Computed | None = None, parent: TrackingContext | None = None) -> None:
        self.owner = owner
        self.parent = parent
        self.reads: set[tuple[SubscriptionRegistry, str]] = set()
        self.computeds: set[Computed] = set()

    @property
    def dependencies(self) -> frozenset[str]:
        return frozenset(path for _, path in self.reads)


class Tracked(NamedTuple, Generic[T]):
    result: T
    dependencies: frozenset[str]
    computeds: frozenset


# The context currently recording reads, or None when reads are untracked.
current_context: contextvars.ContextVar[TrackingContext | None] = contextvars.ContextVar(
    "current_context", default=None
)


def track(registry: SubscriptionRegistry, path: str) -> None:
    """Record a path read. No-op outside a tracked execution."""
    context = current_context.get()
    if context is not None:
        context.reads.add((registry, path))


def track_computed(computed: Computed) -> None:
    context = current_context.get()
    if context is not None:
        context.computeds.add(computed)


def run_tracked(fn: Callable[[], T], owner: Computed | None = None) -> tuple[T, TrackingContext]:
    """Run fn under a fresh context. Returns the result and the live context."""
    context = TrackingContext(owner, current_context.get())
    token = current_context.set(context)
    try:
        result = fn()
    finally:
        current_context.reset(token)
    return result, context


def with_tracking(fn: Callable[[], T]) -> Tracked[T]:
    """Execute fn and report the paths (and computeds) it read.

    Usage:
        view = wrap({"a": 1, "b": 2})
        tracked = with_tracking(lambda: view["a"] + view["b"])
        tracked.result        # 3
        tracked.dependencies  # frozenset({"a", "b"})
    """
    result, context = run_tracked(fn)
    return Tracked(result, context.dependencies, frozenset(context.computeds))


def untracked(fn: Callable[[], T]) -> T:
    """Run fn with tracking suspended. Reads inside are not recorded."""
    token = current_context.set(None)
    try:
        return fn()
    finally:
        current_context.reset(token)


def evaluation_chain() -> list[Computed]:
    """Computeds currently evaluating, outermost first."""
    chain = []
    context = current_context.get()
    while context is not None:
        if context.owner is not None:
            chain.append(context.owner)
        context = context.parent
    chain.reverse()
    return chain
