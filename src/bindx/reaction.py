"""Reactions — side effects re-run synchronously when what they read changes.

Unlike Computed (which is lazy and only evaluates on read), a Reaction
re-runs inline with the write that invalidated it. Dependencies are
re-tracked on every run, including computeds the function calls.

Two flavors:
- autorun(fn): runs fn immediately, re-runs when any path it read changes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes.

Subscriptions are installed after the function returns, so writes a
reaction makes to its own dependencies while running do not re-trigger it.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from bindx._tracking import TrackingContext, current_context, untracked
from bindx.registry import Unsubscribe

T = TypeVar("T")


class Reaction:
    """A reactive side effect that re-runs when its dependencies change."""

    __slots__ = ("_fn", "_unsubscribers", "_dependencies", "_sources", "_disposed")

    def __init__(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._unsubscribers: list[Unsubscribe] = []
        self._dependencies: frozenset[str] = frozenset()
        self._sources: set = set()
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def dependencies(self) -> frozenset[str]:
        return self._dependencies

    def _run(self) -> None:
        if not self._disposed:
            self._evaluate()

    def _evaluate(self) -> None:
        self._track(self._fn)

    def _track(self, fn: Callable[[], T]) -> T:
        """Run fn under a fresh context; subscribe to what it read, even on error."""
        self._detach()
        context = TrackingContext(parent=current_context.get())
        token = current_context.set(context)
        try:
            return fn()
        finally:
            current_context.reset(token)
            if not self._disposed:
                self._attach(context)

    def _attach(self, context: TrackingContext) -> None:
        self._dependencies = context.dependencies
        for registry, path in context.reads:
            self._unsubscribers.append(registry.subscribe(path, self._on_change))
        self._sources = set(context.computeds)
        for source in self._sources:
            source._dependents.add(self)

    def _detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        for source in self._sources:
            source._dependents.discard(self)
        self._sources = set()
        self._dependencies = frozenset()

    def _on_change(self, path: str, *args) -> None:
        self._run()

    def invalidate(self) -> None:
        """Called by a computed this reaction read. Re-runs immediately."""
        self._run()

    def dispose(self) -> None:
        """Stop this reaction. Disconnects from all dependencies."""
        self._disposed = True
        self._detach()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._fn, "__name__", "reaction")
        return f"{type(self).__name__}({name}, {state})"


class _DataReaction(Reaction):
    """Internal: reaction(data_fn, effect_fn) implementation.

    Tracks data_fn's dependencies. When they change, re-runs data_fn.
    If the result differs from last time, calls effect_fn with the new value.
    effect_fn runs untracked.
    """

    __slots__ = ("_effect_fn", "_last_value", "_initialized")

    def __init__(self, data_fn: Callable[[], T], effect_fn: Callable[[T], None]) -> None:
        super().__init__(data_fn)
        self._effect_fn = effect_fn
        self._last_value = None
        self._initialized = False

    def _evaluate(self) -> None:
        new_value = self._track(self._fn)
        if not self._initialized or new_value != self._last_value:
            self._last_value = new_value
            self._initialized = True
            untracked(lambda: self._effect_fn(new_value))


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn immediately, then re-run whenever any path it reads changes.

    Returns the Reaction (call .dispose() to stop).

    Usage:
        state = wrap({"count": 0})
        log = []

        r = autorun(lambda: log.append(state.count))
        # log == [0] — ran immediately

        state.count = 1
        # log == [0, 1] — re-ran inline with the write

        r.dispose()
        state.count = 2
        # log == [0, 1] — stopped
    """
    r = Reaction(fn)
    r._run()
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """Track data_fn's paths; call effect_fn when the result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value* changes,
    not on every write to a path it read.

    Usage:
        state = wrap({"first": "Alice", "last": "Smith"})
        effects = []
        r = reaction(
            lambda: f"{state.first} {state.last}",
            effects.append,
        )
        # effects == [] — data_fn ran to establish deps, effect did not fire

        state.first = "Bob"
        # effects == ["Bob Smith"]
    """
    r = _DataReaction(data_fn, effect_fn)
    if fire_immediately:
        r._run()
    else:
        r._last_value = r._track(data_fn)
        r._initialized = True
    return r
