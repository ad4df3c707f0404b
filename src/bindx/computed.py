"""Computed values — cached derivations over observable paths.

A Computed wraps a function. Evaluating it records every path the
function reads (and every other Computed it calls) and caches the result.
A write to any recorded path marks it invalid, along with every computed
that read it, transitively. Nothing recomputes until the next read.

Dependencies are re-discovered on every evaluation, so conditional reads
work: subscriptions from the previous run are dropped before the new run.

A computed that is re-entered while it is still evaluating raises
CircularDependencyError. The evaluating flag is the cycle signal; no graph
walk is needed.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from bindx._tracking import evaluation_chain, run_tracked, track_computed
from bindx.errors import CircularDependencyError
from bindx.registry import Unsubscribe

T = TypeVar("T")

_UNSET = object()


class Computed(Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result.

    Call it (or .get()) to read the value.
    """

    __slots__ = (
        "_fn",
        "name",
        "_value",
        "_valid",
        "_evaluating",
        "_dependencies",
        "_unsubscribers",
        "_sources",
        "_dependents",
    )

    def __init__(
        self,
        fn: Callable[[], T],
        *,
        name: str | None = None,
    ) -> None:
        self._fn = fn
        self.name = name or getattr(fn, "__name__", repr(fn))
        self._value = _UNSET
        self._valid = False
        self._evaluating = False
        self._dependencies: frozenset[str] = frozenset()
        self._unsubscribers: list[Unsubscribe] = []
        self._sources: set[Computed] = set()
        self._dependents: set[Computed] = set()

    @property
    def valid(self) -> bool:
        return self._valid

    @property
    def evaluating(self) -> bool:
        return self._evaluating

    @property
    def dependencies(self) -> frozenset[str]:
        """Paths read by the most recent successful evaluation."""
        return self._dependencies

    @property
    def dependents(self) -> frozenset[Computed]:
        return frozenset(self._dependents)

    @property
    def sources(self) -> frozenset[Computed]:
        """Computeds read by the most recent successful evaluation."""
        return frozenset(self._sources)

    def get(self) -> T:
        """Read the value, recomputing first if it is invalid."""
        track_computed(self)
        if self._evaluating:
            raise CircularDependencyError(self._cycle())
        if not self._valid:
            self._evaluate()
        return self._value

    __call__ = get

    def _cycle(self) -> list[str]:
        chain = evaluation_chain()
        start = chain.index(self) if self in chain else len(chain)
        return [c.name for c in chain[start:]] + [self.name]

    def _evaluate(self) -> None:
        self._evaluating = True
        self._detach()
        try:
            result, context = run_tracked(self._fn, owner=self)
        finally:
            self._evaluating = False

        self._value = result
        self._valid = True
        self._dependencies = context.dependencies
        for registry, path in context.reads:
            self._unsubscribers.append(registry.subscribe(path, self._on_change))
        self._sources = set(context.computeds)
        for source in self._sources:
            source._dependents.add(self)

    def _detach(self) -> None:
        """Drop the previous evaluation's subscriptions and graph edges."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        for source in self._sources:
            source._dependents.discard(self)
        self._sources = set()
        self._dependencies = frozenset()
        self._valid = False

    def _on_change(self, path: str, *args) -> None:
        self.invalidate()

    def invalidate(self) -> None:
        """Mark invalid, then every dependent. Recomputation stays lazy."""
        if not self._valid:
            # An invalid computed has already invalidated its dependents.
            return
        self._valid = False
        for dependent in list(self._dependents):
            dependent.invalidate()

    def dispose(self) -> None:
        """Disconnect from all dependencies. A later read re-evaluates from scratch."""
        self.invalidate()
        self._detach()
        self._dependents.clear()
        self._value = _UNSET

    def __repr__(self) -> str:
        if self._evaluating:
            state = "evaluating"
        elif self._valid:
            state = f"cached={self._value!r}"
        elif self._value is _UNSET:
            state = "uncomputed"
        else:
            state = "invalid"
        return f"Computed({self.name}, {state})"


def computed(
    fn: Callable[[], T] | None = None,
    *,
    name: str | None = None,
):
    """Decorator/factory to create a Computed from a function.

    Usage:
        state = wrap({"a": 1, "b": 2})

        @computed
        def total():
            return state.a + state.b

        total()        # 3
        state.a = 10
        total()        # 12
    """
    if fn is None:
        return lambda f: Computed(f, name=name)
    return Computed(fn, name=name)
