"""Observable views — nested data that reports reads and writes by path.

wrap() puts a live view over a dict or list. Reading through the view
records the accessed path in the active tracking context; writing a value
that actually differs notifies the path's registry subscribers inline and
then schedules the path on the batch queue.

Nested containers are wrapped lazily on first read and the child view is
cached per key. The cache entry is dropped when the key is overwritten,
and ignored if the backing object under the key changed identity.

Reference cycles are not wrapped: wrap() scans the tree once and logs a
warning for each edge that points back at one of its ancestors. Reads
through such an edge return the raw object, which is not reactive.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping, MutableSequence
from typing import Callable, Iterator

from bindx import runtime
from bindx._path import ROOT, Segment, is_composite, join, lookup, resolve_key, split
from bindx._tracking import track
from bindx.batch import BatchQueue
from bindx.errors import PathError
from bindx.registry import SubscriptionRegistry

logger = logging.getLogger("bindx.observable")

_MISSING = object()

ChangeCallback = Callable[[str, object], None]


class _Scope:
    """State shared by every view created from one wrap() call."""

    __slots__ = ("registry", "batch", "deep", "on_change", "cycles")

    def __init__(
        self,
        registry: SubscriptionRegistry,
        batch: BatchQueue,
        deep: bool,
        on_change: ChangeCallback | None,
    ) -> None:
        self.registry = registry
        self.batch = batch
        self.deep = deep
        self.on_change = on_change
        self.cycles: set[tuple[int, Segment]] = set()

    def warn_cycle(self, parent: object, key: Segment, path: str) -> None:
        edge = (id(parent), key)
        if edge in self.cycles:
            return
        self.cycles.add(edge)
        logger.warning("Circular reference at %r, leaving it unwrapped", path)


class ObservableView:
    """Base view: path-addressed reads and writes over one container."""

    __slots__ = ("_raw", "_path", "_scope", "_children", "_ancestors")

    def __init__(self, raw, path: str, scope: _Scope, ancestors: frozenset[int]) -> None:
        self._raw = raw
        self._path = path
        self._scope = scope
        self._children: dict[Segment, ObservableView] = {}
        self._ancestors = ancestors

    @property
    def raw(self):
        """The backing container. Mutating it directly bypasses notification."""
        return self._raw

    @property
    def path(self) -> str:
        return self._path

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._scope.registry

    # --- Path API ---

    def get(self, path: str | int, default=None):
        """Read a dot-separated path. Never raises for a malformed path."""
        current = self
        for segment in split(str(path)):
            current = _step(current, segment)
            if current is _MISSING:
                return default
        return current

    def set(self, path: str | int, value) -> None:
        """Write a dot-separated path, notifying if the value changed."""
        target, last = self._parent_of(str(path))
        if isinstance(target, ObservableView):
            target[last] = value
        else:
            target[resolve_key(target, last)] = unwrap(value)

    def delete(self, path: str | int) -> None:
        target, last = self._parent_of(str(path))
        if isinstance(target, ObservableView):
            del target[last]
        else:
            key = resolve_key(target, last)
            if lookup(target, key, _MISSING) is not _MISSING:
                del target[key]

    def _parent_of(self, path: str):
        segments = split(path)
        if not segments:
            raise PathError(path)
        *parents, last = segments
        target = self
        for segment in parents:
            target = _step(target, segment)
            if target is _MISSING or not (isinstance(target, ObservableView) or is_composite(target)):
                raise PathError(path)
        return target, last

    # --- Reads ---

    def _key(self, key):
        return key

    def _track_self(self) -> None:
        track(self._scope.registry, self._path)

    def _read(self, key):
        """Permissive single-level read used by the path API."""
        key = self._key(key)
        path = join(self._path, key)
        track(self._scope.registry, path)
        value = lookup(self._raw, key, _MISSING)
        if value is _MISSING:
            return _MISSING
        return self._child(key, path, value)

    def __getitem__(self, key):
        key = self._key(key)
        path = join(self._path, key)
        track(self._scope.registry, path)
        return self._child(key, path, self._raw[key])

    def _child(self, key: Segment, path: str, value):
        scope = self._scope
        if not scope.deep or not is_composite(value):
            return value
        cached = self._children.get(key)
        if cached is not None and cached._raw is value:
            return cached
        if id(value) in self._ancestors:
            scope.warn_cycle(self._raw, key, path)
            return value
        child = _make_view(value, path, scope, self._ancestors | {id(value)})
        self._children[key] = child
        return child

    def __len__(self) -> int:
        self._track_self()
        return len(self._raw)

    def __bool__(self) -> bool:
        self._track_self()
        return bool(self._raw)

    def __contains__(self, item) -> bool:
        self._track_self()
        return unwrap(item) in self._raw

    def __eq__(self, other) -> bool:
        self._track_self()
        return self._raw == unwrap(other)

    __hash__ = None

    # --- Writes ---

    def __setitem__(self, key, value) -> None:
        key = self._key(key)
        value = unwrap(value)
        old = lookup(self._raw, key, _MISSING)
        if old is value or (type(old) is type(value) and not is_composite(value) and old == value):
            return
        self._raw[key] = value
        self._children.pop(key, None)
        self._changed(join(self._path, key), value)

    def _changed(self, path: str, value) -> None:
        """Fan a real change out: on_change, registry (sync), batch (deferred)."""
        scope = self._scope
        if scope.on_change is not None:
            try:
                scope.on_change(path, value)
            except Exception:
                logger.exception("on_change callback failed for %r", path)
        scope.registry.notify(path)
        scope.batch.schedule(path, value)

    def _structural(self) -> None:
        """The container's shape changed: its own path is the one notified."""
        self._children.clear()
        self._changed(self._path, self._raw)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._path!r}, {self._raw!r})"


class ObservableDict(ObservableView):
    """View over a mapping. Keys are also readable and writable as attributes.

    Names the view itself defines (get, set, path, raw, keys, ...) keep
    their view meaning; assigning or deleting them as attributes raises
    AttributeError. Use item syntax for such keys: view["path"] = x.
    """

    __slots__ = ()

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        elif hasattr(type(self), name):
            raise AttributeError(f"{name!r} is a view attribute; use view[{name!r}] = ...")
        else:
            self[name] = value

    def __delattr__(self, name: str) -> None:
        if name.startswith("_"):
            object.__delattr__(self, name)
        elif hasattr(type(self), name):
            raise AttributeError(f"{name!r} is a view attribute; use del view[{name!r}]")
        else:
            del self[name]

    def __delitem__(self, key) -> None:
        if key not in self._raw:
            return
        del self._raw[key]
        self._children.pop(key, None)
        self._changed(join(self._path, key), None)

    def __iter__(self) -> Iterator:
        self._track_self()
        return iter(list(self._raw))

    def keys(self):
        self._track_self()
        return self._raw.keys()

    def values(self) -> list:
        self._track_self()
        return [self._child(k, join(self._path, k), v) for k, v in list(self._raw.items())]

    def items(self) -> list[tuple]:
        self._track_self()
        return [(k, self._child(k, join(self._path, k), v)) for k, v in list(self._raw.items())]

    def update(self, other=None, **kwargs) -> None:
        changes = dict(unwrap(other)) if other is not None else {}
        changes.update(kwargs)
        for key, value in changes.items():
            self[key] = value

    def setdefault(self, key, default=None):
        if key not in self._raw:
            self[key] = default
        return self[key]

    def pop(self, key, *default):
        if key not in self._raw:
            if default:
                return default[0]
            raise KeyError(key)
        value = self._raw[key]
        del self[key]
        return value

    def clear(self) -> None:
        for key in list(self._raw):
            del self[key]


class ObservableList(ObservableView):
    """View over a sequence. Shape-changing methods notify the list's own path."""

    __slots__ = ()

    def _key(self, key):
        key = resolve_key(self._raw, key)
        if isinstance(key, int) and key < 0:
            key += len(self._raw)
        return key

    def __getitem__(self, key):
        if isinstance(key, slice):
            self._track_self()
            return self._raw[key]
        return super().__getitem__(key)

    def __delitem__(self, key) -> None:
        del self._raw[self._key(key) if not isinstance(key, slice) else key]
        self._structural()

    def __iter__(self) -> Iterator:
        self._track_self()
        items = [self._child(i, join(self._path, i), v) for i, v in enumerate(self._raw)]
        return iter(items)

    def append(self, item) -> None:
        self._raw.append(unwrap(item))
        self._structural()

    def extend(self, items) -> None:
        self._raw.extend(unwrap(item) for item in items)
        self._structural()

    def insert(self, index: int, item) -> None:
        self._raw.insert(index, unwrap(item))
        self._structural()

    def pop(self, index: int = -1):
        value = self._raw.pop(index)
        self._structural()
        return value

    def remove(self, item) -> None:
        self._raw.remove(unwrap(item))
        self._structural()

    def clear(self) -> None:
        if not self._raw:
            return
        self._raw.clear()
        self._structural()


def _make_view(raw, path: str, scope: _Scope, ancestors: frozenset[int]) -> ObservableView:
    cls = ObservableDict if isinstance(raw, MutableMapping) else ObservableList
    return cls(raw, path, scope, ancestors)


def _step(current, segment: str):
    if isinstance(current, ObservableView):
        return current._read(segment)
    return lookup(current, segment, _MISSING)


def _entries(value) -> list[tuple]:
    if isinstance(value, MutableMapping):
        return list(value.items())
    return list(enumerate(value))


def _scan_cycles(root, scope: _Scope) -> None:
    """Depth-first walk; an edge back to a node on the stack is a cycle."""
    on_stack = {id(root)}
    done: set[int] = set()
    stack = [(root, ROOT, iter(_entries(root)))]
    while stack:
        parent, path, entries = stack[-1]
        for key, value in entries:
            if not is_composite(value):
                continue
            if id(value) in on_stack:
                scope.warn_cycle(parent, key, join(path, key))
            elif id(value) not in done:
                on_stack.add(id(value))
                stack.append((value, join(path, key), iter(_entries(value))))
                break
        else:
            stack.pop()
            on_stack.discard(id(parent))
            done.add(id(parent))


def is_reactive(value) -> bool:
    return isinstance(value, ObservableView)


def unwrap(value):
    """The raw object behind a view; anything else is returned as is."""
    return value._raw if isinstance(value, ObservableView) else value


def wrap(
    root,
    *,
    registry: SubscriptionRegistry | None = None,
    batch: BatchQueue | None = None,
    deep: bool = True,
    on_change: ChangeCallback | None = None,
):
    """Wrap a dict or list in an observable view.

    Views and non-container values are returned unchanged, so wrapping
    is idempotent. Without explicit instances, the default registry and
    batch queue from bindx.runtime are used.

    Usage:
        state = wrap({"user": {"name": "Ann"}, "items": [1, 2]})
        state.user.name           # "Ann", path "user.name" tracked
        state.set("user.name", "Bea")
        state["items"].append(3)  # notifies "items"
    """
    if isinstance(root, ObservableView) or not is_composite(root):
        return root
    scope = _Scope(
        registry if registry is not None else runtime.get_registry(),
        batch if batch is not None else runtime.get_batch_queue(),
        deep,
        on_change,
    )
    if deep:
        _scan_cycles(root, scope)
    return _make_view(root, ROOT, scope, frozenset({id(root)}))
