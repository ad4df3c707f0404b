"""Path model — dot-joined addresses into nested data.

A path is an ordered sequence of segments (dict keys or list indices).
The string form is canonical: every component talks in path strings, so
["items", 0] and "items.0" must always render the same way.
"""

from __future__ import annotations

from collections.abc import Iterable, MutableMapping, MutableSequence

Segment = str | int

ROOT = ""

_MISSING = object()


def render(segments: Iterable[Segment]) -> str:
    """Render segments as the canonical dot-joined path."""
    return ".".join(str(s) for s in segments)


def split(path: str) -> list[str]:
    if not path:
        return []
    return path.split(".")


def join(parent: str, key: Segment) -> str:
    return f"{parent}.{key}" if parent else str(key)


def is_composite(value: object) -> bool:
    return isinstance(value, (MutableMapping, MutableSequence))


def resolve_key(container: object, segment: Segment) -> Segment:
    """Coerce a string segment to an index when the container is a sequence."""
    if isinstance(container, MutableSequence) and isinstance(segment, str):
        try:
            return int(segment)
        except ValueError:
            return segment
    return segment


def lookup(container: object, key: Segment, default=_MISSING):
    """Read one level. Missing keys and primitives yield default."""
    key = resolve_key(container, key)
    if isinstance(container, MutableMapping):
        return container.get(key, default)
    if isinstance(container, MutableSequence) and isinstance(key, int):
        try:
            return container[key]
        except IndexError:
            return default
    return default


def get_nested(obj: object, path: str, default=None):
    """Permissive nested read: never raises for a malformed path."""
    current = obj
    for segment in split(path):
        current = lookup(current, segment)
        if current is _MISSING:
            return default
    return current


def set_nested(obj: object, path: str, value: object) -> None:
    """Nested write on plain data. Raises KeyError if a parent is absent."""
    *parents, last = split(path)
    target = obj
    for segment in parents:
        target = lookup(target, segment)
        if target is _MISSING or not is_composite(target):
            raise KeyError(path)
    if not is_composite(target):
        raise KeyError(path)
    target[resolve_key(target, last)] = value
