"""Exception types raised by bindx."""

from __future__ import annotations


class BindxError(Exception):
    """Base class for bindx errors."""


class CircularDependencyError(BindxError):
    """A computed was re-entered while it was still evaluating.

    The record that raised stays usable: the failing call leaves it
    invalid, and the next non-cyclic call evaluates normally.
    """

    def __init__(self, chain: list[str]) -> None:
        self.chain = list(chain)
        super().__init__("Circular dependency detected: " + " -> ".join(self.chain))


class PathError(BindxError, KeyError):
    """A write addressed a path whose parent is missing or not a container."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(path)

    def __str__(self) -> str:
        return f"cannot write {self.path!r}: parent is missing or not a container"
