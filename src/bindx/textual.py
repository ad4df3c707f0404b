"""Textual integration for bindx. Opt-in — requires textual.

Drives the batched tier from a Textual app: the app's message loop is the
"next tick", and batch delivery is guarded so UI updates never land while
the widget tree is being replaced or after the app has stopped.

    bindx.set_tick(bindx.textual.tick(app))

or, for a dedicated queue:

    queue = bindx.textual.batch_queue(app, render_path)
    state = wrap(data, batch=queue)
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from bindx.batch import BatchQueue, LoopTick, UpdateHandler

# Module-owned pause state, keyed by id(app).
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded deliveries during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def tick(app) -> LoopTick:
    """A tick that defers to the app's message loop via call_later."""
    return LoopTick(app.call_later)


def handler(app, update_handler: UpdateHandler) -> UpdateHandler:
    """Guard a batch update handler for use against Textual widgets.

    Skips delivery during pause/not-running, swallows NoMatches from
    widget queries, and marshals cross-thread calls via call_from_thread.
    Other exceptions propagate to the batch queue, which logs them.
    """
    _main = threading.get_ident()

    def _guarded(path, value):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, path, value)
        else:
            _safe(path, value)

    def _safe(path, value):
        try:
            update_handler(path, value)
        except NoMatches:
            pass

    return _guarded


def batch_queue(app, update_handler: UpdateHandler) -> BatchQueue:
    """A BatchQueue ticking on the app's loop with a guarded handler."""
    return BatchQueue(handler(app, update_handler), tick(app))
