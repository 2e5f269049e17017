"""Textual integration for galvanize. Opt-in, requires textual.

Graph watchers that drive Textual widgets must not fire while the app is
not running or while widgets are being replaced, and must run on the app's
thread. The guards, NoMatches handling and thread marshalling live here, not
at each call site.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from galvanize._listeners import Disposer

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded watchers during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def _guard(app, fn):
    main = threading.get_ident()

    def _safe(graph, key):
        try:
            fn(graph, key)
        except NoMatches:
            pass

    def _guarded(graph, key):
        if not is_safe(app):
            return
        if threading.get_ident() != main:
            app.call_from_thread(_safe, graph, key)
        else:
            _safe(graph, key)

    return _guarded


def watch(app, graph, name, fn) -> Disposer:
    """graph.watch() that safely bridges to Textual widgets.

    fn(graph, name) is skipped while the app is paused or not running,
    NoMatches from widget queries is swallowed, and calls from another
    thread go through app.call_from_thread.
    """
    return graph.watch(name, _guard(app, fn))


def watch_all(app, graph, fn) -> Disposer:
    """graph.watch_all() with the same guards as watch()."""
    return graph.watch_all(_guard(app, fn))
