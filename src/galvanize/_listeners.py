"""Listener lists with idempotent unsubscribe."""

from __future__ import annotations

from typing import Callable

Disposer = Callable[[], None]


def subscribe(listeners: list, callback: Callable) -> Disposer:
    """Append callback to listeners. Returns a function that removes it.

    The returned function removes exactly this registration once; further
    calls do nothing, even if the same callback was registered again.
    """
    listeners.append(callback)
    active = True

    def _unsubscribe() -> None:
        nonlocal active
        if not active:
            return
        active = False
        try:
            listeners.remove(callback)
        except ValueError:
            pass  # list was cleared

    return _unsubscribe
