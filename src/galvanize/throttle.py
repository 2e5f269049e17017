"""throttle_request(): at most one outstanding call per request deriver."""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable

from galvanize.deriver import invoke

Request = Callable[..., "Awaitable[Any] | None"]


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def throttle_request(request: Request) -> Callable[[Any, Any], Awaitable[Any] | None]:
    """Wrap a request so it isn't called again until its last result settles.

    While a previous call is in flight the wrapper returns None, which the
    graph treats as "no request this time". The in-flight flag clears when
    the awaitable finishes, fails or is cancelled. The outstanding call is
    never cancelled by the throttle.

    Without a running event loop nothing can be in flight: the request's
    awaitable is returned as is and the flag stays clear.

    Usage:
        async def search(state):
            return await api.search(state["query"])

        graph = StateGraph(requests={"results": throttle_request(search)})
    """
    in_progress = False

    async def _release_when_settled(pending: Awaitable[Any]) -> Any:
        nonlocal in_progress
        try:
            return await pending
        finally:
            in_progress = False

    @functools.wraps(request)
    def wrapper(state: Any, graph: Any = None) -> Awaitable[Any] | None:
        nonlocal in_progress
        if in_progress:
            return None

        pending = invoke(request, state, graph)
        if pending is None or not _loop_running():
            return pending

        in_progress = True
        return _release_when_settled(pending)

    return wrapper
