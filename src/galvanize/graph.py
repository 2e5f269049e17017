"""StateGraph: a state map whose derived keys recompute when their inputs change.

A graph is built once from:
- defaults: initial plain values,
- derivers: functions computing a key from other keys,
- requests: async derivers whose result arrives through a later push,
- properties: external Property objects mirrored into the state map.

``push(batch)`` is the only write path. It writes the batch, then
recomputes every deriver that transitively depends on it, in one of two
modes:

- "accurate" (default): finds everything that must recompute first, then
  recomputes each key only once all of its inputs are final. Keys stuck in
  a dependency cycle are recomputed once each, sorted by their ``order``
  (or their key's string form).
- "fast": breadth-first from the batch, recomputing dependents as they are
  reached, with no de-duplication and no cycle protection.

Requests are scheduled as tasks on the running asyncio loop. When one
finishes, its result is pushed as a new batch. Failures are logged and
write nothing.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections import deque
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Callable, Literal

from galvanize._index import build_index
from galvanize._listeners import Disposer, subscribe
from galvanize.deriver import Deriver, StateKey, as_deriver
from galvanize.properties import GraphProperty, Property
from galvanize.state import StateMap

logger = logging.getLogger("galvanize.graph")

PushMode = Literal["fast", "accurate"]
PUSH_MODES: tuple[PushMode, ...] = ("fast", "accurate")

GraphWatcher = Callable[["StateGraph", StateKey], None]

# ─── Process-wide default mode ───────────────────────────────────────────────
_default_mode: PushMode = "accurate"


def _check_mode(mode: str) -> PushMode:
    if mode not in PUSH_MODES:
        raise ValueError(f"unknown push mode {mode!r}; expected one of {PUSH_MODES}")
    return mode


def set_default_mode(mode: PushMode) -> None:
    """Set the propagation mode used by every push that doesn't choose one.

    A graph's own ``push_default_mode`` takes precedence when set.
    """
    global _default_mode
    _default_mode = _check_mode(mode)


def get_default_mode() -> PushMode:
    return _default_mode


class StateGraph:
    """A reactive graph of named values."""

    def __init__(
        self,
        derivers: Mapping[StateKey, Any] | None = None,
        requests: Mapping[StateKey, Any] | None = None,
        properties: Mapping[StateKey, Property] | None = None,
        defaults: Mapping[StateKey, Any] | None = None,
    ) -> None:
        self.state = StateMap()
        self.push_default_mode: PushMode | None = None

        self._derivers: dict[StateKey, Deriver] = {}
        for name, declaration in (derivers or {}).items():
            if declaration:
                self._derivers[name] = as_deriver(declaration)
        for name, declaration in (requests or {}).items():
            if declaration:
                self._derivers[name] = as_deriver(declaration, is_request=True)

        self._deps = build_index(self._derivers)

        self._watchers: dict[StateKey, list[GraphWatcher]] = {}
        self._global_watchers: list[GraphWatcher] = []
        self._props: dict[StateKey, GraphProperty] = {}
        self._requests: set[asyncio.Future] = set()

        self._extern_disposers: list[Disposer] = []
        for name, prop in (properties or {}).items():
            if prop:
                self._mirror(name, prop)

        if defaults:
            self.push(defaults)

    # --- Introspection ---

    @property
    def derivers(self) -> Mapping[StateKey, Deriver]:
        return MappingProxyType(self._derivers)

    @property
    def dependency_index(self) -> Mapping[StateKey, tuple[StateKey, ...]]:
        return self._deps

    def dependents(self, key: StateKey) -> tuple[StateKey, ...]:
        """Derivers that read key directly."""
        return self._deps.get(key, ())

    @property
    def pending_count(self) -> int:
        """Number of requests currently in flight."""
        return len(self._requests)

    # --- Properties ---

    def prop(self, name: StateKey) -> GraphProperty:
        """A Property bound to one key of this graph. Cached per key."""
        prop = self._props.get(name)
        if prop is None:
            prop = self._props[name] = GraphProperty(self, name)
        return prop

    def _mirror(self, name: StateKey, prop: Property) -> None:
        self.state.mirror(name, prop)
        self._extern_disposers.append(
            prop.watch(lambda _prop, name=name: self._on_external_change(name))
        )

    def _on_external_change(self, name: StateKey) -> None:
        """Announce name, then recompute everything depending on it.

        Request dependents are requested again, not merely re-announced
        with their current value.
        """
        self._dispatch_change(name)
        dependents = self._deps.get(name)
        if not dependents:
            return
        if self._resolve_mode(None) == "fast":
            self._propagate_fast(dependents, {})
        else:
            self._stabilize(self._closure(dependents), {})

    def dispose(self) -> None:
        """Stop mirroring external properties. Their current values stay readable."""
        for dispose in self._extern_disposers:
            dispose()
        self._extern_disposers.clear()

    # --- Watchers ---

    def watch(self, name: StateKey, watcher: GraphWatcher) -> Disposer:
        """Call watcher(graph, name) whenever name is (re)computed."""
        return subscribe(self._watchers.setdefault(name, []), watcher)

    def watch_all(self, watcher: GraphWatcher) -> Disposer:
        """Call watcher(graph, key) whenever any key is (re)computed."""
        return subscribe(self._global_watchers, watcher)

    def _dispatch_change(self, key: StateKey) -> None:
        for watcher in list(self._watchers.get(key, ())):
            watcher(self, key)
        for watcher in list(self._global_watchers):
            watcher(self, key)

    # --- Propagation ---

    def _resolve_mode(self, mode: PushMode | None) -> PushMode:
        return _check_mode(mode or self.push_default_mode or _default_mode)

    def push(self, batch: Mapping[StateKey, Any], mode: PushMode | None = None) -> list[StateKey]:
        """Write batch into the state and recompute everything depending on it.

        Returns the keys that were updated, in order.
        """
        mode = self._resolve_mode(mode)
        if mode == "fast":
            order = self.push_fast(batch)
        else:
            order = self.push_accurate(batch)
        logger.debug("push(%s) of %d keys updated %d keys", mode, len(batch), len(order))
        return order

    def push_fast(self, batch: Mapping[StateKey, Any]) -> list[StateKey]:
        batch = dict(batch)
        self.state.update(batch)
        return self._propagate_fast(batch, batch)

    def push_accurate(self, batch: Mapping[StateKey, Any]) -> list[StateKey]:
        batch = dict(batch)
        to_be_updated = self._closure(batch)
        self.state.update(batch)
        return self._stabilize(to_be_updated, batch)

    def _propagate_fast(self, seeds: Iterable[StateKey], batch: dict) -> list[StateKey]:
        visited: list[StateKey] = []
        queue = deque(seeds)
        while queue:
            key = queue.popleft()
            visited.append(key)
            self.update(key, batch)
            queue.extend(self._deps.get(key, ()))
        return visited

    def _closure(self, seeds: Iterable[StateKey]) -> dict[StateKey, None]:
        """Every key reachable from seeds through the index. Insertion-ordered."""
        pending: dict[StateKey, None] = {}
        queue = deque(seeds)
        while queue:
            key = queue.popleft()
            if key in pending:
                continue
            pending[key] = None
            queue.extend(d for d in self._deps.get(key, ()) if d not in pending)
        return pending

    def _ready(self, key: StateKey, pending: dict[StateKey, None]) -> bool:
        deriver = self._derivers.get(key)
        if deriver is None:
            return True
        return not any(param in pending for param in deriver.params)

    def _tie_break(self, key: StateKey) -> str:
        deriver = self._derivers.get(key)
        if deriver is not None and deriver.order:
            return deriver.order
        return str(key)

    def _stabilize(self, pending: dict[StateKey, None], batch: dict) -> list[StateKey]:
        order: list[StateKey] = []

        while pending:
            progressed = False
            for key in list(pending):
                if self._ready(key, pending):
                    self.update(key, batch)
                    order.append(key)
                    del pending[key]
                    progressed = True
            if not progressed:
                break

        if pending:
            # What's left waits on itself: a cycle. Update each member once.
            remaining = sorted(pending, key=self._tie_break)
            logger.debug("Resolving dependency cycle among %r", remaining)
            for key in remaining:
                self.update(key, batch)
                order.append(key)
            pending.clear()

        return order

    def update(self, key: StateKey, batch: Mapping[StateKey, Any]) -> None:
        """Recompute one key. Keys without a deriver are plain data and left alone.

        A request whose key is in batch is the arrival of its own result:
        it is only announced, not requested again.
        """
        deriver = self._derivers.get(key)
        if deriver is None:
            return

        if not deriver.is_request:
            self.state[key] = deriver(self.state, self)
            self._dispatch_change(key)
        elif key in batch:
            self._dispatch_change(key)
        else:
            self._request(key, deriver)

    # --- Requests ---

    def _request(self, key: StateKey, deriver: Deriver) -> None:
        pending = deriver(self.state, self)
        if pending is None:
            return
        if not inspect.isawaitable(pending):
            raise TypeError(
                f"request {key!r} returned {type(pending).__name__}, expected an awaitable or None"
            )

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, request for %r dropped", key)
            if inspect.iscoroutine(pending):
                pending.close()
            return

        task = asyncio.ensure_future(pending, loop=loop)
        self._requests.add(task)
        task.add_done_callback(functools.partial(self._settle_request, key))

    def _settle_request(self, key: StateKey, task: asyncio.Future) -> None:
        self._requests.discard(task)
        if task.cancelled():
            logger.debug("Request for %r was cancelled", key)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Request for %r failed", key, exc_info=exc)
            return
        try:
            self.push({key: task.result()})
        except Exception:
            # runs as a loop callback
            logger.exception("Pushing the result of request %r failed", key)

    async def settle(self) -> None:
        """Wait until no request is in flight, including any that settling ones start."""
        while self._requests:
            await asyncio.gather(*self._requests, return_exceptions=True)

    def __repr__(self) -> str:
        return f"StateGraph({len(self.state)} keys, {len(self._derivers)} derivers)"
