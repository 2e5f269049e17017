"""Deriver records and dependency extraction.

A deriver is a function computing one key of a StateGraph from other keys.
Its dependencies (params) are either declared explicitly or detected by
probing: the function is called once with a reporter standing in for the
state map, and every top-level key it reads is recorded.

Probing only sees reads that happen unconditionally during that one call.
`state["a"] if state["flag"] else state["b"]` records `flag` and `b` (the
probe's reads are falsy). Declare params explicitly when that matters.
"""

from __future__ import annotations

import inspect
import logging
import math
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from galvanize._errors import DependencyExtractionError

logger = logging.getLogger("galvanize.deriver")

StateKey = Hashable


class _Undefined:
    """Placeholder returned by every read while a deriver is being probed.

    Arithmetic absorbs into UNDEFINED, comparisons are false and the value
    is falsy. Reading *into* it raises TypeError: only top-level reads are
    supported while probing.
    """

    __slots__ = ()
    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __str__(self) -> str:
        return "undefined"

    def __format__(self, spec: str) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __float__(self) -> float:
        return math.nan

    def __eq__(self, other: object) -> bool:
        return other is self

    def __ne__(self, other: object) -> bool:
        return other is not self

    def __hash__(self) -> int:
        return object.__hash__(self)

    def _absorb(self, *args: Any) -> _Undefined:
        return self

    __add__ = __radd__ = __sub__ = __rsub__ = _absorb
    __mul__ = __rmul__ = __truediv__ = __rtruediv__ = _absorb
    __floordiv__ = __rfloordiv__ = __mod__ = __rmod__ = _absorb
    __pow__ = __rpow__ = __matmul__ = __rmatmul__ = _absorb
    __and__ = __rand__ = __or__ = __ror__ = __xor__ = __rxor__ = _absorb
    __lshift__ = __rlshift__ = __rshift__ = __rrshift__ = _absorb
    __neg__ = __pos__ = __abs__ = __invert__ = __round__ = _absorb

    def _compare(self, other: object) -> bool:
        return False

    __lt__ = __le__ = __gt__ = __ge__ = _compare

    def _nested(self, *args: Any) -> Any:
        raise TypeError(
            "cannot read into an undefined value; "
            "only top-level state reads can be detected"
        )

    __getitem__ = __iter__ = __len__ = __contains__ = __call__ = _nested

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return self._nested()


UNDEFINED = _Undefined()


class _Reporter:
    """Stand-in state map that records the keys a deriver reads."""

    __slots__ = ("fetched",)

    def __init__(self) -> None:
        self.fetched: list[StateKey] = []

    def _report(self, key: StateKey) -> _Undefined:
        if key not in self.fetched:
            self.fetched.append(key)
        return UNDEFINED

    def __getitem__(self, key: StateKey) -> _Undefined:
        return self._report(key)

    def __getattr__(self, name: str) -> _Undefined:
        # Same rule as StateMap: private names are never state keys.
        if name.startswith("_"):
            raise AttributeError(name)
        return self._report(name)

    def get(self, key: StateKey, default: Any = None) -> _Undefined:
        self._report(key)
        return UNDEFINED

    def __contains__(self, key: StateKey) -> bool:
        self._report(key)
        return False

    def __iter__(self):
        raise TypeError("cannot iterate the state while detecting dependencies")


def takes_graph(fn: Callable) -> bool:
    """Does fn accept a second positional argument for the graph?"""
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return False
    positional = 0
    for param in sig.parameters.values():
        if param.kind is param.VAR_POSITIONAL:
            return True
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= 2


def invoke(fn: Callable, state: Any, graph: Any, with_graph: bool | None = None) -> Any:
    """Call a deriver function as fn(state, graph) or fn(state).

    with_graph skips the signature check when the caller already knows.
    """
    if with_graph is None:
        with_graph = takes_graph(fn)
    if with_graph:
        return fn(state, graph)
    return fn(state)


@dataclass(frozen=True)
class Deriver:
    """A registered derivation: the keys it reads and how to compute it.

    Args:
        params: Keys whose change triggers recomputation, in order.
        func: ``func(state)`` or ``func(state, graph)``.
        order: Tie-break string used when this key is part of a cycle.
        is_request: func returns an awaitable (or None) instead of a value.
    """

    params: tuple[StateKey, ...]
    func: Callable
    order: str | None = None
    is_request: bool = False
    takes_graph: bool = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "takes_graph", takes_graph(self.func))

    def __call__(self, state: Any, graph: Any) -> Any:
        return invoke(self.func, state, graph, self.takes_graph)


def _step_probe_coroutine(fn: Callable, coro: Any) -> None:
    # Run up to the first suspension so reads before the first await count.
    try:
        coro.send(None)
    except StopIteration:
        pass
    except Exception:
        logger.debug("Probe of %r raised inside its coroutine", fn, exc_info=True)
    finally:
        coro.close()


def extract_deriver(fn: Callable) -> Deriver:
    """Detect fn's dependencies by calling it once with a reporter.

    Raises DependencyExtractionError if the probe call raises.
    """
    reporter = _Reporter()
    try:
        result = invoke(fn, reporter, None)
    except Exception as exc:
        raise DependencyExtractionError(
            f"could not automatically extract dependencies from {fn!r}"
        ) from exc

    if inspect.iscoroutine(result):
        _step_probe_coroutine(fn, result)

    return Deriver(params=tuple(reporter.fetched), func=fn)


def as_deriver(declaration: Any, *, is_request: bool = False) -> Deriver:
    """Normalize a deriver declaration.

    Accepts a Deriver, a mapping with ``params``/``func`` (and optionally
    ``order``), or a bare callable whose params are detected by probing.
    """
    if isinstance(declaration, Deriver):
        deriver = declaration
    elif isinstance(declaration, Mapping):
        try:
            params, func = declaration["params"], declaration["func"]
        except KeyError as exc:
            raise TypeError(f"explicit deriver declaration is missing {exc}") from None
        deriver = Deriver(
            params=tuple(params),
            func=func,
            order=declaration.get("order"),
            is_request=bool(declaration.get("is_request", False)),
        )
    elif callable(declaration):
        deriver = extract_deriver(declaration)
    else:
        raise TypeError(f"not a deriver declaration: {declaration!r}")

    if is_request and not deriver.is_request:
        deriver = replace(deriver, is_request=True)
    return deriver


def depends_on(*params: StateKey, order: str | None = None) -> Callable[[Callable], Deriver]:
    """Decorator: declare a deriver's params explicitly, skipping the probe.

    Usage:
        @depends_on("price", "quantity")
        def total(state):
            return state["price"] * state["quantity"]

        graph = StateGraph(derivers={"total": total})
    """

    def decorate(fn: Callable) -> Deriver:
        return Deriver(params=params, func=fn, order=order)

    return decorate
