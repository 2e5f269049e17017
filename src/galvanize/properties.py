"""Properties: gettable, settable, watchable views onto one value.

A property does not own its value. It forwards reads and writes to whatever
does: a StateGraph key (GraphProperty), an attribute or item of an external
object (ObjectProperty), or another property through a transform
(WrappedProperty) or into one member of a composite value
(NavigatedProperty).

Any object implementing the Property protocol can be passed to a
StateGraph's ``properties`` to mirror external state into the graph.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from galvanize._listeners import Disposer, subscribe
from galvanize.deriver import StateKey

if TYPE_CHECKING:
    from galvanize.graph import StateGraph

PropertyWatcher = Callable[["Property"], None]
Transform = Callable[[Any], Any]


@runtime_checkable
class Property(Protocol):
    """A state value that can be read, written and watched."""

    propname: StateKey

    @property
    def value(self) -> Any: ...

    @value.setter
    def value(self, new_value: Any) -> None: ...

    def watch(self, watcher: PropertyWatcher) -> Disposer: ...

    def wrapped(self, getter: Transform | None = None, setter: Transform | None = None) -> Property: ...

    def navigate(self, key: StateKey) -> Property: ...


class _Composable:
    """wrapped() and navigate() for every property variant."""

    __slots__ = ()

    _onset: PropertyWatcher | None

    def _fire_onset(self) -> None:
        if self._onset is not None:
            self._onset(self)

    def wrapped(self, getter: Transform | None = None, setter: Transform | None = None) -> WrappedProperty:
        return WrappedProperty(self, getter, setter, self._onset)

    def navigate(self, key: StateKey) -> NavigatedProperty:
        return NavigatedProperty(self, key, self._onset)


class GraphProperty(_Composable):
    """A key of a StateGraph. Writes go through graph.push()."""

    __slots__ = ("graph", "propname", "_onset")

    def __init__(self, graph: StateGraph, propname: StateKey, onset: PropertyWatcher | None = None) -> None:
        self.graph = graph
        self.propname = propname
        self._onset = onset

    @property
    def value(self) -> Any:
        return self.graph.state.get(self.propname)

    @value.setter
    def value(self, new_value: Any) -> None:
        self.graph.push({self.propname: new_value})
        self._fire_onset()

    def watch(self, watcher: PropertyWatcher) -> Disposer:
        return self.graph.watch(self.propname, lambda graph, key: watcher(self))

    def __repr__(self) -> str:
        return f"GraphProperty({self.propname!r})"


class ObjectProperty(_Composable):
    """An attribute (or item, for mappings) of an external object.

    The value lives on the target object, not on this property. Changes
    made to the target without going through ``value`` are invisible until
    ``on_changed()`` is called.

    Watchers are kept in a list that can be passed in, so that transient
    ObjectProperty instances for the same slot share them. Watchers are
    required for the property to be mirrored into a StateGraph.

    Usage:
        settings = {"volume": 3}
        volume = ObjectProperty(settings, "volume")
        graph = StateGraph(
            properties={"volume": volume},
            derivers={"loud": lambda s: s["volume"] > 5},
        )
        settings["volume"] = 9
        volume.on_changed()
        graph.state["loud"]  # True
    """

    __slots__ = ("target", "propname", "_watchers", "_onset")

    def __init__(
        self,
        target: Any,
        propname: StateKey,
        watchers: list[PropertyWatcher] | None = None,
        onset: PropertyWatcher | None = None,
    ) -> None:
        self.target = target
        self.propname = propname
        self._watchers = watchers if watchers is not None else []
        self._onset = onset

    @property
    def value(self) -> Any:
        if isinstance(self.target, Mapping):
            return self.target[self.propname]
        return getattr(self.target, self.propname)

    @value.setter
    def value(self, new_value: Any) -> None:
        if isinstance(self.target, Mapping):
            self.target[self.propname] = new_value
        else:
            setattr(self.target, self.propname, new_value)
        self.on_changed()

    def watch(self, watcher: PropertyWatcher) -> Disposer:
        return subscribe(self._watchers, watcher)

    def on_changed(self) -> None:
        """Notify onset and all watchers, e.g. after mutating the target directly."""
        self._fire_onset()
        for watcher in list(self._watchers):
            watcher(self)

    def __repr__(self) -> str:
        return f"ObjectProperty({type(self.target).__name__}, {self.propname!r})"


class WrappedProperty(_Composable):
    """Another property seen through a pair of map functions.

    Useful for converting between application data and view data:

        celsius = graph.prop("temperature")
        fahrenheit = celsius.wrapped(
            getter=lambda c: c * 9 / 5 + 32,
            setter=lambda f: (f - 32) * 5 / 9,
        )
    """

    __slots__ = ("base", "_getter", "_setter", "_onset")

    def __init__(
        self,
        base: Property,
        getter: Transform | None = None,
        setter: Transform | None = None,
        onset: PropertyWatcher | None = None,
    ) -> None:
        self.base = base
        self._getter = getter
        self._setter = setter
        self._onset = onset

    @property
    def propname(self) -> StateKey:
        return self.base.propname

    @property
    def value(self) -> Any:
        value = self.base.value
        return self._getter(value) if self._getter else value

    @value.setter
    def value(self, new_value: Any) -> None:
        self.base.value = self._setter(new_value) if self._setter else new_value
        self._fire_onset()

    def watch(self, watcher: PropertyWatcher) -> Disposer:
        return self.base.watch(lambda _: watcher(self))

    def __repr__(self) -> str:
        return f"WrappedProperty({self.base!r})"


def _is_namedtuple(container: Any) -> bool:
    return isinstance(container, tuple) and hasattr(container, "_fields")


def _read_member(container: Any, key: StateKey) -> Any:
    if isinstance(container, Mapping):
        return container[key]
    if isinstance(key, str):
        # attributes and namedtuple fields
        return getattr(container, key)
    return container[key]


def _replace_member(container: Any, key: StateKey, value: Any) -> Any:
    """Copy of container with one member replaced; container is untouched."""
    if isinstance(container, Mapping):
        return {**container, key: value}
    if _is_namedtuple(container):
        if isinstance(key, str):
            return container._replace(**{key: value})
        items = list(container)
        items[key] = value
        return type(container)(*items)
    if isinstance(container, (list, tuple)):
        items = list(container)
        items[key] = value
        return tuple(items) if isinstance(container, tuple) else items
    replaced = copy.copy(container)
    setattr(replaced, key, value)
    return replaced


class NavigatedProperty(_Composable):
    """One member of another property's composite value.

    Reads index into the base value. Writes replace the base value with a
    copy in which only this member differs.
    """

    __slots__ = ("base", "key", "_onset")

    def __init__(self, base: Property, key: StateKey, onset: PropertyWatcher | None = None) -> None:
        self.base = base
        self.key = key
        self._onset = onset

    @property
    def propname(self) -> StateKey:
        return self.key

    @property
    def value(self) -> Any:
        return _read_member(self.base.value, self.key)

    @value.setter
    def value(self, new_value: Any) -> None:
        self.base.value = _replace_member(self.base.value, self.key, new_value)
        self._fire_onset()

    def watch(self, watcher: PropertyWatcher) -> Disposer:
        return self.base.watch(lambda _: watcher(self))

    def delete(self) -> None:
        """Remove this member from the base value in place, then write it back."""
        container = self.base.value
        if isinstance(container, (Mapping, Sequence)):
            del container[self.key]
        else:
            delattr(container, self.key)
        self.base.value = container

    def delete_by_filter(self) -> None:
        """Write back the base sequence without the elements equal to this value."""
        value = self.value
        self.base.value = [item for item in self.base.value if item != value]

    def __repr__(self) -> str:
        return f"NavigatedProperty({self.base!r}, {self.key!r})"
