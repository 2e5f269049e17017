"""State map: the single mapping holding all of a graph's values.

Every key is stored in a tagged slot. An Owned slot holds the value itself.
A Mirrored slot delegates reads and writes to an external Property, so the
graph can expose state it does not own.
"""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping
from typing import TYPE_CHECKING, Any

from galvanize.deriver import StateKey

if TYPE_CHECKING:
    from galvanize.properties import Property


class Owned:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    def get(self) -> Any:
        return self.value

    def set(self, value: Any) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"Owned({self.value!r})"


class Mirrored:
    __slots__ = ("prop",)

    def __init__(self, prop: Property) -> None:
        self.prop = prop

    def get(self) -> Any:
        return self.prop.value

    def set(self, value: Any) -> None:
        self.prop.value = value

    def __repr__(self) -> str:
        return f"Mirrored({self.prop!r})"


class StateMap(MutableMapping):
    """Mapping of state keys to values, with attribute-style reads.

    ``state["total"]`` and ``state.total`` are equivalent for string keys
    that are valid identifiers and don't clash with mapping methods.
    """

    __slots__ = ("_slots",)

    def __init__(self) -> None:
        self._slots: dict[StateKey, Owned | Mirrored] = {}

    def mirror(self, key: StateKey, prop: Property) -> None:
        """Bind key to an external property."""
        self._slots[key] = Mirrored(prop)

    def is_mirrored(self, key: StateKey) -> bool:
        return isinstance(self._slots.get(key), Mirrored)

    def __getitem__(self, key: StateKey) -> Any:
        return self._slots[key].get()

    def __setitem__(self, key: StateKey, value: Any) -> None:
        slot = self._slots.get(key)
        if slot is None:
            self._slots[key] = Owned(value)
        else:
            slot.set(value)

    def __delitem__(self, key: StateKey) -> None:
        if isinstance(self._slots.get(key), Mirrored):
            raise TypeError(f"cannot delete mirrored key {key!r}")
        del self._slots[key]

    def __iter__(self) -> Iterator[StateKey]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __repr__(self) -> str:
        return f"StateMap({dict(self)!r})"
