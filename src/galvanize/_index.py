"""Dependency index: which derivers read a given key.

Built once when a StateGraph is constructed and never changed afterwards.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from galvanize.deriver import Deriver, StateKey


def build_index(derivers: Mapping[StateKey, Deriver]) -> Mapping[StateKey, tuple[StateKey, ...]]:
    """Invert every deriver's params: key -> derivers depending on it.

    Entries follow registration order. The result is read-only.
    """
    deps: dict[StateKey, list[StateKey]] = {}
    for name, deriver in derivers.items():
        for param in deriver.params:
            deps.setdefault(param, []).append(name)
    return MappingProxyType({key: tuple(names) for key, names in deps.items()})
