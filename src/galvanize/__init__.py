"""Galvanize: a reactive state graph of derived and requested values."""

from importlib.metadata import version as _version

__version__ = _version("galvanize")

from galvanize._errors import GalvanizeError, DependencyExtractionError
from galvanize.deriver import UNDEFINED, Deriver, as_deriver, depends_on, extract_deriver
from galvanize.graph import PushMode, StateGraph, get_default_mode, set_default_mode
from galvanize.properties import (
    GraphProperty,
    NavigatedProperty,
    ObjectProperty,
    Property,
    WrappedProperty,
)
from galvanize.state import StateMap
from galvanize.throttle import throttle_request
# textual NOT auto-imported, opt-in only

__all__ = [
    "StateGraph",
    "StateMap",
    "PushMode",
    "set_default_mode",
    "get_default_mode",
    "Deriver",
    "depends_on",
    "as_deriver",
    "extract_deriver",
    "UNDEFINED",
    "throttle_request",
    "Property",
    "GraphProperty",
    "ObjectProperty",
    "WrappedProperty",
    "NavigatedProperty",
    "GalvanizeError",
    "DependencyExtractionError",
]
