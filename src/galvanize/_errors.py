"""Galvanize error hierarchy.

All galvanize-specific errors inherit from GalvanizeError for easy catching.
"""


class GalvanizeError(Exception):
    """Base error for all galvanize operations."""


class DependencyExtractionError(GalvanizeError):
    """A deriver's dependencies could not be detected by probing it.

    Raised while a StateGraph is being constructed. Declare the deriver's
    params explicitly to avoid probing.
    """
