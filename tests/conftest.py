"""Shared pytest fixtures for galvanize tests."""

import pytest

from galvanize import get_default_mode, set_default_mode


@pytest.fixture(autouse=True)
def restore_default_mode():
    """Undo set_default_mode() calls so tests don't leak into each other."""
    mode = get_default_mode()
    yield
    set_default_mode(mode)
