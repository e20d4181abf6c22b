"""Shared fixtures for ninja-records tests."""

from __future__ import annotations

import pytest
from ninja_records.datastore import DatastoreRegistry, get_registry, set_registry


@pytest.fixture(autouse=True)
def registry():
    """Give every test its own datastore registry so collections never leak between tests."""
    previous = get_registry()
    fresh = DatastoreRegistry()
    set_registry(fresh)
    yield fresh
    set_registry(previous)
