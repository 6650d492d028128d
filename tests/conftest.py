"""Shared fixtures for registry retention tests."""

import pytest

from registry_retention.events import RecordingSink

from .fixtures import FakeRegistry


@pytest.fixture
def registry():
    """Empty fake registry without authentication."""
    return FakeRegistry()


@pytest.fixture
def sink():
    """Sink that records emitted events."""
    return RecordingSink()


@pytest.fixture
def client(registry):
    """Registry client wired to the fake registry."""
    with registry.client() as c:
        yield c
