"""Pytest configuration and shared fixtures.

Tests run without PostgreSQL; see tests/fakes.py.
"""

from datetime import UTC, datetime

import pytest

from tests.fakes import FakeStore


@pytest.fixture
def fake_store():
    """Empty fake store."""
    return FakeStore()


@pytest.fixture
def now():
    """Fixed request time: Wednesday 2025-01-08 15:30:00 UTC."""
    return datetime(2025, 1, 8, 15, 30, 0, tzinfo=UTC)
