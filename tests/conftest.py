"""Shared test fixtures.

Settings are read at import time, so the environment is pinned before any
src module is imported: in-memory store, a fixed JWT secret, no allowlist.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["STORE_BACKEND"] = "memory"
os.environ["ALLOWLISTED_USER_IDS"] = ""

import pytest  # noqa: E402

from src.pm_store.dependencies import get_store  # noqa: E402
from src.pm_store.infrastructure.memory import InMemoryStore  # noqa: E402


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(max_attempts=3, max_writes_per_transaction=50)


@pytest.fixture
def app_store() -> InMemoryStore:
    """The process-wide store the routers resolve, reset per test."""
    get_store.cache_clear()
    yield get_store()
    get_store.cache_clear()
