# tests/conftest.py

import pytest
from django.core.cache import caches

from apps.offline.local_store import LocalStore


@pytest.fixture(autouse=True)
def clear_caches():
    """Lockout counters and offline responses must not leak between tests"""
    yield
    for alias in ('default', 'offline'):
        caches[alias].clear()


@pytest.fixture
def store():
    local_store = LocalStore(':memory:')
    yield local_store
    local_store.close()
