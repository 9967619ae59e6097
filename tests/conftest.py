"""Pytest configuration and shared fixtures for MailScanner tests.

Fixtures:
- memory_store: Unbounded in-memory store
- guard: StorageGuard over memory_store with the default budget
- small_guard: StorageGuard with a 100-byte budget over a 100-byte store
- user_storage: UserStorage over guard
- navigations: List that records redirects from the API client
- reset_singletons: Clears cached settings and the shared UserStorage (autouse)
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from mailscanner.config import reset_settings
from mailscanner.storage.guard import StorageGuard
from mailscanner.storage.memory import MemoryStore
from mailscanner.storage.slots import UserStorage, reset_user_storage


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Keep cached settings and the shared UserStorage from leaking between tests."""
    reset_settings()
    reset_user_storage()
    yield
    reset_settings()
    reset_user_storage()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def guard(memory_store: MemoryStore) -> StorageGuard:
    return StorageGuard(memory_store)


@pytest.fixture
def small_guard() -> StorageGuard:
    """Guard with a 100-byte budget, matching a 100-byte hard capacity."""
    return StorageGuard(MemoryStore(capacity=100), max_size=100)


@pytest.fixture
def user_storage(guard: StorageGuard) -> UserStorage:
    return UserStorage(guard)


@pytest.fixture
def navigations() -> list[str]:
    return []
