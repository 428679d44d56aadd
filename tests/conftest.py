"""Shared fakes and fixtures for the purge tests."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from userpurge.purge.errors import DeletionError


class InMemoryInactivityStore:
    """Dict-backed stand-in for InactivityStore.

    Calling the instance returns itself, so it can replace the class:
    ``InactivityStore(db)`` then yields this store.
    """

    def __init__(self) -> None:
        self.records: dict[uuid.UUID, datetime | None] = {}

    def __call__(self, db) -> InMemoryInactivityStore:
        return self

    async def upsert(self, user_id: uuid.UUID, changed_at: datetime | None) -> None:
        self.records[user_id] = changed_at

    async def remove(self, user_id: uuid.UUID) -> bool:
        return self.records.pop(user_id, "missing") != "missing"

    async def set_changed_at(self, user_id: uuid.UUID, changed_at: datetime | None) -> bool:
        if user_id not in self.records:
            return False
        self.records[user_id] = changed_at
        return True

    async def expired_user_ids(self, threshold: datetime) -> list[uuid.UUID]:
        return [
            user_id
            for user_id, changed_at in self.records.items()
            if changed_at is not None and changed_at < threshold
        ]


class FakeOptions:
    """Options with fixed values and no database."""

    def __init__(self, inactive_roles: list[str] | None = None, days: int = 183) -> None:
        self.inactive_roles = list(inactive_roles or [])
        self.days = days

    async def inactive_user_roles(self, db) -> list[str]:
        return list(self.inactive_roles)

    async def inactive_time_days(self, db) -> int:
        return self.days


class FakeDeleter:
    """Account deleter that cascades into an InMemoryInactivityStore."""

    def __init__(
        self,
        store: InMemoryInactivityStore,
        fail: set[uuid.UUID] | None = None,
        hang: set[uuid.UUID] | None = None,
    ) -> None:
        self.store = store
        self.fail = fail or set()
        self.hang = hang or set()
        self.calls: list[uuid.UUID] = []
        self.deleted: set[uuid.UUID] = set()

    async def delete_user(self, user_id: uuid.UUID) -> bool:
        self.calls.append(user_id)
        if user_id in self.fail:
            raise DeletionError(user_id, "referenced elsewhere")
        if user_id in self.hang:
            await asyncio.sleep(60)
        if user_id in self.deleted:
            return False
        self.deleted.add(user_id)
        self.store.records.pop(user_id, None)
        return True


@pytest.fixture
def store():
    return InMemoryInactivityStore()


@pytest.fixture
def free_lock():
    """A sweep lock that is always available."""
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=True)
    lock.release = AsyncMock()
    return lock


@pytest.fixture(autouse=True)
def mock_emit():
    """Keep events off the real queue; tests inspect the mocks instead."""
    with (
        patch("userpurge.purge.tracker.emit", new_callable=AsyncMock) as tracker_emit,
        patch("userpurge.purge.sweep.emit", new_callable=AsyncMock) as sweep_emit,
        patch("userpurge.directory.service.emit", new_callable=AsyncMock) as directory_emit,
        patch("userpurge.admin.web.emit", new_callable=AsyncMock) as web_emit,
    ):
        yield {
            "tracker": tracker_emit,
            "sweep": sweep_emit,
            "directory": directory_emit,
            "web": web_emit,
        }


@pytest.fixture
def sweep_session():
    """Patch the sweep's session factory with a mock async session."""
    session = AsyncMock()
    with patch("userpurge.purge.sweep.async_session_factory") as factory:
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        yield session


@pytest.fixture
def make_options():
    """Factory for FakeOptions."""
    return FakeOptions


@pytest.fixture
def make_deleter():
    """Factory for FakeDeleter."""
    return FakeDeleter
