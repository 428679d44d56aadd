"""Tests for AccountDeletionService."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from userpurge.purge.accounts import AccountDeletionService
from userpurge.purge.errors import DeletionError


@pytest.fixture
def mock_db():
    db = AsyncMock()
    with patch("userpurge.purge.accounts.async_session_factory") as factory:
        factory.return_value.__aenter__ = AsyncMock(return_value=db)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        yield db


class TestDeleteUser:
    @pytest.mark.asyncio
    async def test_deletes_and_commits(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=1)

        assert await AccountDeletionService().delete_user(uuid.uuid4()) is True
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_user_is_not_an_error(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=0)

        assert await AccountDeletionService().delete_user(uuid.uuid4()) is False

    @pytest.mark.asyncio
    async def test_database_error_raises_deletion_error(self, mock_db):
        user_id = uuid.uuid4()
        mock_db.execute.side_effect = IntegrityError("DELETE", {}, Exception("fk violation"))

        with pytest.raises(DeletionError) as excinfo:
            await AccountDeletionService().delete_user(user_id)

        assert excinfo.value.user_id == user_id
        assert "fk violation" in excinfo.value.reason

    @pytest.mark.asyncio
    async def test_unreachable_database_raises_deletion_error(self, mock_db):
        user_id = uuid.uuid4()
        mock_db.execute.side_effect = ConnectionRefusedError(111, "Connect call failed")

        with pytest.raises(DeletionError) as excinfo:
            await AccountDeletionService().delete_user(user_id)

        assert "Connect call failed" in excinfo.value.reason
