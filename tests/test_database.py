"""Tests for the in-memory database."""

import logging

import pytest

from chorus.database import GroupData, MemoryDatabase, UserData
from chorus.protocols import Database


class TestMemoryDatabase:
    """Tests for MemoryDatabase."""

    def test_satisfies_protocol(self):
        assert isinstance(MemoryDatabase(), Database)

    @pytest.mark.asyncio
    async def test_creates_unknown_users(self):
        database = MemoryDatabase(default_authority=2)
        user = await database.fetch_user(5, ["id", "authority"])
        assert user == UserData(id=5, authority=2)
        assert 5 in database.users

    @pytest.mark.asyncio
    async def test_unknown_users_without_default(self):
        database = MemoryDatabase(default_authority=None)
        assert await database.fetch_user(5, ["id"]) is None
        assert database.users == {}

    @pytest.mark.asyncio
    async def test_returns_copies(self):
        """Mutating a fetched record does not touch storage."""
        database = MemoryDatabase()
        database.add_user(1, authority=3)
        user = await database.fetch_user(1, ["authority"])
        user.authority = 1
        user.usage["x"] = 9
        assert database.users[1].authority == 3
        assert database.users[1].usage == {}

    @pytest.mark.asyncio
    async def test_records_field_requests(self):
        database = MemoryDatabase()
        await database.fetch_user(1, ["id", "usage"])
        await database.fetch_group(100, ["id", "assignee"])
        assert database.user_field_requests == [frozenset({"id", "usage"})]
        assert database.group_field_requests == [frozenset({"id", "assignee"})]

    @pytest.mark.asyncio
    async def test_warns_on_unknown_fields(self, caplog):
        database = MemoryDatabase()
        with caplog.at_level(logging.WARNING, logger="chorus.database"):
            await database.fetch_user(1, ["id", "shoe_size"])
        assert "shoe_size" in caplog.text

    @pytest.mark.asyncio
    async def test_fetch_group(self):
        database = MemoryDatabase()
        database.add_group(100, assignee=7)
        assert await database.fetch_group(100, ["assignee"]) == GroupData(id=100, assignee=7)
        assert await database.fetch_group(200, ["id"]) == GroupData(id=200)
