"""Unit tests for the key/value storage backends.

Redis and SQL backends are exercised against mocks -- no real server or
database connections.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError

from src.sheetsync.columns.schemas import EntityType, OwnerScope, SelectedColumn
from src.sheetsync.preferences.kv import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    SqlKeyValueStore,
)
from src.sheetsync.preferences.store import PreferenceStore
from src.sheetsync.preferences.teams import TeamDirectory


class TestKeyValueStoreABC:
    def test_abstract_methods(self):
        assert KeyValueStore.__abstractmethods__ == {"get", "set", "set_if_absent", "delete"}

    def test_cannot_be_instantiated(self):
        with pytest.raises(TypeError, match="abstract"):
            KeyValueStore()  # type: ignore[abstract]


# ── In-Memory ──────────────────────────────────────────────────────────────


class TestInMemoryKeyValueStore:
    async def test_set_get_delete(self):
        kv = InMemoryKeyValueStore()
        assert await kv.get("k") is None

        await kv.set("k", "v1")
        await kv.set("k", "v2")
        assert await kv.get("k") == "v2"

        await kv.delete("k")
        await kv.delete("k")
        assert await kv.get("k") is None

    async def test_set_if_absent(self):
        kv = InMemoryKeyValueStore({"k": "existing"})

        assert await kv.set_if_absent("k", "new") is False
        assert await kv.get("k") == "existing"
        assert await kv.set_if_absent("other", "new") is True
        assert await kv.get("other") == "new"


# ── Redis ──────────────────────────────────────────────────────────────────


class TestRedisKeyValueStore:
    @pytest.fixture
    def redis(self):
        client = MagicMock()
        client.get = AsyncMock(return_value="v")
        client.set = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=1)
        return client

    async def test_keys_are_prefixed(self, redis):
        kv = RedisKeyValueStore(redis, prefix="ss")

        assert await kv.get("k") == "v"
        await kv.set("k", "v")
        await kv.delete("k")

        redis.get.assert_awaited_once_with("ss:k")
        redis.set.assert_awaited_once_with("ss:k", "v")
        redis.delete.assert_awaited_once_with("ss:k")

    async def test_set_if_absent_uses_nx(self, redis):
        kv = RedisKeyValueStore(redis)

        assert await kv.set_if_absent("k", "v") is True
        redis.set.assert_awaited_once_with("sheetsync:k", "v", nx=True)

    async def test_set_if_absent_existing_key(self, redis):
        redis.set.return_value = None
        kv = RedisKeyValueStore(redis)

        assert await kv.set_if_absent("k", "v") is False


# ── SQL ────────────────────────────────────────────────────────────────────


def _session_factory(session):
    async def factory():
        yield session

    return factory


class TestSqlKeyValueStore:
    @pytest.fixture
    def result(self):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        return result

    @pytest.fixture
    def session(self, result):
        session = AsyncMock()
        session.add = MagicMock()
        session.execute.return_value = result
        return session

    async def test_get_missing(self, session):
        kv = SqlKeyValueStore(_session_factory(session))
        assert await kv.get("k") is None

    async def test_get_existing(self, session, result):
        result.scalar_one_or_none.return_value = MagicMock(value="stored")
        kv = SqlKeyValueStore(_session_factory(session))

        assert await kv.get("k") == "stored"

    async def test_set_is_single_upsert(self, session):
        kv = SqlKeyValueStore(_session_factory(session))
        await kv.set("k", "v")

        stmt = session.execute.await_args.args[0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "INSERT INTO properties" in sql
        assert "ON CONFLICT" in sql
        assert "DO UPDATE SET value" in sql
        session.execute.assert_awaited_once()
        session.add.assert_not_called()
        session.commit.assert_awaited_once()

    async def test_concurrent_first_writes_do_not_raise(self, session):
        kv = SqlKeyValueStore(_session_factory(session))

        await asyncio.gather(kv.set("k", "first"), kv.set("k", "second"))

        assert session.execute.await_count == 2
        assert session.commit.await_count == 2

    async def test_preference_save_over_sql_backend(self, session):
        kv = SqlKeyValueStore(_session_factory(session))
        store = PreferenceStore(kv, TeamDirectory(kv))

        record = await store.save(
            EntityType.DEALS, "Deals", "a@x.com", [SelectedColumn(key="id", name="ID")]
        )

        assert record.owner_scope is OwnerScope.PERSONAL
        assert session.commit.await_count == 2

    async def test_set_if_absent_existing(self, session, result):
        result.scalar_one_or_none.return_value = "k"
        kv = SqlKeyValueStore(_session_factory(session))

        assert await kv.set_if_absent("k", "v") is False
        session.add.assert_not_called()

    async def test_set_if_absent_inserts(self, session):
        kv = SqlKeyValueStore(_session_factory(session))

        assert await kv.set_if_absent("k", "v") is True
        session.add.assert_called_once()

    async def test_set_if_absent_lost_race(self, session):
        session.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        kv = SqlKeyValueStore(_session_factory(session))

        assert await kv.set_if_absent("k", "v") is False
        session.rollback.assert_awaited_once()

    async def test_delete(self, session):
        kv = SqlKeyValueStore(_session_factory(session))
        await kv.delete("k")

        session.execute.assert_awaited_once()
        session.commit.assert_awaited_once()
