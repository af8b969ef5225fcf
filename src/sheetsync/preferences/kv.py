"""Key/value storage backends for preferences and team data.

Provides abstract KeyValueStore interface with concrete implementations:
- InMemoryKeyValueStore: process-local dict, used in development and tests
- RedisKeyValueStore: shared Redis instance (SET NX for set_if_absent)
- SqlKeyValueStore: durable PostgreSQL table via the session_factory pattern

Values are opaque strings (JSON text). Writes replace the whole value;
concurrent writers to the same key are last-writer-wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Callable

import redis.asyncio as aioredis
import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.sheetsync.preferences.models import PropertyModel

logger = structlog.get_logger(__name__)


class KeyValueStore(ABC):
    """Abstract string key/value store."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    @abstractmethod
    async def set_if_absent(self, key: str, value: str) -> bool:
        """Store ``value`` only if ``key`` has no value yet.

        Returns:
            True if the value was written, False if ``key`` already existed.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        ...


# ── In-Memory ───────────────────────────────────────────────────────────────


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Not shared across processes."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def set_if_absent(self, key: str, value: str) -> bool:
        if key in self._data:
            return False
        self._data[key] = value
        return True

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


# ── Redis ───────────────────────────────────────────────────────────────────


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store.

    Args:
        redis: Async Redis client created with ``decode_responses=True``.
        prefix: Namespace prepended to every key.
    """

    def __init__(self, redis: aioredis.Redis, prefix: str = "sheetsync") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    async def get(self, key: str) -> str | None:
        return await self._redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(self._key(key), value)

    async def set_if_absent(self, key: str, value: str) -> bool:
        written = await self._redis.set(self._key(key), value, nx=True)
        return bool(written)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))


# ── SQL ─────────────────────────────────────────────────────────────────────


class SqlKeyValueStore(KeyValueStore):
    """PostgreSQL-backed store over the ``properties`` table.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async for session in self._session_factory():
            stmt = select(PropertyModel).where(PropertyModel.key == key)
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return model.value
        return None

    async def set(self, key: str, value: str) -> None:
        # Single upsert: concurrent first writers never collide on the key
        stmt = (
            pg_insert(PropertyModel)
            .values(key=key, value=value)
            .on_conflict_do_update(
                index_elements=[PropertyModel.key],
                set_={"value": value, "updated_at": func.now()},
            )
        )
        async for session in self._session_factory():
            await session.execute(stmt)
            await session.commit()

    async def set_if_absent(self, key: str, value: str) -> bool:
        async for session in self._session_factory():
            stmt = select(PropertyModel.key).where(PropertyModel.key == key)
            result = await session.execute(stmt)
            if result.scalar_one_or_none() is not None:
                return False
            session.add(PropertyModel(key=key, value=value))
            try:
                await session.commit()
            except IntegrityError:
                # Another writer inserted the key first
                await session.rollback()
                logger.debug("kv.set_if_absent_lost_race", key=key)
                return False
            return True
        return False

    async def delete(self, key: str) -> None:
        async for session in self._session_factory():
            await session.execute(delete(PropertyModel).where(PropertyModel.key == key))
            await session.commit()
