"""
Key-value store backends and typed JSON collections.

Every entity family (analytics, leads, shared videos) lives under a single
string key as a JSON array. Services read the whole collection, mutate it in
memory and write it back, so each ``JsonCollection`` carries an ``asyncio.Lock``
that callers hold across the read-mutate-write cycle.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, TypeAdapter, ValidationError
from redis.exceptions import RedisError

from config import Settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class StoreError(RuntimeError):
    """Raised when the store is unavailable or holds malformed data."""


class KeyValueStore(ABC):
    """Asynchronous string-keyed, string-valued durable store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisStore(KeyValueStore):
    """Store backed by a Redis server, keys namespaced by ``prefix``."""

    def __init__(self, url: str, *, prefix: str = "", client: Optional[redis.Redis] = None) -> None:
        self.prefix = prefix
        self._client = client if client is not None else redis.from_url(url, decode_responses=True)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(self._key(key))
        except RedisError as exc:
            raise StoreError(f"Failed to read {key!r}: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(self._key(key), value)
        except RedisError as exc:
            raise StoreError(f"Failed to write {key!r}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except RedisError as exc:
            raise StoreError(f"Failed to delete {key!r}: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            raise StoreError(f"Redis ping failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


class MemoryStore(KeyValueStore):
    """In-process store for local development and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonCollection(Generic[ModelT]):
    """A list of pydantic records persisted as one JSON array under ``key``."""

    def __init__(self, store: KeyValueStore, key: str, model: Type[ModelT]) -> None:
        self.store = store
        self.key = key
        self.lock = asyncio.Lock()
        self._adapter = TypeAdapter(List[model])

    async def load(self) -> List[ModelT]:
        raw = await self.store.get(self.key)
        if not raw:
            return []
        try:
            return self._adapter.validate_json(raw)
        except ValidationError as exc:
            raise StoreError(f"Malformed data under {self.key!r}: {exc.error_count()} error(s)") from exc

    async def save(self, items: Sequence[ModelT]) -> None:
        payload = self._adapter.dump_json(list(items), by_alias=True, exclude_none=True)
        await self.store.set(self.key, payload.decode("utf-8"))


def dump_records(items: Sequence[BaseModel]) -> List[Dict[str, Any]]:
    """Serialize records the same way they are persisted."""
    return [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in items]


def build_store(config: Settings) -> KeyValueStore:
    """Create the configured store backend."""
    if config.STORE_BACKEND == "memory":
        logger.warning("Using in-memory store; data will not survive a restart")
        return MemoryStore()
    return RedisStore(config.REDIS_URL, prefix=config.STORE_KEY_PREFIX)
