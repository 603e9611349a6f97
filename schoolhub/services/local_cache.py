"""Local key-value persistence shim.

Holds the handful of selections that must survive a reload: the active
role, the academic year, and the chosen term per year.  There is no TTL
and no eviction; a key lives until it is overwritten or deleted.

Two backends share one Protocol:

  InMemoryLocalCache   per-process dict, used in tests and local dev
  RedisLocalCache      shared across processes when REDIS_URL is set

Well-known keys live here too, so every writer agrees on spelling.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from schoolhub.db.redis import redis_pool

ACTIVE_ROLE_KEY = "activeRole"
ACADEMIC_YEAR_KEY = "academicYear"


def term_key(academic_year: str) -> str:
    return f"term_{academic_year}"


@runtime_checkable
class LocalCache(Protocol):
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryLocalCache:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisLocalCache:
    """Redis-backed local cache, namespaced per principal.

    The namespace keeps two principals on a shared Redis from reading each
    other's remembered role.
    """

    _PREFIX = "local:"

    def __init__(self, redis_client, namespace: str) -> None:
        self._redis = redis_client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._PREFIX}{self._namespace}:{key}"

    async def get(self, key: str) -> str | None:
        return await self._redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        # Plain SET, no expiry: these are remembered choices, not cache entries.
        await self._redis.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))


def local_cache_for(namespace: str) -> LocalCache:
    if redis_pool is not None:
        return RedisLocalCache(redis_pool, namespace=namespace)
    return InMemoryLocalCache()
