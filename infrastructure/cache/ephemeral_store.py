"""Short-lived key/value storage for pending verification state.

Two backends implement the EphemeralStore protocol:

- InMemoryEphemeralStore: a dict with lazily checked expiry. There is no
  background sweep; an expired entry is dropped the next time it is read.
  State is scoped to one process, like the single-tab scope of a browser
  session store.
- RedisEphemeralStore: SETEX/GET/DEL on JSON payloads, shared between workers
  and surviving restarts.

Values are JSON-serialisable dicts (not pickle) so entries are debuggable.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

import redis.asyncio as aioredis

from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger

log = get_logger(__name__)


class EphemeralStore(Protocol):
    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None: ...

    async def get(self, key: str) -> Optional[dict[str, Any]]: ...

    async def delete(self, key: str) -> None: ...


class InMemoryEphemeralStore:
    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[datetime, str]] = {}

    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        self._entries[key] = (expires_at, json.dumps(value, default=str))

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if self._clock() > expires_at:
            self._entries.pop(key, None)
            return None
        return json.loads(raw)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisEphemeralStore:
    """Redis-backed store. Read errors degrade to a miss; write errors propagate
    so a code that could not be stored is never dispatched."""

    def __init__(self, redis_client: aioredis.Redis, prefix: str = "security") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        await self._redis.setex(
            self._key(key), ttl_seconds, json.dumps(value, default=str)
        )

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        try:
            raw = await self._redis.get(self._key(key))
        except Exception as e:
            log.warning("ephemeral_store_get_error", key=key, error=str(e))
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except Exception as e:
            log.error("ephemeral_store_delete_error", key=key, error=str(e))
