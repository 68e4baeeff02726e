from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from moltbook_trends.settings import Settings

log = logging.getLogger(__name__)

HISTORY_KEY = "history"
OLDEST_WEEK_DAYS = 7
REDIS_CONNECT_TIMEOUT = 5.0

_USED_MEMORY_RE = re.compile(r"used_memory:(\d+)")


def _list_slice(items: List[Any], start: int, stop: int) -> List[Any]:
    """Redis LRANGE semantics: inclusive stop, negative indexes from the end."""
    n = len(items)
    if start < 0:
        start = max(n + start, 0)
    if stop < 0:
        stop = n + stop
    if start > stop or start >= n:
        return []
    return items[start : stop + 1]


class KVStore:
    """Async key-value interface the reports are stored in.

    Values are JSON-compatible objects. Lists follow Redis semantics.
    """

    async def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    async def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        raise NotImplementedError

    async def lpush(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def llen(self, key: str) -> int:
        raise NotImplementedError

    async def ltrim(self, key: str, start: int, stop: int) -> None:
        raise NotImplementedError

    async def memory_usage(self) -> int:
        return 0

    async def close(self) -> None:
        return None


class MemoryKV(KVStore):
    """Process-local store used when no Redis is configured (or reachable)."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        async with self._lock:
            return list(_list_slice(self._data.get(key) or [], start, stop))

    async def lpush(self, key: str, value: Any) -> None:
        async with self._lock:
            items = self._data.setdefault(key, [])
            items.insert(0, value)

    async def llen(self, key: str) -> int:
        async with self._lock:
            return len(self._data.get(key) or [])

    async def ltrim(self, key: str, start: int, stop: int) -> None:
        async with self._lock:
            self._data[key] = _list_slice(self._data.get(key) or [], start, stop)


class RedisKV(KVStore):
    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @staticmethod
    def _decode(raw: Any) -> Any:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    @staticmethod
    def _encode(value: Any) -> str:
        return json.dumps(value, ensure_ascii=False)

    async def get(self, key: str) -> Optional[Any]:
        return self._decode(await self._client.get(key))

    async def set(self, key: str, value: Any) -> None:
        await self._client.set(key, self._encode(value))

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        return [self._decode(v) for v in await self._client.lrange(key, start, stop)]

    async def lpush(self, key: str, value: Any) -> None:
        await self._client.lpush(key, self._encode(value))

    async def llen(self, key: str) -> int:
        return int(await self._client.llen(key))

    async def ltrim(self, key: str, start: int, stop: int) -> None:
        await self._client.ltrim(key, start, stop)

    async def memory_usage(self) -> int:
        info = await self._client.info("memory")
        if isinstance(info, dict):
            return int(info.get("used_memory") or 0)
        m = _USED_MEMORY_RE.search(str(info))
        return int(m.group(1)) if m else 0

    async def close(self) -> None:
        await self._client.aclose()


async def connect_redis(redis_url: str) -> Optional[RedisKV]:
    if not redis_url:
        return None
    client = aioredis.from_url(redis_url, socket_connect_timeout=REDIS_CONNECT_TIMEOUT)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        log.warning("Redis connect failed, using in-memory fallback: %r", e)
        await client.aclose()
        return None
    log.info("Connected to Redis for report storage")
    return RedisKV(client)


_kv: Optional[KVStore] = None
_kv_lock = asyncio.Lock()


async def get_kv(settings: Settings) -> KVStore:
    """Process-wide store: Redis when REDIS_URL works, memory otherwise."""
    global _kv
    async with _kv_lock:
        if _kv is None:
            _kv = await connect_redis(settings.redis_url) or MemoryKV()
        return _kv


async def reset_kv() -> None:
    global _kv
    async with _kv_lock:
        if _kv is not None:
            await _kv.close()
        _kv = None


async def prune_oldest_week_if_needed(kv: KVStore, threshold_bytes: int) -> int:
    """Drop the oldest week of reports once the store grows past ``threshold_bytes``.

    Returns the number of days removed. Errors are logged, never raised.
    """
    try:
        used = await kv.memory_usage()
        if used < threshold_bytes:
            return 0

        length = await kv.llen(HISTORY_KEY)
        to_remove = min(OLDEST_WEEK_DAYS, length)
        if to_remove == 0:
            return 0

        oldest = await kv.lrange(HISTORY_KEY, -to_remove, -1)
        for day in oldest:
            if isinstance(day, str):
                await kv.delete(f"report:{day}")
        await kv.ltrim(HISTORY_KEY, 0, -(to_remove + 1))
        log.info("Pruned %s oldest day(s) from store (used was %s MB)", to_remove, round(used / 1024 / 1024))
        return to_remove
    except (RedisError, OSError, ValueError) as e:
        log.warning("prune_oldest_week_if_needed failed: %r", e)
        return 0
