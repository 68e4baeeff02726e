import asyncio
import json

from redis.exceptions import ConnectionError as RedisConnectionError

from moltbook_trends.store.kv import (
    HISTORY_KEY,
    MemoryKV,
    RedisKV,
    get_kv,
    prune_oldest_week_if_needed,
    reset_kv,
)


class BigMemoryKV(MemoryKV):
    def __init__(self, used: int) -> None:
        super().__init__()
        self.used = used

    async def memory_usage(self) -> int:
        return self.used


class BrokenKV(MemoryKV):
    async def memory_usage(self) -> int:
        raise RedisConnectionError("gone")


class FakeRedis:
    """Just enough of redis.asyncio.Redis for RedisKV."""

    def __init__(self, info=None) -> None:
        self.data = {}
        self.lists = {}
        self._info = info if info is not None else {"used_memory": 1234}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value.encode("utf-8")

    async def delete(self, key):
        self.data.pop(key, None)

    async def lpush(self, key, value):
        self.lists.setdefault(key, []).insert(0, value.encode("utf-8"))

    async def lrange(self, key, start, stop):
        items = self.lists.get(key, [])
        stop = len(items) + stop if stop < 0 else stop
        return items[start : stop + 1]

    async def llen(self, key):
        return len(self.lists.get(key, []))

    async def ltrim(self, key, start, stop):
        items = self.lists.get(key, [])
        stop = len(items) + stop if stop < 0 else stop
        self.lists[key] = items[start : stop + 1]

    async def info(self, section):
        return self._info

    async def aclose(self):
        self.closed = True


async def _fill(kv, days):
    for day in days:
        await kv.set(f"report:{day}", {"date": day})
        await kv.lpush(HISTORY_KEY, day)


def test_memory_kv_values_and_lists():
    async def go():
        kv = MemoryKV()
        assert await kv.get("missing") is None
        await kv.set("a", {"x": 1})
        assert await kv.get("a") == {"x": 1}
        await kv.delete("a")
        await kv.delete("a")
        assert await kv.get("a") is None

        for v in ["one", "two", "three"]:
            await kv.lpush("l", v)
        assert await kv.lrange("l", 0, -1) == ["three", "two", "one"]
        assert await kv.lrange("l", -2, -1) == ["two", "one"]
        assert await kv.lrange("l", 5, 10) == []
        assert await kv.llen("l") == 3

        await kv.ltrim("l", 0, -2)
        assert await kv.lrange("l", 0, -1) == ["three", "two"]
        assert await kv.llen("missing") == 0
        assert await kv.memory_usage() == 0

    asyncio.run(go())


def test_prune_below_threshold_is_noop():
    async def go():
        kv = BigMemoryKV(used=10)
        await _fill(kv, ["2026-01-01", "2026-01-02"])
        assert await prune_oldest_week_if_needed(kv, threshold_bytes=100) == 0
        assert await kv.llen(HISTORY_KEY) == 2

    asyncio.run(go())


def test_prune_drops_oldest_week():
    async def go():
        kv = BigMemoryKV(used=200)
        days = [f"2026-01-{d:02d}" for d in range(1, 11)]
        await _fill(kv, days)

        assert await prune_oldest_week_if_needed(kv, threshold_bytes=100) == 7
        assert await kv.lrange(HISTORY_KEY, 0, -1) == ["2026-01-10", "2026-01-09", "2026-01-08"]
        assert await kv.get("report:2026-01-01") is None
        assert await kv.get("report:2026-01-07") is None
        assert await kv.get("report:2026-01-08") == {"date": "2026-01-08"}

    asyncio.run(go())


def test_prune_short_history_and_errors():
    async def go():
        kv = BigMemoryKV(used=200)
        await _fill(kv, ["2026-01-01", "2026-01-02"])
        assert await prune_oldest_week_if_needed(kv, threshold_bytes=100) == 2
        assert await kv.llen(HISTORY_KEY) == 0
        assert await prune_oldest_week_if_needed(kv, threshold_bytes=100) == 0

        assert await prune_oldest_week_if_needed(BrokenKV(), threshold_bytes=0) == 0

    asyncio.run(go())


def test_redis_kv_encodes_json():
    async def go():
        client = FakeRedis()
        kv = RedisKV(client)

        await kv.set("report:2026-01-01", {"title": "记忆", "n": 1})
        assert json.loads(client.data["report:2026-01-01"]) == {"title": "记忆", "n": 1}
        assert await kv.get("report:2026-01-01") == {"title": "记忆", "n": 1}
        assert await kv.get("missing") is None

        await _fill(kv, ["2026-01-01", "2026-01-02"])
        assert await kv.lrange(HISTORY_KEY, 0, -1) == ["2026-01-02", "2026-01-01"]
        assert await kv.memory_usage() == 1234

        await kv.close()
        assert client.closed

    asyncio.run(go())


def test_redis_kv_memory_usage_from_raw_info():
    async def go():
        kv = RedisKV(FakeRedis(info="# Memory\r\nused_memory:4096\r\nused_memory_human:4K\r\n"))
        assert await kv.memory_usage() == 4096
        assert await RedisKV(FakeRedis(info="")).memory_usage() == 0

    asyncio.run(go())


def test_get_kv_without_redis_is_shared_memory(settings):
    async def go():
        await reset_kv()
        first = await get_kv(settings)
        second = await get_kv(settings)
        assert isinstance(first, MemoryKV)
        assert first is second

        await reset_kv()
        assert await get_kv(settings) is not first
        await reset_kv()

    asyncio.run(go())
