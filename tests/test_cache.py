"""
Tests for the Redis telemetry cache: key builder, cache_get/cache_set, read-through provider.
"""
import json
from unittest.mock import AsyncMock

import pytest

from cache import (
    TTL_TELEMETRY,
    CachedTelemetryProvider,
    cache_get,
    cache_set,
    create_redis,
    get_telemetry_cached,
    key_telemetry,
)
from schemas import TelemetryReading
from telemetry_service import TelemetryFetchError

from conftest import DictRedis, FakeTelemetryProvider


class TestCacheKeyBuilders:
    def test_key_telemetry_format(self):
        assert key_telemetry(28.6589, 77.3459) == "telemetry:28.6589:77.3459"


def test_create_redis_without_url_is_none():
    assert create_redis(None) is None
    assert create_redis("  ") is None


class TestCacheGetSet:
    @pytest.mark.asyncio
    async def test_cache_get_returns_none_when_redis_none(self):
        assert await cache_get(None, "any") is None

    @pytest.mark.asyncio
    async def test_cache_get_returns_none_on_miss(self, mock_redis):
        mock_redis.get.return_value = None
        assert await cache_get(mock_redis, "missing") is None

    @pytest.mark.asyncio
    async def test_cache_get_deserializes_json(self, mock_redis):
        mock_redis.get.return_value = json.dumps({"a": 1})
        assert await cache_get(mock_redis, "k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_cache_get_swallows_redis_errors(self, mock_redis):
        mock_redis.get.side_effect = ConnectionError("redis down")
        assert await cache_get(mock_redis, "k") is None

    @pytest.mark.asyncio
    async def test_cache_set_calls_setex_with_ttl(self, mock_redis):
        await cache_set(mock_redis, "k", {"v": 1}, 120)
        mock_redis.setex.assert_called_once()
        args = mock_redis.setex.call_args[0]
        assert args[0] == "k"
        assert args[1] == 120
        assert json.loads(args[2]) == {"v": 1}

    @pytest.mark.asyncio
    async def test_cache_set_skips_when_redis_none(self):
        await cache_set(None, "k", {"x": 1}, 60)


class TestGetTelemetryCached:
    @pytest.mark.asyncio
    async def test_miss_calls_fetch_and_caches(self, mock_redis, sample_reading):
        fetch_fn = AsyncMock(return_value=sample_reading)
        result = await get_telemetry_cached(mock_redis, 28.0, 77.0, fetch_fn)
        assert result == sample_reading
        fetch_fn.assert_awaited_once_with(28.0, 77.0)
        key, ttl, raw = mock_redis.setex.call_args[0]
        assert key == "telemetry:28.0:77.0"
        assert ttl == TTL_TELEMETRY
        assert json.loads(raw)["aqi"] == 4

    @pytest.mark.asyncio
    async def test_hit_returns_cached(self, mock_redis, sample_reading):
        mock_redis.get.return_value = json.dumps(sample_reading.model_dump())
        fetch_fn = AsyncMock()
        result = await get_telemetry_cached(mock_redis, 28.0, 77.0, fetch_fn)
        assert result == sample_reading
        fetch_fn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_entry_refetches(self, mock_redis, sample_reading):
        mock_redis.get.return_value = json.dumps({"aqi": "nope"})
        fetch_fn = AsyncMock(return_value=sample_reading)
        assert await get_telemetry_cached(mock_redis, 1.0, 2.0, fetch_fn) == sample_reading

    @pytest.mark.asyncio
    async def test_fetch_error_not_cached(self, mock_redis):
        fetch_fn = AsyncMock(side_effect=TelemetryFetchError("down"))
        with pytest.raises(TelemetryFetchError):
            await get_telemetry_cached(mock_redis, 1.0, 2.0, fetch_fn)
        mock_redis.setex.assert_not_called()


@pytest.mark.asyncio
async def test_cached_provider_wraps_inner(mock_redis, sample_reading):
    inner = FakeTelemetryProvider(reading=sample_reading)
    provider = CachedTelemetryProvider(inner, mock_redis, ttl=30)
    assert await provider.fetch(1.0, 2.0) == sample_reading
    assert inner.calls == [(1.0, 2.0)]
    assert mock_redis.setex.call_args[0][1] == 30


class TestWriteThrough:
    @pytest.mark.asyncio
    async def test_skips_cached_entry_and_stores_fresh_reading(self, sample_reading):
        redis = DictRedis()
        inner = FakeTelemetryProvider(reading=sample_reading)
        provider = CachedTelemetryProvider(inner, redis, ttl=30)
        await provider.fetch(1.0, 2.0)

        newer = TelemetryReading(aqi=1, pm2_5=3.0, no2=2.0, so2=1.0, co=0.2)
        inner.reading = newer
        assert (await provider.fetch(1.0, 2.0)).aqi == 4
        assert (await provider.write_through().fetch(1.0, 2.0)) == newer
        assert len(inner.calls) == 2
        assert json.loads(redis.data["telemetry:1.0:2.0"])["aqi"] == 1
        # normal reads now see the refreshed entry
        assert (await provider.fetch(1.0, 2.0)) == newer
        assert len(inner.calls) == 2

    @pytest.mark.asyncio
    async def test_use_cache_false_ignores_hit(self, mock_redis, sample_reading):
        mock_redis.get.return_value = json.dumps({"aqi": 5, "pm2_5": 1.0, "no2": 1.0, "so2": 1.0, "co": 1.0})
        fetch_fn = AsyncMock(return_value=sample_reading)
        result = await get_telemetry_cached(mock_redis, 1.0, 2.0, fetch_fn, use_cache=False)
        assert result == sample_reading
        mock_redis.get.assert_not_called()
        mock_redis.setex.assert_called_once()
