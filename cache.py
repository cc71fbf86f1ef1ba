"""
Redis cache helpers: key builders and async get/set with TTL.
Redis is optional (REDIS_URL empty = no cache).
"""
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from schemas import TelemetryReading

logger = logging.getLogger(__name__)

TTL_TELEMETRY = 600


def key_telemetry(lat: float, lon: float) -> str:
    return f"telemetry:{lat}:{lon}"


def create_redis(redis_url: Optional[str]) -> Any:
    """Async Redis client, or None when no URL is configured."""
    url = (redis_url or "").strip()
    if not url:
        return None
    import redis.asyncio as aioredis
    return aioredis.from_url(url)


async def cache_get(redis: Any, key: str) -> Optional[Any]:
    """Return deserialized value if key exists, else None."""
    if redis is None:
        return None
    try:
        raw = await redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)
    except Exception as e:
        logger.debug("Cache get failed for %s: %s", key, e)
        return None


async def cache_set(redis: Any, key: str, value: Any, ttl: int) -> None:
    """Serialize value and set with TTL."""
    if redis is None:
        return
    try:
        await redis.setex(key, ttl, json.dumps(value, default=str))
    except Exception as e:
        logger.debug("Cache set failed for %s: %s", key, e)


async def get_telemetry_cached(
    redis: Any,
    lat: float,
    lon: float,
    fetch_fn: Callable[[float, float], Awaitable[TelemetryReading]],
    ttl: int = TTL_TELEMETRY,
    use_cache: bool = True,
) -> TelemetryReading:
    """
    Return telemetry from cache or fetch and cache. With use_cache=False the
    cached entry is skipped but the fresh reading is still written back.
    Fetch errors propagate and are not cached.
    """
    key = key_telemetry(lat, lon)
    cached = await cache_get(redis, key) if use_cache else None
    if cached is not None:
        try:
            return TelemetryReading(**cached)
        except Exception as e:
            logger.debug("Ignoring unreadable cached telemetry %s: %s", key, e)
    reading = await fetch_fn(lat, lon)
    await cache_set(redis, key, reading.model_dump(), ttl)
    return reading


class CachedTelemetryProvider:
    """Read-through cache in front of another telemetry provider."""

    def __init__(self, inner: Any, redis: Any, ttl: int = TTL_TELEMETRY, read_cache: bool = True):
        self.inner = inner
        self.redis = redis
        self.ttl = ttl
        self.read_cache = read_cache

    def write_through(self) -> "CachedTelemetryProvider":
        """Same cache, but every fetch goes to the inner provider."""
        return CachedTelemetryProvider(self.inner, self.redis, ttl=self.ttl, read_cache=False)

    async def fetch(self, lat: float, lon: float) -> TelemetryReading:
        return await get_telemetry_cached(
            self.redis, lat, lon, self.inner.fetch, self.ttl, use_cache=self.read_cache
        )
