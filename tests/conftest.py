"""
Pytest configuration and shared fixtures for Eco Scan tests.
"""
import os
import sys
from typing import List, Optional
from unittest.mock import AsyncMock

import pytest

# Ensure project root is on path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Settings  # noqa: E402
from schemas import TelemetryReading  # noqa: E402


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async (pytest-asyncio).")


class FakeTelemetryProvider:
    """Returns a fixed reading, or raises `error` when set."""

    def __init__(self, reading: Optional[TelemetryReading] = None, error: Optional[Exception] = None):
        self.reading = reading
        self.error = error
        self.calls: List[tuple] = []

    async def fetch(self, lat: float, lon: float) -> TelemetryReading:
        self.calls.append((lat, lon))
        if self.error is not None:
            raise self.error
        return self.reading


class FakeAdvisoryProvider:
    """Returns `text`, or raises `error` when set. Records prompts."""

    def __init__(self, text: str = "Close windows. Wear an N95 mask.", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


class DictRedis:
    """In-memory stand-in for the async Redis calls the cache makes."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def aclose(self):
        return None


@pytest.fixture
def sample_air_pollution_payload() -> dict:
    """OpenWeatherMap air_pollution response body."""
    return {
        "coord": {"lon": 77.3459, "lat": 28.6589},
        "list": [
            {
                "main": {"aqi": 4},
                "components": {"pm2_5": 55.2, "no2": 40.1, "so2": 12.3, "co": 0.8},
                "dt": 1700000000,
            }
        ],
    }


@pytest.fixture
def sample_reading() -> TelemetryReading:
    return TelemetryReading(aqi=4, pm2_5=55.2, no2=40.1, so2=12.3, co=0.8)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        weather_api_key="test-weather-key",
        gemini_api_key="test-gemini-key",
        redis_url=None,
    )


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Fake async Redis for cache tests (get/setex return OK)."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.setex = AsyncMock(return_value=True)
    return redis
