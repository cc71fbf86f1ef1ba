"""
Air-quality telemetry from the OpenWeatherMap air pollution API.
"""
import logging
from typing import Any, Dict, Optional, Protocol

import requests
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from config import OPENWEATHER_AIR_POLLUTION_URL
from dashboard_state import DashboardStore, TelemetryLoaded
from schemas import TelemetryReading

logger = logging.getLogger(__name__)


class TelemetryFetchError(Exception):
    """Network, status or parse failure while fetching a reading."""


class TelemetryProvider(Protocol):
    async def fetch(self, lat: float, lon: float) -> TelemetryReading:
        ...


def parse_air_pollution_response(payload: Dict[str, Any]) -> TelemetryReading:
    """
    Take the first element of `list` from an air_pollution response.
    Raises TelemetryFetchError if the body does not have the expected shape.
    """
    try:
        first = payload["list"][0]
        components = first["components"]
        return TelemetryReading(
            aqi=first["main"]["aqi"],
            pm2_5=components["pm2_5"],
            no2=components["no2"],
            so2=components["so2"],
            co=components["co"],
        )
    except (KeyError, IndexError, TypeError, ValidationError) as e:
        raise TelemetryFetchError(f"Malformed air pollution response: {e}") from e


class OpenWeatherTelemetryProvider:
    """One GET per fetch against the air_pollution endpoint."""

    def __init__(self, api_key: Optional[str], timeout: float = 10.0, url: str = OPENWEATHER_AIR_POLLUTION_URL):
        self.api_key = api_key
        self.timeout = timeout
        self.url = url

    def fetch_sync(self, lat: float, lon: float) -> TelemetryReading:
        params = {"lat": lat, "lon": lon, "appid": self.api_key or ""}
        try:
            resp = requests.get(self.url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TelemetryFetchError(f"Network error: {e}") from e
        if resp.status_code != 200:
            raise TelemetryFetchError(f"Air pollution API error: {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise TelemetryFetchError(f"Invalid JSON from air pollution API: {e}") from e
        return parse_air_pollution_response(payload)

    async def fetch(self, lat: float, lon: float) -> TelemetryReading:
        logger.debug("Fetching telemetry for %s,%s", lat, lon)
        return await run_in_threadpool(self.fetch_sync, lat, lon)


async def refresh_telemetry(store: DashboardStore, provider: TelemetryProvider, lat: float, lon: float) -> Optional[TelemetryReading]:
    """
    Fetch a reading and store it. On failure log and keep whatever reading the
    store already holds. Returns the reading now held by the store.
    """
    try:
        reading = await provider.fetch(lat, lon)
    except Exception as e:
        logger.exception("Telemetry failure for %s,%s: %s", lat, lon, e)
        return store.snapshot.telemetry
    await store.dispatch(TelemetryLoaded(reading=reading))
    logger.info("Telemetry updated: AQI %s", reading.aqi)
    return reading
