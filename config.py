"""
Application configuration from environment variables.
"""
from typing import Optional
from pydantic_settings import BaseSettings


# Sahibabad / IPEC campus
DEFAULT_MONITOR_LAT = 28.6589
DEFAULT_MONITOR_LON = 77.3459


class Settings(BaseSettings):
    """Settings loaded from environment (and .env)."""

    # Provider keys (absence is not validated; providers reject the call instead)
    weather_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None

    # Advisory provider: "gemini" or "groq"
    advisory_provider: str = "gemini"
    advisory_model: str = "gemini-1.5-flash"
    groq_model: str = "llama-3.1-8b-instant"

    # Monitored point and map view
    monitor_lat: float = DEFAULT_MONITOR_LAT
    monitor_lon: float = DEFAULT_MONITOR_LON
    map_zoom: int = 15
    hazard_radius_m: float = 800.0
    report_radius_m: float = 150.0
    tile_url: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"

    # Green credits
    initial_credits: int = 110
    report_credit_reward: int = 10

    # Outbound HTTP
    http_timeout_seconds: float = 10.0

    # Redis (empty = no cache)
    redis_url: Optional[str] = None
    telemetry_cache_ttl: int = 600  # seconds

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

OPENWEATHER_AIR_POLLUTION_URL = "https://api.openweathermap.org/data/2.5/air_pollution"
GROQ_BASE_URL = "https://api.groq.com/openai/v1/chat/completions"
