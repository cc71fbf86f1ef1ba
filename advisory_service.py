"""
Generative safety advice for reported pollution spikes.
Gemini (google-genai) by default; Groq's OpenAI-compatible chat endpoint as an alternative.
"""
import logging
from typing import Optional, Protocol

import requests
from fastapi.concurrency import run_in_threadpool
from google import genai

from config import GROQ_BASE_URL, Settings
from dashboard_state import AdvisoryResolved, DashboardStore

logger = logging.getLogger(__name__)

UNKNOWN_AQI = "High"


class AdvisoryRequestError(Exception):
    """The generative service could not produce advice."""


class AdvisoryProvider(Protocol):
    async def generate(self, prompt: str) -> str:
        ...


def build_advisory_prompt(lat: float, lng: float, aqi: Optional[int]) -> str:
    return (
        f"URGENT: User reported an industrial air spike at coordinates {lat}, {lng}.\n"
        f"Current AQI is {aqi or UNKNOWN_AQI}.\n"
        "Act as an Emergency Response AI. Provide 2 clinical safety steps for this specific location."
    )


def fallback_advisory(lat: float) -> str:
    return f"Spike logged at {lat:.2f}. Alert sent to local authorities. Stay indoors."


class GeminiAdvisoryProvider:
    def __init__(self, api_key: Optional[str], model: str = "gemini-1.5-flash", client: Optional[genai.Client] = None):
        self.model = model
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> genai.Client:
        # created lazily so a missing key only fails the request, not start-up
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        try:
            response = await self.client.aio.models.generate_content(model=self.model, contents=prompt)
        except Exception as e:
            raise AdvisoryRequestError(f"Gemini request failed: {e}") from e
        if response.text is None:
            raise AdvisoryRequestError("Gemini returned no text")
        return response.text


class GroqAdvisoryProvider:
    def __init__(self, api_key: Optional[str], model: str = "llama-3.1-8b-instant", timeout: float = 30.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def generate_sync(self, prompt: str) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key or ''}",
            "Content-Type": "application/json",
        }
        data = {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": "You are an Emergency Response AI for industrial air pollution spikes. Keep responses brief and clinical."
                },
                {
                    "role": "user",
                    "content": prompt
                }
            ],
            "max_tokens": 200,
            "temperature": 0.7
        }
        try:
            response = requests.post(GROQ_BASE_URL, headers=headers, json=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise AdvisoryRequestError(f"Network error: {e}") from e
        if response.status_code != 200:
            raise AdvisoryRequestError(f"GROQ API error: {response.status_code} - {response.text}")
        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AdvisoryRequestError(f"Malformed GROQ response: {e}") from e

    async def generate(self, prompt: str) -> str:
        return await run_in_threadpool(self.generate_sync, prompt)


def build_advisory_provider(settings: Settings) -> AdvisoryProvider:
    name = (settings.advisory_provider or "gemini").strip().lower()
    if name == "gemini":
        return GeminiAdvisoryProvider(settings.gemini_api_key, model=settings.advisory_model)
    if name == "groq":
        return GroqAdvisoryProvider(settings.groq_api_key, model=settings.groq_model)
    raise ValueError(f"Unknown advisory provider: {settings.advisory_provider}")


async def request_advisory(store: DashboardStore, provider: AdvisoryProvider, lat: float, lng: float) -> str:
    """
    One advisory cycle for a spike reported at (lat, lng).

    The report, credits and loading flag are recorded before the provider is
    called. Any provider failure becomes the fallback message. The result is
    written to the store only if no newer report has been made meanwhile.
    """
    state = await store.report_spike(lat, lng)
    return await resolve_advisory(store, provider, lat, lng, state.generation)


async def resolve_advisory(store: DashboardStore, provider: AdvisoryProvider, lat: float, lng: float, generation: int) -> str:
    """Call the provider for an already recorded report and store the outcome."""
    telemetry = store.snapshot.telemetry
    prompt = build_advisory_prompt(lat, lng, telemetry.aqi if telemetry else None)
    try:
        text = await provider.generate(prompt)
    except Exception as e:
        logger.warning("Advisory request failed for %s,%s: %s", lat, lng, e)
        text = fallback_advisory(lat)
    state = await store.dispatch(AdvisoryResolved(generation=generation, text=text))
    if state.generation != generation:
        logger.debug("Discarded stale advisory for generation %s (current %s)", generation, state.generation)
    return text
