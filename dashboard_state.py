"""
Dashboard state container.

All updates are events applied by `reduce` through `DashboardStore.dispatch`,
one at a time. Each spike report starts a new advisory generation; an advisory
result is only applied if it belongs to the current generation, so the latest
click always wins.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Set, Union

from schemas import DashboardSnapshot, Report, TelemetryReading

logger = logging.getLogger(__name__)

INITIAL_ADVISORY = "Scan the map or click a zone to report a spike..."


@dataclass(frozen=True)
class TelemetryLoaded:
    reading: TelemetryReading


@dataclass(frozen=True)
class SpikeReported:
    lat: float
    lng: float
    timestamp_ms: int
    reward: int


@dataclass(frozen=True)
class AdvisoryResolved:
    generation: int
    text: str


Event = Union[TelemetryLoaded, SpikeReported, AdvisoryResolved]


def initial_state(credits: int, advisory: str = INITIAL_ADVISORY) -> DashboardSnapshot:
    return DashboardSnapshot(telemetry=None, reports=[], advisory=advisory, credits=credits)


def next_report_id(state: DashboardSnapshot, timestamp_ms: int) -> int:
    """Creation timestamp, bumped past the previous id if two clicks share a millisecond."""
    if state.reports:
        return max(timestamp_ms, state.reports[-1].id + 1)
    return timestamp_ms


def reduce(state: DashboardSnapshot, event: Event) -> DashboardSnapshot:
    """Return the state after applying `event`. Never mutates `state`."""
    if isinstance(event, TelemetryLoaded):
        return state.model_copy(update={"telemetry": event.reading})

    if isinstance(event, SpikeReported):
        report = Report(id=next_report_id(state, event.timestamp_ms), lat=event.lat, lng=event.lng)
        return state.model_copy(update={
            "reports": [*state.reports, report],
            "credits": state.credits + event.reward,
            "loading": True,
            "generation": state.generation + 1,
        })

    if isinstance(event, AdvisoryResolved):
        if event.generation != state.generation:
            return state
        return state.model_copy(update={"advisory": event.text, "loading": False})

    raise TypeError(f"Unknown dashboard event: {event!r}")


class DashboardStore:
    """In-memory session state; lost on restart."""

    def __init__(
        self,
        initial_credits: int = 110,
        report_reward: int = 10,
        clock: Callable[[], float] = time.time,
    ):
        self._state = initial_state(initial_credits)
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self.report_reward = report_reward
        self.clock = clock

    @property
    def snapshot(self) -> DashboardSnapshot:
        return self._state

    async def dispatch(self, event: Event) -> DashboardSnapshot:
        async with self._lock:
            self._state = reduce(self._state, event)
            return self._state

    async def report_spike(self, lat: float, lng: float) -> DashboardSnapshot:
        """Record a report, award credits and open a new advisory generation."""
        event = SpikeReported(
            lat=lat,
            lng=lng,
            timestamp_ms=int(self.clock() * 1000),
            reward=self.report_reward,
        )
        return await self.dispatch(event)

    def track(self, task: asyncio.Task) -> asyncio.Task:
        """Keep a reference to a background advisory task until it finishes."""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every tracked advisory task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel in-flight advisory tasks."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Cancelling %s pending advisory task(s)", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


def latest_report(state: DashboardSnapshot) -> Optional[Report]:
    return state.reports[-1] if state.reports else None
