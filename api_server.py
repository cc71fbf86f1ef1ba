import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from advisory_service import AdvisoryProvider, build_advisory_provider, resolve_advisory
from cache import CachedTelemetryProvider, create_redis
from config import Settings, settings as default_settings
from dashboard_state import DashboardStore, latest_report
from dashboard_view import render_dashboard, template_context
from schemas import DashboardResponse, ReportCreate, TelemetryReading
from telemetry_service import OpenWeatherTelemetryProvider, TelemetryProvider, refresh_telemetry


# -----------------------------
# App setup
# -----------------------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates")
STATIC_DIR = os.path.join(BASE_DIR, "static")

logging.basicConfig(
    level=getattr(logging, default_settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=TEMPLATES_DIR)


def build_telemetry_provider(settings: Settings, redis=None) -> TelemetryProvider:
    provider = OpenWeatherTelemetryProvider(settings.weather_api_key, timeout=settings.http_timeout_seconds)
    if redis is not None:
        return CachedTelemetryProvider(provider, redis, ttl=settings.telemetry_cache_ttl)
    return provider


@asynccontextmanager
async def lifespan(app: FastAPI):
    s: Settings = app.state.settings
    # one telemetry fetch for the monitored point
    await refresh_telemetry(app.state.store, app.state.telemetry_provider, s.monitor_lat, s.monitor_lon)
    try:
        yield
    finally:
        await app.state.store.aclose()
        if app.state.redis is not None:
            await app.state.redis.aclose()


def create_app(
    settings: Optional[Settings] = None,
    telemetry_provider: Optional[TelemetryProvider] = None,
    advisory_provider: Optional[AdvisoryProvider] = None,
) -> FastAPI:
    s = settings or default_settings
    app = FastAPI(title="Eco Scan AI", version="0.1.0", lifespan=lifespan)
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    app.state.settings = s
    app.state.redis = None
    if telemetry_provider is None:
        app.state.redis = create_redis(s.redis_url)
        telemetry_provider = build_telemetry_provider(s, app.state.redis)
    app.state.telemetry_provider = telemetry_provider
    app.state.advisory_provider = advisory_provider or build_advisory_provider(s)
    app.state.store = DashboardStore(initial_credits=s.initial_credits, report_reward=s.report_credit_reward)

    app.include_router(_routes())
    return app


def _routes() -> APIRouter:
    router = APIRouter()

    # -----------------------------
    # Routes
    # -----------------------------
    @router.get("/", response_class=HTMLResponse)
    async def index(request: Request):
        state = request.app.state
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            template_context(state.store.snapshot, state.settings),
        )

    @router.get("/health")
    async def health():
        return {"status": "ok"}

    @router.get("/api/dashboard", response_model=DashboardResponse)
    async def api_dashboard(request: Request):
        state = request.app.state
        return render_dashboard(state.store.snapshot, state.settings)

    @router.post("/api/reports", response_model=DashboardResponse, status_code=202)
    async def api_report_spike(body: ReportCreate, request: Request):
        """
        Record a spike report immediately and ask for advice in the background.
        Poll /api/dashboard until `state.loading` is false for the advisory.
        """
        state = request.app.state
        store: DashboardStore = state.store
        snapshot = await store.report_spike(body.lat, body.lng)
        logger.info("Spike reported at %s,%s (report %s)", body.lat, body.lng, latest_report(snapshot).id)
        store.track(asyncio.create_task(
            resolve_advisory(store, state.advisory_provider, body.lat, body.lng, snapshot.generation)
        ))
        return render_dashboard(snapshot, state.settings)

    @router.get("/api/telemetry", response_model=Optional[TelemetryReading])
    async def api_telemetry(request: Request):
        return request.app.state.store.snapshot.telemetry

    @router.post("/api/telemetry/refresh", response_model=Optional[TelemetryReading])
    async def api_telemetry_refresh(request: Request):
        state = request.app.state
        s: Settings = state.settings
        provider = state.telemetry_provider
        # an explicit refresh always reaches the weather API
        if isinstance(provider, CachedTelemetryProvider):
            provider = provider.write_through()
        return await refresh_telemetry(state.store, provider, s.monitor_lat, s.monitor_lon)

    return router


app = create_app()


# Dev server hint:
# uvicorn api_server:app --reload --host 0.0.0.0 --port 8000
