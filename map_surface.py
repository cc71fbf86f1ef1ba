"""
Leaflet map layers: hazard circle over the monitored point and one circle per reported spike.
"""
from typing import Any, Dict, List

from config import Settings
from schemas import CircleLayer, DashboardSnapshot

HAZARD_COLOR = "#b71c1c"
REPORT_COLOR = "orange"


def hazard_circle(settings: Settings) -> CircleLayer:
    return CircleLayer(
        key="hazard",
        lat=settings.monitor_lat,
        lng=settings.monitor_lon,
        radius=settings.hazard_radius_m,
        color=HAZARD_COLOR,
        fill_color=HAZARD_COLOR,
        fill_opacity=0.35,
        weight=2,
    )


def map_layers(snapshot: DashboardSnapshot, settings: Settings) -> List[CircleLayer]:
    """Hazard circle only once telemetry exists; report circles in report order."""
    layers: List[CircleLayer] = []
    if snapshot.telemetry is not None:
        layers.append(hazard_circle(settings))
    for report in snapshot.reports:
        layers.append(CircleLayer(
            key=f"report-{report.id}",
            lat=report.lat,
            lng=report.lng,
            radius=settings.report_radius_m,
            color=REPORT_COLOR,
            fill_color=REPORT_COLOR,
        ))
    return layers


def map_view(settings: Settings) -> Dict[str, Any]:
    """Initial view handed to the page script."""
    return {
        "center": [settings.monitor_lat, settings.monitor_lon],
        "zoom": settings.map_zoom,
        "tile_url": settings.tile_url,
    }
