"""
Text rendering for the telemetry panel, advisory box and credits badge.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from config import Settings
from map_surface import map_layers, map_view
from schemas import DashboardResponse, DashboardSnapshot, SensorRow, TelemetryReading

PLACEHOLDER = "---"
PROCESSING_MESSAGE = "Processing Spike Telemetry..."


def format_number(value: float) -> str:
    """Shortest form: 55.2 -> '55.2', 12.0 -> '12', 0.00001 -> '0.00001'."""
    value = float(value)
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    # browsers switch to exponent form only below 1e-6
    if "e" in text and 1e-6 <= abs(value) < 1e-4:
        return format(Decimal(text), "f")
    return text


def sensor_rows(reading: Optional[TelemetryReading]) -> List[Tuple[str, str]]:
    if reading is None:
        return [
            ("Hazard Index (AQI)", PLACEHOLDER),
            ("PM 2.5", PLACEHOLDER),
            ("Nitrogen Oxide", PLACEHOLDER),
            ("Sulfur Dioxide", PLACEHOLDER),
            ("Carbon Monoxide", PLACEHOLDER),
        ]
    return [
        ("Hazard Index (AQI)", f"{reading.aqi} / 5"),
        ("PM 2.5", f"{format_number(reading.pm2_5)} µg/m³"),
        ("Nitrogen Oxide", f"{format_number(reading.no2)} ppb"),
        ("Sulfur Dioxide", f"{format_number(reading.so2)} ppb"),
        ("Carbon Monoxide", f"{reading.co:.2f} ppm"),
    ]


def advisory_display(snapshot: DashboardSnapshot) -> str:
    if snapshot.loading:
        return PROCESSING_MESSAGE
    return f'"{snapshot.advisory}"'


def credits_display(snapshot: DashboardSnapshot) -> str:
    return f"{snapshot.credits} Green Credits Earned"


def render_dashboard(snapshot: DashboardSnapshot, settings: Settings) -> DashboardResponse:
    return DashboardResponse(
        state=snapshot,
        sensor_rows=[SensorRow(label=label, value=value) for label, value in sensor_rows(snapshot.telemetry)],
        advisory_display=advisory_display(snapshot),
        credits_display=credits_display(snapshot),
        layers=map_layers(snapshot, settings),
    )


def template_context(snapshot: DashboardSnapshot, settings: Settings) -> Dict[str, Any]:
    """Context for templates/dashboard.html."""
    rendered = render_dashboard(snapshot, settings)
    return {
        "dashboard": rendered,
        "map_view": map_view(settings),
        "layers": [layer.model_dump() for layer in rendered.layers],
        "reward": settings.report_credit_reward,
    }
