"""
Pydantic schemas for dashboard state and API request/response validation.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


# ----- Telemetry -----
class TelemetryReading(BaseModel):
    aqi: int = Field(..., ge=1, le=5)
    pm2_5: float
    no2: float
    so2: float
    co: float

    class Config:
        frozen = True


# ----- Reports -----
class ReportCreate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Report(BaseModel):
    id: int  # creation timestamp in ms
    lat: float
    lng: float

    class Config:
        frozen = True


# ----- Map -----
class CircleLayer(BaseModel):
    key: str
    lat: float
    lng: float
    radius: float  # metres
    color: str
    fill_color: str
    fill_opacity: Optional[float] = None
    weight: Optional[int] = None


# ----- Dashboard -----
class DashboardSnapshot(BaseModel):
    telemetry: Optional[TelemetryReading] = None
    reports: List[Report] = Field(default_factory=list)
    advisory: str
    credits: int
    loading: bool = False
    generation: int = 0

    class Config:
        frozen = True


class SensorRow(BaseModel):
    label: str
    value: str


class DashboardResponse(BaseModel):
    state: DashboardSnapshot
    sensor_rows: List[SensorRow]
    advisory_display: str
    credits_display: str
    layers: List[CircleLayer]
