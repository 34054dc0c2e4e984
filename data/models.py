"""Typed records for the traffic data pipeline."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AreaCatalogEntry(BaseModel):
    """Static reference data for one monitored area."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    road_types: List[str] = Field(default_factory=list)


class FlowReading(BaseModel):
    """Flow-segment speeds for one point, as reported by the flow feed."""
    model_config = ConfigDict(frozen=True)

    current_speed: float = Field(ge=0)
    free_flow_speed: float = Field(gt=0)
    current_travel_time: Optional[float] = None
    free_flow_travel_time: Optional[float] = None
    confidence: Optional[float] = None
    road_closure: bool = False


class IncidentReading(BaseModel):
    """One incident near a point, normalized from the incident feed."""
    model_config = ConfigDict(frozen=True)

    severity_code: Optional[int] = None
    severity: str
    category: str
    status: str
    description: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class AirQualityReading(BaseModel):
    """
    Current air quality at a point.

    `aqi` is the provider's 1 (good) to 5 (very poor) band; `index` rescales
    it to 0-100 with higher meaning cleaner air.
    """
    model_config = ConfigDict(frozen=True)

    aqi: int = Field(ge=1, le=5)
    index: float = Field(ge=0, le=100)
    pm2_5: Optional[float] = None
    pm10: Optional[float] = None


class TrafficRecord(BaseModel):
    """
    One (area, road type) observation.

    Speed and travel time are derived from congestion so the record stays
    consistent when live data is missing.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    area: str
    area_id: str
    road_type: str
    congestion: int = Field(ge=0, le=100)
    speed: int
    travel_time: int
    volume: int
    incidents: int = Field(ge=0)
    timestamp: datetime
    live: bool = False


class TrafficFilter(BaseModel):
    """Optional filters for an aggregation call. Empty lists mean 'no filter'."""
    model_config = ConfigDict(populate_by_name=True)

    areas: List[str] = Field(default_factory=list)
    road_types: List[str] = Field(default_factory=list, alias="roadTypes")
    severity: List[str] = Field(default_factory=list)
    metrics: List[str] = Field(default_factory=list)


class LiveTrafficSnapshot(BaseModel):
    """Aggregated live values handed to the simulation engine."""
    model_config = ConfigDict(frozen=True)

    congestion: Optional[float] = None
    average_speed: Optional[float] = None
    volume: Optional[float] = None
    air_quality_index: Optional[float] = None
    record_count: int = 0

    @property
    def is_empty(self) -> bool:
        return (
            self.congestion is None
            and self.average_speed is None
            and self.volume is None
            and self.air_quality_index is None
        )
