"""Parameter sets and result records for the what-if simulations."""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Scenario(str, Enum):
    TRAFFIC = "traffic"
    GROWTH = "growth"
    ENVIRONMENTAL = "environmental"
    DENSITY = "density"


def _slider(default: float, alias: str):
    return Field(default=float(default), ge=0, le=100, alias=alias)


class _Parameters(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class TrafficParameters(_Parameters):
    density: float = _slider(50, "density")
    signal_timing: float = _slider(60, "signalTiming")
    public_transport: float = _slider(30, "publicTransport")
    road_condition: float = _slider(70, "roadCondition")


class GrowthParameters(_Parameters):
    population: float = _slider(65, "population")
    commercial_zone: float = _slider(40, "commercialZone")
    residential_zone: float = _slider(50, "residentialZone")
    industrial_zone: float = _slider(30, "industrialZone")


class EnvironmentalParameters(_Parameters):
    green_coverage: float = _slider(35, "greenCoverage")
    pollution: float = _slider(60, "pollution")
    waste_management: float = _slider(45, "wasteManagement")
    water_usage: float = _slider(55, "waterUsage")


class DensityParameters(_Parameters):
    central_density: float = _slider(80, "centralDensity")
    suburban_density: float = _slider(40, "suburbanDensity")
    mixed_use: float = _slider(50, "mixedUse")
    infrastructure: float = _slider(60, "infrastructure")
    residential_density: float = _slider(45, "residentialDensity")


PARAMETER_MODELS = {
    Scenario.TRAFFIC: TrafficParameters,
    Scenario.GROWTH: GrowthParameters,
    Scenario.ENVIRONMENTAL: EnvironmentalParameters,
    Scenario.DENSITY: DensityParameters,
}

# Documented [min, max] for every result metric
METRIC_RANGES: Dict[Scenario, Dict[str, Tuple[int, int]]] = {
    Scenario.TRAFFIC: {
        "congestion_level": (0, 100),
        "average_speed": (0, 130),
        "wait_time": (0, 60),
        "traffic_flow": (0, 5000),
    },
    Scenario.GROWTH: {
        "population_growth": (0, 10),
        "land_use_efficiency": (0, 100),
        "economic_impact": (0, 120),
        "sustainability_score": (0, 100),
    },
    Scenario.ENVIRONMENTAL: {
        "air_quality_index": (0, 100),
        "green_space_coverage": (0, 100),
        "carbon_footprint": (0, 100),
        "water_quality": (0, 100),
        "sustainability_score": (0, 100),
    },
    Scenario.DENSITY: {
        "population_density": (0, 150),
        "housing_availability": (0, 100),
        "traffic_impact": (0, 80),
        "public_service_access": (0, 100),
        "quality_of_life": (0, 100),
    },
}

AREA_LABELS = {
    Scenario.TRAFFIC: "hotspots",
    Scenario.GROWTH: "development_areas",
    Scenario.ENVIRONMENTAL: "critical_areas",
    Scenario.DENSITY: "hotspots",
}

# Allowed qualitative levels per scenario
AREA_LEVELS = {
    Scenario.TRAFFIC: ("Low", "Medium", "High"),
    Scenario.GROWTH: ("Low", "Medium", "High"),
    Scenario.ENVIRONMENTAL: (
        "Air Pollution", "Water Quality", "Water Scarcity", "Emissions", "Moderate Pollution",
    ),
    Scenario.DENSITY: ("Growing", "Medium", "High", "Very High"),
}


class AreaRating(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    level: str


class SimulationResult(BaseModel):
    """Output of one engine run. Metrics are clamped to METRIC_RANGES."""
    model_config = ConfigDict(frozen=True)

    scenario: Scenario
    metrics: Dict[str, int]
    metric_ranges: Dict[str, Tuple[int, int]]
    sources: Dict[str, str]
    area_label: str
    areas: List[AreaRating]
    baseline: Dict[str, int] = Field(default_factory=dict)
    location: Optional[str] = None
