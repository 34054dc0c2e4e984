"""
Simulation Engine

Runs the four parameterized what-if scenarios (traffic, growth,
environmental, density) and returns bounded metrics plus qualitative area
ratings.

The engine is synchronous and pure: the same scenario, parameters, live
snapshot and location always give the same result. Coefficients and area
rules come from the 'simulation' settings section; the values below are
used when a key is missing.

Usage:
    engine = SimulationEngine()
    result = engine.run("traffic", {"signalTiming": 80})
    result.metrics["congestion_level"]
"""

import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from data.city_profile import (
    EFFICIENCY_METRICS,
    GREEN_SPACE_METRICS,
    METRICS_BY_NAME,
    bounded_metric,
    derive_key,
)
from data.models import LiveTrafficSnapshot
from simulation.models import (
    AREA_LABELS,
    METRIC_RANGES,
    PARAMETER_MODELS,
    AreaRating,
    DensityParameters,
    EnvironmentalParameters,
    GrowthParameters,
    Scenario,
    SimulationResult,
    TrafficParameters,
)
from utils.config_loader import get_section

logger = logging.getLogger(__name__)

LIVE = "live"
MODEL = "model"

DEFAULT_COEFFICIENTS: Dict[str, Dict[str, float]] = {
    "traffic": {
        "signal_timing_weight": 0.3,
        "public_transport_weight": 0.4,
        "road_condition_weight": 0.3,
        "base_speed": 10,
        "road_condition_speed_factor": 0.5,
        "base_wait_time": 10,
        "wait_time_factor": 0.2,
        "base_flow": 500,
        "density_flow_factor": 10,
    },
    "growth": {
        "population_divisor": 10,
        "commercial_impact_factor": 1.2,
        "sustainability_factor": 0.8,
    },
    "environmental": {
        "carbon_factor": 0.8,
        "water_quality_factor": 0.5,
    },
    "density": {
        "population_density_factor": 1.5,
        "traffic_impact_factor": 0.8,
        "service_access_factor": 0.9,
    },
}

DEFAULT_AREA_RULES: Dict[str, List[Dict[str, Any]]] = {
    "traffic": [
        {"name": "Downtown", "level": "High"},
        {"name": "Highway Junction", "level": "Medium"},
        {"name": "Shopping District", "parameter": "density", "threshold": 70,
         "above": "High", "otherwise": "Medium"},
    ],
    "growth": [
        {"name": "North District", "level": "High"},
        {"name": "Waterfront", "level": "Medium"},
        {"name": "Industrial Zone", "parameter": "industrial_zone", "threshold": 60,
         "above": "High", "otherwise": "Low"},
    ],
    "environmental": [
        {"name": "Industrial Park", "level": "Air Pollution"},
        {"name": "River Basin", "parameter": "water_usage", "threshold": 70,
         "above": "Water Scarcity", "otherwise": "Water Quality"},
        {"name": "Downtown", "parameter": "pollution", "threshold": 70,
         "above": "Emissions", "otherwise": "Moderate Pollution"},
    ],
    "density": [
        {"name": "Downtown", "parameter": "central_density", "threshold": 70,
         "above": "Very High", "otherwise": "High"},
        {"name": "Suburbs", "parameter": "suburban_density", "threshold": 60,
         "above": "High", "otherwise": "Medium"},
        {"name": "New Developments", "level": "Growing"},
    ],
}

# City keying metrics shown next to each scenario's results
BASELINE_METRICS: Dict[Scenario, Tuple[str, ...]] = {
    Scenario.TRAFFIC: ("congestion_rate", "average_speed"),
    Scenario.GROWTH: tuple(spec.name for spec in EFFICIENCY_METRICS),
    Scenario.ENVIRONMENTAL: tuple(spec.name for spec in GREEN_SPACE_METRICS),
    Scenario.DENSITY: ("park_accessibility", "transport_efficiency"),
}


class UnknownScenarioError(ValueError):
    """Raised when a scenario name is not one of the four supported ones."""

    def __init__(self, scenario: Any):
        self.scenario = scenario
        supported = ", ".join(s.value for s in Scenario)
        super().__init__(f"Unknown scenario '{scenario}'. Supported: {supported}")


def resolve_scenario(scenario: Union[Scenario, str]) -> Scenario:
    """Normalize a scenario name (case-insensitive) to a Scenario."""
    if isinstance(scenario, Scenario):
        return scenario
    try:
        return Scenario(str(scenario).strip().lower())
    except ValueError:
        raise UnknownScenarioError(scenario) from None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def bound(value: float, limits: Tuple[int, int]) -> int:
    """Round and clamp a metric into its documented range."""
    low, high = limits
    return max(low, min(high, round_half_up(value)))


Metrics = Dict[str, int]
Sources = Dict[str, str]


class SimulationEngine:
    """
    Deterministic scenario calculator.

    Args:
        config: Optional full settings mapping; defaults to the loaded
            settings.yaml
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        sim_config = get_section("simulation", config)

        self.coefficients: Dict[str, Dict[str, float]] = {}
        for scenario, defaults in DEFAULT_COEFFICIENTS.items():
            self.coefficients[scenario] = {**defaults, **(sim_config.get(scenario) or {})}

        area_config = sim_config.get("areas") or {}
        self.area_rules = {
            scenario: list(area_config.get(scenario) or rules)
            for scenario, rules in DEFAULT_AREA_RULES.items()
        }

        self._calculators: Dict[Scenario, Callable[..., Tuple[Metrics, Sources]]] = {
            Scenario.TRAFFIC: self._traffic,
            Scenario.GROWTH: self._growth,
            Scenario.ENVIRONMENTAL: self._environmental,
            Scenario.DENSITY: self._density,
        }

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def run(
        self,
        scenario: Union[Scenario, str],
        params: Union[BaseModel, Mapping[str, Any], None] = None,
        live: Optional[LiveTrafficSnapshot] = None,
        location: Optional[str] = None,
    ) -> SimulationResult:
        """
        Run one scenario.

        Args:
            scenario: traffic | growth | environmental | density
            params: Parameter model or mapping (snake_case or camelCase keys);
                missing sliders take their defaults
            live: Aggregated live values that override model outputs
            location: Optional city name for the baseline metrics

        Returns:
            SimulationResult with every metric inside its range

        Raises:
            UnknownScenarioError: scenario is not supported
        """
        resolved = resolve_scenario(scenario)
        parameters = self.coerce_parameters(resolved, params)
        live = live if live is not None and not live.is_empty else None

        metrics, sources = self._calculators[resolved](parameters, live)
        areas = self.rate_areas(resolved, parameters)
        baseline = self.baseline(resolved, location) if location else {}

        live_metrics = [name for name, source in sources.items() if source == LIVE]
        logger.info(
            f"Simulated {resolved.value} scenario"
            + (f" for {location}" if location else "")
            + (f" with live {', '.join(live_metrics)}" if live_metrics else "")
        )

        return SimulationResult(
            scenario=resolved,
            metrics=metrics,
            metric_ranges=dict(METRIC_RANGES[resolved]),
            sources=sources,
            area_label=AREA_LABELS[resolved],
            areas=areas,
            baseline=baseline,
            location=location,
        )

    @staticmethod
    def coerce_parameters(
        scenario: Scenario,
        params: Union[BaseModel, Mapping[str, Any], None],
    ) -> BaseModel:
        model_cls = PARAMETER_MODELS[scenario]
        if isinstance(params, model_cls):
            return params
        if isinstance(params, BaseModel):
            params = params.model_dump()
        return model_cls.model_validate(dict(params or {}))

    def rate_areas(self, scenario: Scenario, parameters: BaseModel) -> List[AreaRating]:
        """Apply the configured area rules for a scenario."""
        ratings = []
        for rule in self.area_rules[scenario.value]:
            if "parameter" in rule:
                value = getattr(parameters, rule["parameter"])
                level = rule["above"] if value > rule["threshold"] else rule["otherwise"]
            else:
                level = rule["level"]
            ratings.append(AreaRating(name=rule["name"], level=level))
        return ratings

    @staticmethod
    def baseline(scenario: Scenario, location: str) -> Dict[str, int]:
        key = derive_key(location)
        return {
            name: bounded_metric(key, METRICS_BY_NAME[name]).value
            for name in BASELINE_METRICS[scenario]
        }

    # =========================================================================
    # SCENARIOS
    # =========================================================================

    def _traffic(
        self,
        params: TrafficParameters,
        live: Optional[LiveTrafficSnapshot],
    ) -> Tuple[Metrics, Sources]:
        c = self.coefficients["traffic"]
        ranges = METRIC_RANGES[Scenario.TRAFFIC]
        metrics: Metrics = {}
        sources: Sources = {}

        modelled_congestion = 100 - (
            params.signal_timing * c["signal_timing_weight"]
            + params.public_transport * c["public_transport_weight"]
            + params.road_condition * c["road_condition_weight"]
        )
        self._pick(metrics, sources, "congestion_level", ranges,
                   live.congestion if live else None, modelled_congestion)
        self._pick(metrics, sources, "average_speed", ranges,
                   live.average_speed if live else None,
                   c["base_speed"] + params.road_condition * c["road_condition_speed_factor"])
        self._pick(metrics, sources, "wait_time", ranges,
                   None, c["base_wait_time"] + (100 - params.signal_timing) * c["wait_time_factor"])
        self._pick(metrics, sources, "traffic_flow", ranges,
                   live.volume if live else None,
                   c["base_flow"] + params.density * c["density_flow_factor"])
        return metrics, sources

    def _growth(self, params: GrowthParameters, live: Optional[LiveTrafficSnapshot]) -> Tuple[Metrics, Sources]:
        c = self.coefficients["growth"]
        ranges = METRIC_RANGES[Scenario.GROWTH]
        zones = (params.commercial_zone, params.residential_zone, params.industrial_zone)

        modelled = {
            "population_growth": params.population / c["population_divisor"],
            "land_use_efficiency": sum(zones) / len(zones),
            "economic_impact": params.commercial_zone * c["commercial_impact_factor"],
            "sustainability_score": (100 - params.industrial_zone) * c["sustainability_factor"],
        }
        return self._modelled(modelled, ranges)

    def _environmental(
        self,
        params: EnvironmentalParameters,
        live: Optional[LiveTrafficSnapshot],
    ) -> Tuple[Metrics, Sources]:
        c = self.coefficients["environmental"]
        ranges = METRIC_RANGES[Scenario.ENVIRONMENTAL]
        metrics: Metrics = {}
        sources: Sources = {}

        self._pick(metrics, sources, "air_quality_index", ranges,
                   live.air_quality_index if live else None, 100 - params.pollution)

        rest, rest_sources = self._modelled({
            "green_space_coverage": params.green_coverage,
            "carbon_footprint": params.pollution * c["carbon_factor"],
            "water_quality": 100 - params.pollution * c["water_quality_factor"],
            "sustainability_score": (
                params.green_coverage + params.waste_management + 100 - params.pollution
            ) / 3,
        }, ranges)
        metrics.update(rest)
        sources.update(rest_sources)
        return metrics, sources

    def _density(self, params: DensityParameters, live: Optional[LiveTrafficSnapshot]) -> Tuple[Metrics, Sources]:
        c = self.coefficients["density"]
        ranges = METRIC_RANGES[Scenario.DENSITY]

        modelled = {
            "population_density": params.central_density * c["population_density_factor"],
            "housing_availability": params.residential_density,
            # Negative when infrastructure outpaces density; floored at 0
            "traffic_impact": (params.central_density - params.infrastructure) * c["traffic_impact_factor"],
            "public_service_access": params.mixed_use * c["service_access_factor"],
            "quality_of_life": (params.infrastructure + params.mixed_use + 100 - params.central_density) / 3,
        }
        return self._modelled(modelled, ranges)

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _pick(
        metrics: Metrics,
        sources: Sources,
        name: str,
        ranges: Dict[str, Tuple[int, int]],
        live_value: Optional[float],
        modelled_value: float,
    ) -> None:
        """Prefer a present live value over the modelled one."""
        if live_value is not None:
            metrics[name] = bound(live_value, ranges[name])
            sources[name] = LIVE
        else:
            metrics[name] = bound(modelled_value, ranges[name])
            sources[name] = MODEL

    @staticmethod
    def _modelled(values: Dict[str, float], ranges: Dict[str, Tuple[int, int]]) -> Tuple[Metrics, Sources]:
        metrics = {name: bound(value, ranges[name]) for name, value in values.items()}
        return metrics, {name: MODEL for name in metrics}
