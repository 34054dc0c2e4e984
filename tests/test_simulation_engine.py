"""Tests for the what-if simulation engine."""

import random

import pytest
from pydantic import ValidationError

from data.models import LiveTrafficSnapshot
from simulation.engine import SimulationEngine, UnknownScenarioError, round_half_up
from simulation.models import AREA_LEVELS, METRIC_RANGES, PARAMETER_MODELS, Scenario, TrafficParameters


@pytest.fixture
def engine(settings):
    return SimulationEngine(settings)


def _areas(result):
    return {area.name: area.level for area in result.areas}


class TestDefaults:

    def test_traffic(self, engine):
        result = engine.run("traffic")

        assert result.metrics == {
            "congestion_level": 49,
            "average_speed": 45,
            "wait_time": 18,
            "traffic_flow": 1000,
        }
        assert set(result.sources.values()) == {"model"}
        assert result.area_label == "hotspots"
        assert _areas(result) == {"Downtown": "High", "Highway Junction": "Medium", "Shopping District": "Medium"}

    def test_growth(self, engine):
        result = engine.run("growth")

        assert result.metrics == {
            "population_growth": 7,
            "land_use_efficiency": 40,
            "economic_impact": 48,
            "sustainability_score": 56,
        }
        assert result.area_label == "development_areas"
        assert _areas(result)["Industrial Zone"] == "Low"

    def test_environmental(self, engine):
        result = engine.run("environmental")

        assert result.metrics == {
            "air_quality_index": 40,
            "green_space_coverage": 35,
            "carbon_footprint": 48,
            "water_quality": 70,
            "sustainability_score": 40,
        }
        assert result.area_label == "critical_areas"
        assert _areas(result) == {
            "Industrial Park": "Air Pollution",
            "River Basin": "Water Quality",
            "Downtown": "Moderate Pollution",
        }

    def test_density(self, engine):
        result = engine.run("density")

        assert result.metrics == {
            "population_density": 120,
            "housing_availability": 45,
            "traffic_impact": 16,
            "public_service_access": 45,
            "quality_of_life": 43,
        }
        assert _areas(result) == {"Downtown": "Very High", "Suburbs": "Medium", "New Developments": "Growing"}


class TestParameters:

    def test_camel_case_keys(self, engine):
        result = engine.run("traffic", {"signalTiming": 100, "publicTransport": 100, "roadCondition": 100})
        assert result.metrics["congestion_level"] == 0
        assert result.metrics["wait_time"] == 10

    def test_model_instances(self, engine):
        result = engine.run(Scenario.TRAFFIC, TrafficParameters(density=80))
        assert result.metrics["traffic_flow"] == 1300
        assert _areas(result)["Shopping District"] == "High"

    def test_thresholds_are_strict(self, engine):
        assert _areas(engine.run("density", {"central_density": 70}))["Downtown"] == "High"
        assert _areas(engine.run("density", {"central_density": 71}))["Downtown"] == "Very High"
        assert _areas(engine.run("environmental", {"water_usage": 71}))["River Basin"] == "Water Scarcity"
        assert _areas(engine.run("growth", {"industrialZone": 61}))["Industrial Zone"] == "High"

    def test_out_of_range_slider_is_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.run("traffic", {"density": 101})

    def test_defaults_dump_like_explicit_values(self):
        for model in PARAMETER_MODELS.values():
            defaults = model().model_dump()
            assert model.model_validate({name: int(value) for name, value in defaults.items()}).model_dump() == defaults
            assert all(isinstance(value, float) for value in defaults.values())
        assert TrafficParameters().model_dump() == TrafficParameters(signalTiming=60).model_dump()

    def test_traffic_impact_never_negative(self, engine):
        result = engine.run("density", {"central_density": 20, "infrastructure": 90})
        assert result.metrics["traffic_impact"] == 0


class TestScenarios:

    def test_unknown_scenario(self, engine):
        with pytest.raises(UnknownScenarioError) as exc_info:
            engine.run("weather")
        assert isinstance(exc_info.value, ValueError)
        assert "weather" in str(exc_info.value)

    def test_scenario_names_are_case_insensitive(self, engine):
        assert engine.run(" Traffic ").scenario == Scenario.TRAFFIC


class TestLiveData:

    def test_live_values_override_model(self, engine):
        live = LiveTrafficSnapshot(congestion=72.4, average_speed=31.6, volume=1234.5, record_count=4)

        result = engine.run("traffic", live=live)

        assert result.metrics["congestion_level"] == 72
        assert result.metrics["average_speed"] == 32
        assert result.metrics["traffic_flow"] == 1235
        assert result.metrics["wait_time"] == 18
        assert result.sources == {
            "congestion_level": "live",
            "average_speed": "live",
            "wait_time": "model",
            "traffic_flow": "live",
        }

    def test_live_values_are_clamped(self, engine):
        result = engine.run("traffic", live=LiveTrafficSnapshot(volume=9000))
        assert result.metrics["traffic_flow"] == 5000

    def test_zero_congestion_is_a_live_value(self, engine):
        result = engine.run("traffic", live=LiveTrafficSnapshot(congestion=0))
        assert result.metrics["congestion_level"] == 0
        assert result.sources["congestion_level"] == "live"

    def test_empty_snapshot_is_ignored(self, engine):
        result = engine.run("traffic", live=LiveTrafficSnapshot())
        assert set(result.sources.values()) == {"model"}

    def test_live_air_quality(self, engine):
        result = engine.run("environmental", live=LiveTrafficSnapshot(air_quality_index=82))
        assert result.metrics["air_quality_index"] == 82
        assert result.sources["air_quality_index"] == "live"


class TestBaseline:

    def test_baseline_for_location(self, engine):
        result = engine.run("traffic", location="Dhaka, Bangladesh")

        assert result.baseline == {"congestion_rate": 78, "average_speed": 38}
        assert result.metrics == engine.run("traffic").metrics
        assert result.location == "Dhaka, Bangladesh"

    def test_baseline_metrics_per_scenario(self, engine):
        assert set(engine.run("density", location="Dhaka").baseline) == {
            "park_accessibility", "transport_efficiency",
        }
        assert "green_coverage" in engine.run("environmental", location="Dhaka").baseline
        assert "energy_efficiency" in engine.run("growth", location="Dhaka").baseline

    def test_no_location_no_baseline(self, engine):
        assert engine.run("growth").baseline == {}


class TestProperties:

    def test_metrics_stay_in_range_for_random_sliders(self, engine):
        rng = random.Random(1234)
        for scenario in Scenario:
            fields = PARAMETER_MODELS[scenario].model_fields
            for _ in range(250):
                params = {name: rng.uniform(0, 100) for name in fields}
                result = engine.run(scenario, params)

                for name, value in result.metrics.items():
                    low, high = METRIC_RANGES[scenario][name]
                    assert low <= value <= high, (scenario, name, value)
                assert all(area.level in AREA_LEVELS[scenario] for area in result.areas)

    def test_congestion_monotonic_in_signal_timing_and_transit(self, engine):
        by_signal = [engine.run("traffic", {"signal_timing": v}).metrics["congestion_level"] for v in range(101)]
        by_transit = [engine.run("traffic", {"public_transport": v}).metrics["congestion_level"] for v in range(101)]

        assert all(a >= b for a, b in zip(by_signal, by_signal[1:]))
        assert all(a >= b for a, b in zip(by_transit, by_transit[1:]))

    def test_deterministic(self, engine):
        params = {"density": 33, "signal_timing": 12.5}
        assert engine.run("traffic", params, location="Khulna") == engine.run("traffic", params, location="Khulna")

    def test_round_half_up(self):
        assert round_half_up(6.5) == 7
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2


class TestConfiguration:

    def test_coefficients_come_from_settings(self):
        engine = SimulationEngine({"simulation": {"traffic": {"base_flow": 1000}}})
        assert engine.run("traffic").metrics["traffic_flow"] == 1500
        assert engine.run("traffic").metrics["average_speed"] == 45

    def test_area_rules_come_from_settings(self):
        engine = SimulationEngine({"simulation": {"areas": {"growth": [{"name": "Harbour", "level": "Medium"}]}}})
        assert _areas(engine.run("growth")) == {"Harbour": "Medium"}
        assert len(engine.run("traffic").areas) == 3
