"""Tests for the simulation workflow agent."""

from datetime import datetime, timezone

import pytest

from agents.simulation_agent import SimulationAgent
from conftest import FakeResponse, FakeSession, air_quality_payload
from data.feed_adapters import AirQualityAdapter
from data.models import TrafficFilter, TrafficRecord
from llm.analysis_client import AnalysisOutcome, AnalysisResult, fallback_analysis
from simulation.engine import SimulationEngine, UnknownScenarioError
from utils.cache import ResultStore

MODEL_ANALYSIS = AnalysisResult(
    recommendations=["Extend green waves on arterial roads"],
    insights="Congestion eases as signal timing improves.",
    forecast="Peak delays fall over the next quarter.",
)


class StubAnalysisClient:
    """Answers with a model analysis, or the canned one while `fallbacks` says so."""

    def __init__(self, *fallbacks):
        self.fallbacks = list(fallbacks) or [True]
        self.calls = []

    async def analyze_with_outcome(self, payload, kind=None):
        self.calls.append((payload, kind))
        used_fallback = self.fallbacks.pop(0) if len(self.fallbacks) > 1 else self.fallbacks[0]
        if used_fallback:
            return AnalysisOutcome(fallback_analysis(kind), "traffic", True)
        return AnalysisOutcome(MODEL_ANALYSIS, "traffic", False)


class StubAggregator:
    def __init__(self, records):
        self.records = records
        self.filters = []

    async def aggregate(self, traffic_filter=None):
        self.filters.append(traffic_filter)
        return self.records


def _record(area_id, congestion, live=True):
    return TrafficRecord(
        id=f"{area_id}-highway",
        area=area_id.title(),
        area_id=area_id,
        road_type="Highway",
        congestion=congestion,
        speed=40,
        travel_time=20,
        volume=1500,
        incidents=0,
        timestamp=datetime(2024, 5, 1, tzinfo=timezone.utc),
        live=live,
    )


@pytest.fixture
def analysis_client():
    return StubAnalysisClient()


@pytest.fixture
def agent(settings, analysis_client):
    return SimulationAgent(
        engine=SimulationEngine(settings),
        analysis_client=analysis_client,
        store=ResultStore(),
        config=settings,
    )


@pytest.mark.asyncio
async def test_runs_engine_and_analysis(agent, analysis_client):
    state = await agent.process({
        "scenario": "traffic",
        "parameters": {"signalTiming": 80},
        "location": "Dhaka",
    })

    assert state["simulation"].metrics["congestion_level"] == 43
    assert state["analysis"] == fallback_analysis("traffic")
    assert state["analysis_fallback"] is True
    assert state["cached"] is False
    assert state["errors"] == []

    payload, kind = analysis_client.calls[0]
    assert kind == "traffic"
    assert payload["results"] == state["simulation"].metrics
    assert payload["parameters"]["signal_timing"] == 80
    assert payload["location"] == "Dhaka"


@pytest.mark.asyncio
async def test_second_request_is_served_from_store(settings):
    analysis_client = StubAnalysisClient(False)
    agent = SimulationAgent(SimulationEngine(settings), analysis_client, ResultStore(), config=settings)
    request = {"scenario": "growth", "parameters": {"population": 90}}

    first = await agent.process(dict(request))
    second = await agent.process(dict(request))

    assert second["cached"] is True
    assert second["simulation"] == first["simulation"]
    assert second["analysis"] == MODEL_ANALYSIS
    assert len(analysis_client.calls) == 1


@pytest.mark.asyncio
async def test_equivalent_parameters_share_a_cache_entry(settings):
    agent = SimulationAgent(SimulationEngine(settings), StubAnalysisClient(False), ResultStore(), config=settings)

    await agent.process({"scenario": "traffic", "parameters": {"signalTiming": 60}})
    state = await agent.process({"scenario": "traffic", "parameters": {}})

    assert state["cached"] is True


@pytest.mark.asyncio
async def test_fallback_analysis_is_not_cached(settings):
    analysis_client = StubAnalysisClient(True, False)
    store = ResultStore()
    agent = SimulationAgent(SimulationEngine(settings), analysis_client, store, config=settings)
    request = {"scenario": "traffic", "parameters": {"density": 70}}

    first = await agent.process(dict(request))
    assert first["analysis_fallback"] is True
    assert store.size == 0

    second = await agent.process(dict(request))
    assert second["cached"] is False
    assert second["analysis_fallback"] is False
    assert second["analysis"] == MODEL_ANALYSIS
    assert len(analysis_client.calls) == 2

    third = await agent.process(dict(request))
    assert third["cached"] is True
    assert len(analysis_client.calls) == 2


@pytest.mark.asyncio
async def test_analysis_can_be_skipped(agent, analysis_client):
    state = await agent.process({"scenario": "density", "parameters": {}, "analyze": False})

    assert state["analysis"] is None
    assert analysis_client.calls == []


@pytest.mark.asyncio
async def test_live_traffic_feeds_the_engine(settings, analysis_client):
    aggregator = StubAggregator([_record("gulshan", 70), _record("mirpur", 90), _record("uttara", 10, live=False)])
    agent = SimulationAgent(SimulationEngine(settings), analysis_client, ResultStore(), aggregator, config=settings)

    state = await agent.process({
        "scenario": "traffic",
        "parameters": {},
        "use_live_data": True,
        "traffic_filter": {"areas": ["gulshan", "mirpur", "uttara"]},
    })

    assert state["simulation"].metrics["congestion_level"] == 80
    assert state["simulation"].sources["congestion_level"] == "live"
    assert state["live_snapshot"].record_count == 2
    assert aggregator.filters[0] == TrafficFilter(areas=["gulshan", "mirpur", "uttara"])


@pytest.mark.asyncio
async def test_growth_runs_do_not_aggregate_traffic(settings, analysis_client):
    aggregator = StubAggregator([_record("gulshan", 70)])
    agent = SimulationAgent(SimulationEngine(settings), analysis_client, ResultStore(), aggregator, config=settings)

    state = await agent.process({"scenario": "growth", "parameters": {}, "use_live_data": True})

    assert aggregator.filters == []
    assert state["live_snapshot"] is None


@pytest.mark.asyncio
async def test_missing_live_data_is_a_non_fatal_error(settings, analysis_client):
    aggregator = StubAggregator([_record("gulshan", 70, live=False)])
    agent = SimulationAgent(SimulationEngine(settings), analysis_client, None, aggregator, config=settings)

    state = await agent.process({"scenario": "traffic", "parameters": {}, "use_live_data": True})

    assert state["simulation"].sources["congestion_level"] == "model"
    assert len(state["errors"]) == 1
    assert "No live traffic data" in state["errors"][0]


@pytest.mark.asyncio
async def test_unknown_scenario_propagates(agent):
    with pytest.raises(UnknownScenarioError):
        await agent.process({"scenario": "weather", "parameters": {}})


def _air_quality_agent(settings, session):
    adapter = AirQualityAdapter(api_key="secret", session=session, config=settings)
    return SimulationAgent(
        SimulationEngine(settings), None, ResultStore(), config=settings, air_quality_adapter=adapter
    )


@pytest.mark.asyncio
async def test_live_air_quality_feeds_environmental_runs(settings):
    session = FakeSession(FakeResponse(payload=air_quality_payload(2)))
    agent = _air_quality_agent(settings, session)

    state = await agent.process({
        "scenario": "environmental",
        "parameters": {"pollution": 90},
        "location": "Dhaka, Bangladesh",
        "use_live_data": True,
        "analyze": False,
    })

    assert state["simulation"].metrics["air_quality_index"] == 75
    assert state["simulation"].sources["air_quality_index"] == "live"
    assert state["simulation"].sources["carbon_footprint"] == "model"
    assert state["live_snapshot"].air_quality_index == 75.0
    params = session.calls[0][2]["params"]
    assert (params["lat"], params["lon"]) == (23.8103, 90.4125)


@pytest.mark.asyncio
async def test_air_quality_without_location_uses_default_city(settings):
    settings["feeds"]["air_quality"]["default_location"] = "New York"
    session = FakeSession(FakeResponse(payload=air_quality_payload(5)))
    agent = _air_quality_agent(settings, session)

    state = await agent.process({"scenario": "environmental", "use_live_data": True, "analyze": False})

    assert state["simulation"].metrics["air_quality_index"] == 0
    params = session.calls[0][2]["params"]
    assert (params["lat"], params["lon"]) == (40.7128, -74.0060)


@pytest.mark.asyncio
async def test_missing_air_quality_is_a_non_fatal_error(settings):
    session = FakeSession(FakeResponse(status=503, text="unavailable"))
    agent = _air_quality_agent(settings, session)

    state = await agent.process({
        "scenario": "environmental",
        "parameters": {"pollution": 90},
        "use_live_data": True,
        "analyze": False,
    })

    assert state["simulation"].metrics["air_quality_index"] == 10
    assert state["simulation"].sources["air_quality_index"] == "model"
    assert state["live_snapshot"] is None
    assert "No live air quality data" in state["errors"][0]


@pytest.mark.asyncio
async def test_air_quality_is_not_fetched_without_live_flag(settings):
    session = FakeSession(FakeResponse(payload=air_quality_payload(1)))
    agent = _air_quality_agent(settings, session)

    await agent.process({"scenario": "environmental", "parameters": {}, "analyze": False})

    assert session.calls == []
