"""
Simulation Agent

Runs one what-if request end to end:
1. Optional live data (traffic aggregation, or air quality for the
   environmental scenario)
2. Simulation engine run
3. Optional analysis of the results
4. Caching of the outputs in the ResultStore, unless the analysis fell back

Usage:
    agent = SimulationAgent(engine, analysis_client, store, aggregator)
    state = {
        "scenario": "traffic",
        "parameters": {"signalTiming": 75},
        "location": "Dhaka, Bangladesh",
        "use_live_data": True,
        "analyze": True,
        "errors": []
    }
    result = await agent.process(state)
"""

from typing import Any, Dict, Optional

from agents.base import BaseAgent
from data.city_profile import fallback_coordinates
from data.feed_adapters import AirQualityAdapter
from data.models import LiveTrafficSnapshot, TrafficFilter
from data.traffic_aggregation import TrafficAggregator
from llm.analysis_client import AnalysisClient
from simulation.engine import SimulationEngine, resolve_scenario
from simulation.models import Scenario
from utils.cache import ResultStore
from utils.config_loader import get_section

LIVE_SCENARIOS = (Scenario.TRAFFIC, Scenario.ENVIRONMENTAL)


class SimulationAgent(BaseAgent):
    """
    Orchestrates aggregation, simulation and analysis for one request.

    State in:
        scenario, parameters, location?, use_live_data?, traffic_filter?, analyze?

    State out (added):
        simulation: SimulationResult
        analysis: AnalysisResult or None
        analysis_fallback: True when the canned analysis was used
        live_snapshot: LiveTrafficSnapshot or None
        cached: whether the outputs came from the store
        errors: non-fatal problems, appended
    """

    def __init__(
        self,
        engine: SimulationEngine,
        analysis_client: Optional[AnalysisClient] = None,
        store: Optional[ResultStore] = None,
        aggregator: Optional[TrafficAggregator] = None,
        config: Optional[Dict[str, Any]] = None,
        air_quality_adapter: Optional[AirQualityAdapter] = None,
    ):
        super().__init__(
            name="Simulation Agent",
            role="What-if Scenario Analyst",
            config=config,
        )
        self.engine = engine
        self.analysis_client = analysis_client
        self.store = store
        self.aggregator = aggregator
        self.air_quality_adapter = air_quality_adapter

        air_config = get_section("feeds", config).get("air_quality", {})
        self.default_air_location = air_config.get("default_location", "Dhaka, Bangladesh")

    async def process(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the workflow and return the updated state.

        Raises:
            UnknownScenarioError: the scenario is not supported
        """
        state.setdefault("errors", [])
        scenario = resolve_scenario(state.get("scenario", ""))
        parameters = self.engine.coerce_parameters(scenario, state.get("parameters"))
        location = state.get("location") or None
        use_live = bool(state.get("use_live_data")) and scenario in LIVE_SCENARIOS
        wants_analysis = bool(state.get("analyze", True))
        traffic_filter = self._traffic_filter(state.get("traffic_filter"))

        cache_key = ResultStore.make_key(
            scenario.value,
            parameters.model_dump(),
            location,
            use_live,
            traffic_filter.model_dump() if use_live and scenario == Scenario.TRAFFIC else None,
            wants_analysis,
        )

        if self.store is not None:
            cached = await self.store.get(cache_key)
            if cached is not None:
                self.logger.info(f"Serving cached {scenario.value} simulation")
                state.update(cached)
                state["cached"] = True
                return state

        live = None
        if use_live and scenario == Scenario.ENVIRONMENTAL:
            live = await self._air_quality_snapshot(state, location)
        elif use_live:
            live = await self._live_snapshot(state, traffic_filter)
        result = self.engine.run(scenario, parameters, live=live, location=location)

        analysis = None
        analysis_fallback = False
        if wants_analysis:
            if self.analysis_client is None:
                self.record_error(state, "Analysis requested but no analysis client is configured")
            else:
                outcome = await self.analysis_client.analyze_with_outcome(
                    {
                        "results": result.metrics,
                        "parameters": parameters.model_dump(),
                        "location": location,
                    },
                    scenario.value,
                )
                analysis = outcome.result
                analysis_fallback = outcome.used_fallback

        outputs = {
            "simulation": result,
            "analysis": analysis,
            "analysis_fallback": analysis_fallback,
            "live_snapshot": live,
        }

        # A canned analysis must not outlive a backend outage
        if self.store is not None and not analysis_fallback:
            await self.store.set(cache_key, outputs)

        state.update(outputs)
        state["cached"] = False
        return state

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _traffic_filter(raw: Any) -> TrafficFilter:
        if isinstance(raw, TrafficFilter):
            return raw
        return TrafficFilter.model_validate(raw or {})

    async def _live_snapshot(
        self,
        state: Dict[str, Any],
        traffic_filter: TrafficFilter,
    ) -> Optional[LiveTrafficSnapshot]:
        if self.aggregator is None:
            self.record_error(state, "Live data requested but no traffic aggregator is configured")
            return None

        records = await self.aggregator.aggregate(traffic_filter)
        live_records = [record for record in records if record.live]
        if not live_records:
            self.record_error(state, "No live traffic data available; using modelled values")
            return None

        snapshot = TrafficAggregator.summarize(live_records)
        self.logger.info(f"Using live traffic snapshot from {snapshot.record_count} records")
        return snapshot

    async def _air_quality_snapshot(
        self,
        state: Dict[str, Any],
        location: Optional[str],
    ) -> Optional[LiveTrafficSnapshot]:
        if self.air_quality_adapter is None:
            self.record_error(state, "Live data requested but no air quality feed is configured")
            return None

        point = fallback_coordinates(location or self.default_air_location)
        reading = await self.air_quality_adapter.fetch(point.lat, point.lon)
        if reading is None:
            self.record_error(state, "No live air quality data available; using modelled values")
            return None

        self.logger.info(f"Using live air quality band {reading.aqi} at {point.lat},{point.lon}")
        return LiveTrafficSnapshot(air_quality_index=reading.index, record_count=1)
