"""
URBANPULSE API Server
FastAPI backend serving the city dashboard: live traffic aggregation, what-if
simulations, city profiles and AI-assisted analysis.
"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from contextlib import asynccontextmanager
import aiohttp
import logging

# Import URBANPULSE components
from agents.simulation_agent import SimulationAgent
from data.area_catalog import AreaCatalog
from data.city_profile import build_city_profile
from data.feed_adapters import build_adapters, build_air_quality_adapter
from data.models import TrafficFilter
from data.traffic_aggregation import TrafficAggregator
from llm.analysis_client import build_analysis_client
from llm.prompts import DEFAULT_KIND
from simulation.engine import SimulationEngine, UnknownScenarioError, resolve_scenario
from simulation.models import PARAMETER_MODELS
from utils.cache import ResultStore
from utils.config_loader import get_config, get_section
from utils.logger import setup_from_config

logger = logging.getLogger(__name__)

config = get_config()
app_config = get_section("app", config)
APP_NAME = app_config.get("name", "URBANPULSE API")
APP_VERSION = app_config.get("version", "1.0.0")


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire up shared components on startup and close the HTTP session on shutdown."""
    setup_from_config(get_section("logging", config))
    logger.info(f"Starting {APP_NAME} server...")

    session = aiohttp.ClientSession()
    flow_adapter, incident_adapter = build_adapters(session=session, config=config)
    catalog = AreaCatalog.from_config(config)
    cache_config = get_section("cache", config)

    app.state.session = session
    app.state.catalog = catalog
    app.state.flow_adapter = flow_adapter
    app.state.air_quality_adapter = build_air_quality_adapter(session=session, config=config)
    app.state.aggregator = TrafficAggregator(catalog, flow_adapter, incident_adapter, config=config)
    app.state.engine = SimulationEngine(config)
    app.state.analysis_client = build_analysis_client(session=session, config=config)
    app.state.store = ResultStore(
        default_ttl=int(cache_config.get("ttl_s", 900)),
        max_entries=int(cache_config.get("max_entries", 512)),
    )
    app.state.agent = SimulationAgent(
        engine=app.state.engine,
        analysis_client=app.state.analysis_client,
        store=app.state.store,
        aggregator=app.state.aggregator,
        config=config,
        air_quality_adapter=app.state.air_quality_adapter,
    )
    logger.info("Components initialized successfully")

    yield

    logger.info(f"Shutting down {APP_NAME} server...")
    await session.close()


# Initialize FastAPI with lifespan
app = FastAPI(
    title=APP_NAME,
    description="Urban simulation and analysis engine",
    version=APP_VERSION,
    lifespan=lifespan
)

# CORS configuration for the dashboard frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=app_config.get("cors_origins", ["http://localhost:3000"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models for request/response
class SimulationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scenario: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    location: Optional[str] = None
    use_live_data: bool = Field(default=False, alias="useLiveData")
    traffic_filter: Optional[TrafficFilter] = Field(default=None, alias="trafficFilter")
    analyze: bool = True


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: Dict[str, Any] = Field(default_factory=dict)
    analysis_type: str = Field(
        default=DEFAULT_KIND,
        validation_alias=AliasChoices("analysisType", "analysis_type", "kind"),
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": APP_NAME,
        "version": APP_VERSION,
        "timestamp": _now()
    }


@app.get("/api/health")
async def health_check():
    """Detailed health check. Missing credentials degrade, they do not fail."""
    feeds_status = "configured" if app.state.flow_adapter.configured else "unconfigured"
    air_status = "configured" if app.state.air_quality_adapter.configured else "unconfigured"
    analysis_status = "configured" if app.state.analysis_client.configured else "fallback"

    return {
        "status": "healthy",
        "components": {
            "api": "healthy",
            "traffic_feeds": feeds_status,
            "air_quality_feed": air_status,
            "analysis": analysis_status,
            "cache_entries": app.state.store.size,
            "timestamp": _now()
        }
    }


@app.get("/api/traffic/areas")
async def get_traffic_areas():
    """List the monitored areas and road types."""
    catalog: AreaCatalog = app.state.catalog
    return {
        "areas": [entry.model_dump() for entry in catalog],
        "road_types": list(catalog.road_types),
        "count": len(catalog)
    }


@app.post("/api/traffic")
async def aggregate_traffic(request: Optional[TrafficFilter] = None):
    """
    Aggregate live traffic records.

    Areas without live data are still reported, at the default congestion.
    Response includes:
    - records: one per (area, road type) passing the filters
    - summary: mean congestion, speed and volume
    """
    try:
        aggregator: TrafficAggregator = app.state.aggregator
        records = await aggregator.aggregate(request or TrafficFilter())
        summary = TrafficAggregator.summarize(records)

        return {
            "records": [record.model_dump(mode="json") for record in records],
            "summary": summary.model_dump(),
            "count": len(records),
            "live": any(record.live for record in records),
            "timestamp": _now()
        }

    except Exception as e:
        logger.error(f"Error aggregating traffic: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/simulation")
async def run_simulation(request: SimulationRequest):
    """
    Run a what-if simulation.

    Unknown scenarios are rejected with 400 and out-of-range sliders with 422.
    Response includes:
    - simulation: metrics, ranges, sources, rated areas and city baseline
    - analysis: recommendations, insights and forecast (if requested)
    """
    try:
        scenario = resolve_scenario(request.scenario)
    except UnknownScenarioError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        parameters = PARAMETER_MODELS[scenario].model_validate(request.parameters)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    try:
        state = {
            "scenario": scenario,
            "parameters": parameters,
            "location": request.location,
            "use_live_data": request.use_live_data,
            "traffic_filter": request.traffic_filter,
            "analyze": request.analyze,
            "errors": []
        }
        result = await app.state.agent.process(state)

        analysis = result.get("analysis")
        live_snapshot = result.get("live_snapshot")
        return {
            "simulation": result["simulation"].model_dump(mode="json"),
            "analysis": analysis.model_dump(exclude_none=True) if analysis else None,
            "analysis_fallback": result.get("analysis_fallback", False),
            "live_snapshot": live_snapshot.model_dump() if live_snapshot else None,
            "cached": result.get("cached", False),
            "errors": result.get("errors", []),
            "timestamp": _now()
        }

    except Exception as e:
        logger.error(f"Error running {scenario.value} simulation: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/analyze")
async def analyze(request: AnalyzeRequest):
    """
    Analyze arbitrary city data.

    Always answers 200; the canned analysis for the kind is returned when
    the backend is unavailable.
    """
    outcome = await app.state.analysis_client.analyze_with_outcome(request.data, request.analysis_type)
    return {
        **outcome.result.model_dump(exclude_none=True),
        "analysis_type": outcome.kind,
        "fallback": outcome.used_fallback
    }


@app.get("/api/city/{location}/profile")
async def get_city_profile(location: str):
    """Deterministic baseline metrics for a city name."""
    profile = build_city_profile(location)
    return profile.model_dump()


@app.post("/api/cache/clear")
async def clear_cache():
    """Drop every cached simulation result."""
    cleared = await app.state.store.clear()
    logger.info(f"Cleared {cleared} cached results")
    return {
        "cleared": cleared,
        "timestamp": _now()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
