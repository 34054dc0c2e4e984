"""
Live Traffic Feed Adapters

Independent adapters over the TomTom traffic API, plus one for air quality:
1. FlowAdapter - current vs. free-flow speed for the road nearest a point
2. IncidentAdapter - incidents inside a radius around a point
3. AirQualityAdapter - current pollution band at a point (OpenWeather)

API Sources:
- Flow: https://api.tomtom.com/traffic/services/4/flowSegmentData/absolute/10/json
- Incidents: https://api.tomtom.com/traffic/services/5/incidentDetails
- Air quality: https://api.openweathermap.org/data/2.5/air_pollution

Each fetch is one best-effort attempt with its own timeout. A missing API
key, a non-2xx status, a timeout or a malformed payload all come back as
None (Absent); nothing is raised past the adapter. Retrying is up to the
caller.
"""

import aiohttp
import asyncio
import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError

from data.models import AirQualityReading, FlowReading, IncidentReading
from utils.config_loader import get_section, get_secret

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 5.0
DEFAULT_RADIUS_M = 5000
METERS_PER_DEGREE = 111_320.0

INCIDENT_FIELDS = (
    "{incidents{type,geometry{type,coordinates},properties{iconCategory,magnitudeOfDelay,"
    "events{description,code},startTime,endTime,from,to,length,delay,roadNumbers,timeValidity}}}"
)


def map_severity(severity_code: Optional[int]) -> str:
    """
    Collapse the feed's 0-4 severity scale to Low/Medium/High.

    0-1 are Low, 2 is Medium, 3-4 are High; anything else is Medium.
    """
    if severity_code in (0, 1):
        return "Low"
    if severity_code == 2:
        return "Medium"
    if severity_code in (3, 4):
        return "High"
    return "Medium"


def categorize_incident(description: str) -> str:
    """Classify an incident by keywords in its first event description."""
    text = (description or "").lower()
    if not text:
        return "Congestion"
    if "accident" in text:
        return "Accident"
    if "construction" in text:
        return "Construction"
    if "closure" in text:
        return "Road Closure"
    if "event" in text:
        return "Public Event"
    return "Congestion"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def bounding_box(lat: float, lon: float, radius_m: float) -> str:
    """minLon,minLat,maxLon,maxLat around a point."""
    dlat = radius_m / METERS_PER_DEGREE
    cos_lat = max(math.cos(math.radians(lat)), 0.01)
    dlon = radius_m / (METERS_PER_DEGREE * cos_lat)
    return f"{lon - dlon:.6f},{lat - dlat:.6f},{lon + dlon:.6f},{lat + dlat:.6f}"


class FeedAdapter:
    """
    Shared request plumbing for the live feeds.

    Args:
        api_key: Provider credential; None or empty disables the adapter
        session: Optional shared aiohttp session. Without one, a session is
            opened for each call.
        timeout_s: Total request timeout in seconds
    """

    name = "feed"

    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.feeds_config = get_section("feeds", config)
        self.api_key = api_key.strip() if api_key and api_key.strip() else None
        self.session = session
        self.timeout_s = timeout_s

    @property
    def configured(self) -> bool:
        return self.api_key is not None

    @asynccontextmanager
    async def _session_scope(self):
        if self.session is not None:
            yield self.session
        else:
            async with aiohttp.ClientSession() as session:
                yield session

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Optional[Any]:
        """GET a JSON document, or None on any transport or status failure."""
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        try:
            async with self._session_scope() as session:
                async with session.get(url, params=params, timeout=timeout) as response:
                    if not 200 <= response.status < 300:
                        error_text = await response.text()
                        logger.error(f"{self.name} feed error {response.status}: {error_text[:200]}")
                        return None
                    return await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} feed timed out after {self.timeout_s}s")
            return None
        except aiohttp.ClientError as e:
            logger.error(f"Network error fetching {self.name} feed: {e}")
            return None
        except ValueError as e:
            logger.error(f"Malformed {self.name} feed payload: {e}")
            return None


class FlowAdapter(FeedAdapter):
    """Fetches flow-segment speeds for a point."""

    name = "flow"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        flow_config = self.feeds_config.get("flow", {})
        self.url = flow_config.get(
            "url", "https://api.tomtom.com/traffic/services/4/flowSegmentData/absolute/10/json"
        )
        self.unit = flow_config.get("unit", "KMPH")

    async def fetch(self, lat: float, lon: float) -> Optional[FlowReading]:
        """
        Fetch the flow reading nearest to (lat, lon).

        Returns:
            FlowReading, or None if the feed is unconfigured or failed
        """
        if not self.configured:
            logger.warning("Traffic API key not set; flow data unavailable")
            return None

        payload = await self._get_json(self.url, {
            "point": f"{lat},{lon}",
            "unit": self.unit,
            "key": self.api_key,
        })
        if payload is None:
            return None

        return self.parse(payload)

    @staticmethod
    def parse(payload: Any) -> Optional[FlowReading]:
        """Validate a flowSegmentData payload into a FlowReading."""
        segment = payload.get("flowSegmentData") if isinstance(payload, dict) else None
        if not isinstance(segment, dict):
            logger.error("Flow payload missing flowSegmentData")
            return None

        try:
            return FlowReading(
                current_speed=segment.get("currentSpeed"),
                free_flow_speed=segment.get("freeFlowSpeed"),
                current_travel_time=segment.get("currentTravelTime"),
                free_flow_travel_time=segment.get("freeFlowTravelTime"),
                confidence=segment.get("confidence"),
                road_closure=bool(segment.get("roadClosure", False)),
            )
        except ValidationError as e:
            logger.error(f"Invalid flow segment data: {e.error_count()} errors")
            return None


class IncidentAdapter(FeedAdapter):
    """Fetches incidents within a radius of a point."""

    name = "incidents"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        incident_config = self.feeds_config.get("incidents", {})
        self.url = incident_config.get(
            "url", "https://api.tomtom.com/traffic/services/5/incidentDetails"
        )
        self.language = incident_config.get("language", "en-GB")
        self.default_radius_m = incident_config.get("radius_m", DEFAULT_RADIUS_M)

    async def fetch(
        self,
        lat: float,
        lon: float,
        radius_m: Optional[float] = None
    ) -> Optional[List[IncidentReading]]:
        """
        Fetch incidents around (lat, lon).

        Args:
            lat: Latitude
            lon: Longitude
            radius_m: Search radius in meters (default from settings, 5 km)

        Returns:
            List of normalized incidents (possibly empty), or None if the
            feed is unconfigured or failed
        """
        if not self.configured:
            logger.warning("Traffic API key not set; incident data unavailable")
            return None

        payload = await self._get_json(self.url, {
            "bbox": bounding_box(lat, lon, radius_m or self.default_radius_m),
            "fields": INCIDENT_FIELDS,
            "language": self.language,
            "key": self.api_key,
        })
        if payload is None:
            return None

        return self.parse(payload)

    @staticmethod
    def parse(payload: Any, now: Optional[datetime] = None) -> Optional[List[IncidentReading]]:
        """Normalize an incidentDetails payload; None if it is not one."""
        incidents = payload.get("incidents") if isinstance(payload, dict) else None
        if not isinstance(incidents, list):
            logger.error("Incident payload missing incidents list")
            return None

        now = now or datetime.now(timezone.utc)
        readings = []
        skipped = 0
        for incident in incidents:
            if not isinstance(incident, dict):
                skipped += 1
                continue

            # v5 nests fields under "properties"; older payloads are flat
            props = incident.get("properties") or incident
            if not isinstance(props, dict):
                skipped += 1
                continue
            events = props.get("events") or []
            if not isinstance(events, list):
                skipped += 1
                continue

            severity_code = props.get("magnitudeOfDelay", incident.get("severity"))
            if not isinstance(severity_code, int) or isinstance(severity_code, bool):
                severity_code = None

            description = ""
            if events and isinstance(events[0], dict):
                description = str(events[0].get("description") or "")

            start_time = _parse_timestamp(props.get("startTime"))
            end_time = _parse_timestamp(props.get("endTime"))

            readings.append(IncidentReading(
                severity_code=severity_code,
                severity=map_severity(severity_code),
                category=categorize_incident(description),
                status="Ongoing" if end_time is None or end_time > now else "Resolved",
                description=description,
                start_time=start_time,
                end_time=end_time,
            ))

        if skipped:
            logger.debug(f"Skipped {skipped} malformed incidents")
        return readings


def build_adapters(
    session: Optional[aiohttp.ClientSession] = None,
    config: Optional[Dict[str, Any]] = None,
):
    """Create both adapters from settings and the environment."""
    feeds_config = get_section("feeds", config)
    api_key = get_secret(feeds_config.get("api_key_env", "TOMTOM_API_KEY"))
    timeout_s = float(feeds_config.get("request_timeout_s", DEFAULT_TIMEOUT_S))

    if api_key is None:
        logger.warning("No traffic API key configured; aggregation will use default congestion")

    return (
        FlowAdapter(api_key=api_key, session=session, timeout_s=timeout_s, config=config),
        IncidentAdapter(api_key=api_key, session=session, timeout_s=timeout_s, config=config),
    )


def air_quality_index(aqi: int) -> float:
    """Map the 1-5 AQI band onto 0-100, where 100 is the cleanest air."""
    return float((5 - aqi) * 25)


class AirQualityAdapter(FeedAdapter):
    """Fetches current air pollution for a point."""

    name = "air_quality"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        air_config = self.feeds_config.get("air_quality", {})
        self.url = air_config.get(
            "url", "https://api.openweathermap.org/data/2.5/air_pollution"
        )

    async def fetch(self, lat: float, lon: float) -> Optional[AirQualityReading]:
        """
        Fetch the current air quality at (lat, lon).

        Returns:
            AirQualityReading, or None if the feed is unconfigured or failed
        """
        if not self.configured:
            logger.warning("Air quality API key not set; air quality data unavailable")
            return None

        payload = await self._get_json(self.url, {
            "lat": lat,
            "lon": lon,
            "appid": self.api_key,
        })
        if payload is None:
            return None

        return self.parse(payload)

    @staticmethod
    def parse(payload: Any) -> Optional[AirQualityReading]:
        """Validate an air_pollution payload; the first sample is current."""
        samples = payload.get("list") if isinstance(payload, dict) else None
        if not isinstance(samples, list) or not samples or not isinstance(samples[0], dict):
            logger.error("Air quality payload missing list of samples")
            return None

        main = samples[0].get("main")
        components = samples[0].get("components")
        aqi = main.get("aqi") if isinstance(main, dict) else None
        if not isinstance(aqi, int) or isinstance(aqi, bool) or not 1 <= aqi <= 5:
            logger.error(f"Invalid air quality index: {aqi!r}")
            return None
        if not isinstance(components, dict):
            components = {}

        try:
            return AirQualityReading(
                aqi=aqi,
                index=air_quality_index(aqi),
                pm2_5=components.get("pm2_5"),
                pm10=components.get("pm10"),
            )
        except ValidationError as e:
            logger.error(f"Invalid air quality components: {e.error_count()} errors")
            return None


def build_air_quality_adapter(
    session: Optional[aiohttp.ClientSession] = None,
    config: Optional[Dict[str, Any]] = None,
) -> AirQualityAdapter:
    """Create the air quality adapter from settings and the environment."""
    feeds_config = get_section("feeds", config)
    air_config = feeds_config.get("air_quality", {})
    api_key = get_secret(air_config.get("api_key_env", "OPENWEATHER_API_KEY"))
    timeout_s = float(feeds_config.get("request_timeout_s", DEFAULT_TIMEOUT_S))

    if api_key is None:
        logger.warning("No air quality API key configured; environmental runs will use modelled values")

    return AirQualityAdapter(api_key=api_key, session=session, timeout_s=timeout_s, config=config)
