"""
Traffic Aggregation Pipeline

Merges the flow and incident feeds into per-area, per-road-type traffic
records for the dashboard and the simulation engine.

Pipeline:
1. Resolve candidate areas from the catalog (optionally filtered)
2. Fetch flow + incidents for every area concurrently
3. Derive congestion, then speed and travel time from congestion
4. Emit one record per applicable road type, applying the filters

Usage:
    aggregator = TrafficAggregator(catalog, flow_adapter, incident_adapter)
    records = await aggregator.aggregate(TrafficFilter(areas=["gulshan"]))
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from data.area_catalog import AreaCatalog
from data.city_profile import derive_key
from data.feed_adapters import FlowAdapter, IncidentAdapter
from data.models import (
    AreaCatalogEntry,
    FlowReading,
    IncidentReading,
    LiveTrafficSnapshot,
    TrafficFilter,
    TrafficRecord,
)
from utils.config_loader import get_section

logger = logging.getLogger(__name__)

DEFAULT_CONGESTION = 50
DEFAULT_SEVERITY_BUCKETS = {"low": 30, "moderate": 60, "high": 80, "severe": 100}


def congestion_from_flow(flow: Optional[FlowReading], default: int = DEFAULT_CONGESTION) -> int:
    """
    Congestion (0-100) from the ratio of current to free-flow speed.

    Without a flow reading the neutral default is used.
    """
    if flow is None:
        return default
    value = round(100 - (flow.current_speed / flow.free_flow_speed * 100))
    return max(0, min(100, value))


def speed_for(congestion: int) -> int:
    """Average speed (km/h), decreasing in congestion, never below 5."""
    return max(5, int(60 - congestion * 0.5))


def travel_time_for(congestion: int) -> int:
    """Travel time (minutes), increasing in congestion."""
    return int(10 + congestion * 0.2)


def volume_for(area_id: str, road_type: str, congestion: int) -> int:
    """Vehicles per hour: congestion-driven with a stable per-road offset."""
    return 500 + int(congestion * 10) + derive_key(f"{area_id}{road_type}") % 500


def slugify(value: str) -> str:
    return value.strip().lower().replace(" ", "-")


class TrafficAggregator:
    """
    Builds TrafficRecord collections from the live feeds.

    An area whose feeds come back Absent still yields records at the
    default congestion; one failing area never aborts the others.
    """

    def __init__(
        self,
        catalog: AreaCatalog,
        flow_adapter: FlowAdapter,
        incident_adapter: IncidentAdapter,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.catalog = catalog
        self.flow_adapter = flow_adapter
        self.incident_adapter = incident_adapter

        traffic_config = get_section("traffic", config)
        feeds_config = get_section("feeds", config)
        self.default_congestion = int(traffic_config.get("default_congestion", DEFAULT_CONGESTION))
        self.max_concurrency = max(1, int(traffic_config.get("max_concurrency", 8)))
        self.max_incidents = int(traffic_config.get("max_incidents", 5))
        self.severity_buckets = dict(traffic_config.get("severity_buckets") or DEFAULT_SEVERITY_BUCKETS)
        self.incident_radius_m = feeds_config.get("incidents", {}).get("radius_m", 5000)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def aggregate(self, traffic_filter: Optional[TrafficFilter] = None) -> List[TrafficRecord]:
        """
        Aggregate traffic records for the filtered areas.

        Args:
            traffic_filter: Optional areas / road types / severity / metrics filter

        Returns:
            Records in catalog order, then road-type order
        """
        traffic_filter = traffic_filter or TrafficFilter()
        areas = self.catalog.select(traffic_filter.areas)
        if not areas:
            logger.info("No catalog areas matched the filter")
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_bounded(area: AreaCatalogEntry):
            async with semaphore:
                return await self._fetch_area(area)

        feeds = await asyncio.gather(*(fetch_bounded(area) for area in areas))
        timestamp = datetime.now(timezone.utc)

        records: List[TrafficRecord] = []
        for area, (flow, incidents) in zip(areas, feeds):
            records.extend(self._build_area_records(area, flow, incidents, traffic_filter, timestamp))

        live_areas = sum(1 for flow, _ in feeds if flow is not None)
        logger.info(
            f"Aggregated {len(records)} traffic records for {len(areas)} areas "
            f"({live_areas} with live flow data)"
        )
        return records

    def severity_bucket(self, congestion: int) -> str:
        """Map a congestion value to low / moderate / high / severe."""
        for bucket, upper in sorted(self.severity_buckets.items(), key=lambda item: item[1]):
            if congestion <= upper:
                return bucket
        return "severe"

    @staticmethod
    def summarize(records: Sequence[TrafficRecord]) -> LiveTrafficSnapshot:
        """Mean congestion, speed and volume over a record collection."""
        if not records:
            return LiveTrafficSnapshot()

        count = len(records)
        return LiveTrafficSnapshot(
            congestion=round(sum(r.congestion for r in records) / count, 1),
            average_speed=round(sum(r.speed for r in records) / count, 1),
            volume=round(sum(r.volume for r in records) / count, 1),
            record_count=count,
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _fetch_area(
        self,
        area: AreaCatalogEntry
    ) -> Tuple[Optional[FlowReading], Optional[List[IncidentReading]]]:
        flow, incidents = await asyncio.gather(
            self.flow_adapter.fetch(area.lat, area.lon),
            self.incident_adapter.fetch(area.lat, area.lon, self.incident_radius_m),
        )
        if flow is None:
            logger.debug(f"No flow data for {area.name}; using default congestion")
        return flow, incidents

    def _applicable_road_types(self, area: AreaCatalogEntry, wanted: Sequence[str]) -> List[str]:
        road_types = area.road_types or list(self.catalog.road_types)
        if not wanted:
            return list(road_types)

        needles = [w.lower() for w in wanted if w.strip()]
        return [rt for rt in road_types if any(n in rt.lower() for n in needles)]

    def _build_area_records(
        self,
        area: AreaCatalogEntry,
        flow: Optional[FlowReading],
        incidents: Optional[List[IncidentReading]],
        traffic_filter: TrafficFilter,
        timestamp: datetime,
    ) -> Iterable[TrafficRecord]:
        congestion = congestion_from_flow(flow, self.default_congestion)

        # Severity filtering works on the congestion bucket, so it still
        # behaves when the incident feed is Absent
        if traffic_filter.severity:
            wanted = {s.lower() for s in traffic_filter.severity}
            if self.severity_bucket(congestion) not in wanted:
                return []

        high_incidents = sum(
            1 for incident in (incidents or [])[: self.max_incidents]
            if incident.severity == "High"
        )

        records = []
        for road_type in self._applicable_road_types(area, traffic_filter.road_types):
            record = TrafficRecord(
                id=f"{area.id}-{slugify(road_type)}",
                area=area.name,
                area_id=area.id,
                road_type=road_type,
                congestion=congestion,
                speed=speed_for(congestion),
                travel_time=travel_time_for(congestion),
                volume=volume_for(area.id, road_type, congestion),
                incidents=high_incidents,
                timestamp=timestamp,
                live=flow is not None,
            )
            if self._has_metrics(record, traffic_filter.metrics):
                records.append(record)

        return records

    @staticmethod
    def _has_metrics(record: TrafficRecord, metrics: Sequence[str]) -> bool:
        """
        Check a record carries every requested metric.

        Every TrafficRecord field is always populated, so this never
        drops anything today; it guards against optional fields later.
        Unknown metric names are ignored.
        """
        field_names = {"travelTime": "travel_time", "travel_time": "travel_time"}
        for metric in metrics:
            field = field_names.get(metric, metric)
            if field in TrafficRecord.model_fields and getattr(record, field) is None:
                return False
        return True
