"""Data module for city profiles, live traffic feeds and aggregation."""

from .area_catalog import AreaCatalog
from .feed_adapters import FlowAdapter, IncidentAdapter, build_adapters
from .traffic_aggregation import TrafficAggregator

__all__ = ["AreaCatalog", "FlowAdapter", "IncidentAdapter", "build_adapters", "TrafficAggregator"]
