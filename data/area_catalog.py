"""Area catalog: the static list of monitored areas and their road types."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from data.models import AreaCatalogEntry
from utils.config_loader import get_section

logger = logging.getLogger(__name__)

DEFAULT_ROAD_TYPES = ("Highway", "Major Road", "Arterial Road", "Local Street")


class AreaCatalog:
    """
    Immutable collection of AreaCatalogEntry, loaded once at startup.

    Lookups match an area by id or by display name, case-insensitively.
    """

    def __init__(self, entries: Iterable[AreaCatalogEntry], road_types: Sequence[str] = DEFAULT_ROAD_TYPES):
        self._entries = tuple(entries)
        self.road_types = tuple(road_types)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "AreaCatalog":
        """
        Build the catalog from the 'traffic' settings section.

        Areas without an explicit road_types list get every configured road type.
        """
        traffic_config = get_section("traffic", config)
        road_types = tuple(traffic_config.get("road_types") or DEFAULT_ROAD_TYPES)

        entries = []
        for raw in traffic_config.get("areas", []):
            entries.append(AreaCatalogEntry(
                id=raw["id"],
                name=raw.get("name", raw["id"]),
                lat=raw["lat"],
                lon=raw["lon"],
                road_types=list(raw.get("road_types") or road_types),
            ))

        logger.info(f"Loaded area catalog with {len(entries)} areas")
        return cls(entries, road_types)

    @property
    def entries(self) -> List[AreaCatalogEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def get(self, identifier: str) -> Optional[AreaCatalogEntry]:
        wanted = identifier.strip().lower()
        for entry in self._entries:
            if entry.id.lower() == wanted or entry.name.lower() == wanted:
                return entry
        return None

    def select(self, identifiers: Optional[Sequence[str]] = None) -> List[AreaCatalogEntry]:
        """
        Resolve candidate areas: catalog ∩ identifiers, in catalog order.

        No identifiers means every area. Unknown identifiers are ignored.
        """
        if not identifiers:
            return list(self._entries)

        wanted = {identifier.strip().lower() for identifier in identifiers}
        selected = [
            entry for entry in self._entries
            if entry.id.lower() in wanted or entry.name.lower() in wanted
        ]

        if len(selected) < len(wanted):
            logger.debug(f"Area filter matched {len(selected)} of {len(wanted)} identifiers")

        return selected
