"""Active airspace queries for the head-up display.

ActiveZoneEngine answers two questions:
  - which airspaces contain the aircraft right now (live HUD strip), and
  - which airspaces are under a point tapped on the map (stack list).

Containment is bbox based, not exact polygon containment.  Results are
ordered by upper limit (highest first), then military before civil, then
name.  Live samples are debounced: the query only reruns once the aircraft
has moved, climbed/descended, or enough time has passed since the last
evaluated sample.
"""

import logging
from typing import Callable, Optional

from .airspace_logger import Logger
from .airspace_slim import (AirspaceSlim, contains, is_active,
                            sort_airspaces)
from .catalog import AirspaceCatalog, CatalogSnapshot
from .config import Config
from .location import Location
from .rtree import Rect, RTree
from .stats import Stats

logger = logging.getLogger(__name__)
#logger.level = logging.DEBUG
LOGGER = Logger()


def filter_enabled(records, enabled) -> list[AirspaceSlim]:
    """Keep records whose sub-category is in the enabled allow-list,
    preserving order."""
    enabled = set(enabled)
    return [asp for asp in records if asp.sub in enabled]


def build_index(airspaces, max_entries: int = 8) -> RTree:
    rtree = RTree(max_entries)
    for asp in airspaces:
        rtree.insert(Rect.from_bbox(asp.bbox), asp)
    return rtree


class ActiveZoneEngine:
    """Live and tap airspace queries over a catalog or a plain slim list."""

    def __init__(self, source=None, config: Optional[Config] = None):
        """
        Args:
            source: an AirspaceCatalog (followed across reloads), a list of
                AirspaceSlim records, or None for an empty engine.
            config: thresholds and row counts; defaults if not given.
        """
        config = config or Config(yaml_data={})
        debounce = config['debounce']
        self.threshold_dist_m: float = debounce['distance_m']
        self.threshold_alt_m: float = debounce['altitude_m']
        self.threshold_time_s: float = debounce['time_s']
        self.hud_row_count: int = config['hud_rows']
        self.tap_row_count: int = config['tap_rows']
        self.max_entries: int = config['rtree_max_entries']

        self.hud_ids: list[str] = []
        self.hud_rows: list[str] = []
        self.hud_list: list[AirspaceSlim] = []
        self.stack_list: list[AirspaceSlim] = []
        self.show_stack = False
        self.zone_query_on = False

        self.last_loc: Optional[Location] = None    # last evaluated sample
        self.callbacks: list[Callable] = []

        # (airspaces, rtree), replaced as one reference when the catalog reloads
        self._index: tuple = ([], RTree(self.max_entries))

        if isinstance(source, AirspaceCatalog):
            self._bind_snapshot(source.snapshot)
            source.add_listener(self._bind_snapshot)
        elif source is not None:
            self.set_airspaces(source)

    def set_airspaces(self, airspaces) -> None:
        airspaces = list(airspaces)
        self._index = (airspaces, build_index(airspaces, self.max_entries))
        self.last_loc = None

    def _bind_snapshot(self, snapshot: CatalogSnapshot) -> None:
        self._index = (snapshot.slim_list, snapshot.rtree)
        # new data: don't let the debounce hide it at the next sample
        self.last_loc = None

    @property
    def airspaces(self) -> list[AirspaceSlim]:
        return self._index[0]

    def register_callback(self, fn: Callable) -> None:
        """fn(ids, rows) is called whenever the ordered HUD id list changes."""
        self.callbacks.append(fn)

    def on_new_location(self, loc: Location) -> bool:
        """Process a telemetry sample.  Returns True if the HUD changed."""
        Stats.samples_received += 1
        if self.last_loc is not None and not self._needs_update(loc):
            Stats.samples_debounced += 1
            return False

        active = self.query_active(loc.lat, loc.lon, loc.alt_m)
        self.last_loc = loc
        new_ids = [asp.id for asp in active]
        if new_ids == self.hud_ids:
            return False

        self.hud_ids = new_ids
        self.hud_list = active[:self.hud_row_count]
        self.hud_rows = [asp.to_row() for asp in self.hud_list]
        Stats.hud_updates += 1
        logger.debug("HUD update at %s: %s", loc.to_str(), self.hud_rows)
        for fn in self.callbacks:
            fn(new_ids, self.hud_rows)
        return True

    def on_new_sample(self, lat: float, lon: float, alt_ft: float, now: float) -> bool:
        return self.on_new_location(Location(lat=lat, lon=lon, alt_ft=alt_ft, now=now))

    def _needs_update(self, loc: Location) -> bool:
        last = self.last_loc
        dist = loc - last
        alt_diff = abs(loc.alt_m - last.alt_m)
        dt = loc.now - last.now
        return (dist > self.threshold_dist_m or alt_diff > self.threshold_alt_m
                or dt > self.threshold_time_s)

    def query_active(self, lat: float, lon: float, alt_m: float) -> list[AirspaceSlim]:
        """Airspaces containing the point and altitude, ordered."""
        Stats.zone_queries += 1
        _, rtree = self._index
        hits = []
        for asp in rtree.search_point(lon, lat):
            if not contains(lat, lon, asp.bbox) or not is_active(asp):
                continue
            if asp.lower_m() <= alt_m <= asp.upper_m():
                hits.append(asp)
        return sort_airspaces(hits)

    def query_point(self, lat: float, lon: float) -> list[AirspaceSlim]:
        """Every airspace whose bbox holds the point, any altitude, ordered."""
        _, rtree = self._index
        hits = [asp for asp in rtree.search_point(lon, lat)
                if contains(lat, lon, asp.bbox)]
        return sort_airspaces(hits)

    def on_map_tap(self, lat: float, lon: float) -> list[AirspaceSlim]:
        """Fill the stack list for a tapped point, if zone query is on."""
        if not self.zone_query_on:
            return []
        self.stack_list = self.query_point(lat, lon)[:self.tap_row_count]
        self.show_stack = bool(self.stack_list)
        return self.stack_list
