"""Read-only mbtiles source of airspace basemap geometry.

Tiles are decoded on demand, either as a GeoJSON FeatureCollection or as a
(gzipped) vector tile, and kept in a small LRU cache so panning the map
doesn't re-decode the same tiles.  The cache is shared between the map
rendering path and whoever else asks, so every lookup/insert/evict runs
under one lock.
"""

import logging
import sqlite3
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Optional

from .geo_helpers import tile_range
from .geometry import GeometryKind, load_feature_collection, parse_feature_collection
from .stats import Stats
from .util import base_name
from .vector_tile import VectorTile

logger = logging.getLogger(__name__)

DEFAULT_ZOOM = 8
DEFAULT_CACHE_LIMIT = 100

TILE_QUERY = ("SELECT tile_data FROM tiles "
              "WHERE zoom_level=? AND tile_column=? AND tile_row=?")


class TileStore:
    """Vector geometry from one mbtiles file, with a bounded LRU cache of
    decoded tiles keyed by (x, y, z)."""

    def __init__(self, conn: sqlite3.Connection, name: str,
                 zoom_level: int = DEFAULT_ZOOM,
                 cache_limit: int = DEFAULT_CACHE_LIMIT):
        self.conn = conn
        self.name = name
        self.zoom_level = zoom_level
        self._cache_limit = cache_limit
        self._cache: OrderedDict = OrderedDict()  # (x, y, z) -> list[GeometryFeature]
        self.lock = threading.Lock()

    @classmethod
    def open(cls, path, zoom_level: int = DEFAULT_ZOOM,
             cache_limit: int = DEFAULT_CACHE_LIMIT) -> Optional["TileStore"]:
        """Open an mbtiles file read-only.  Returns None if it can't be used,
        so callers can treat the source as absent."""
        path = Path(path)
        if not path.is_file():
            logger.warning("mbtiles not found: %s", path)
            return None
        try:
            conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True,
                                   check_same_thread=False)
            # fails here, not at first tile, if the file isn't a usable database
            conn.execute("SELECT 1 FROM tiles LIMIT 1").fetchall()
        except sqlite3.Error as e:
            logger.warning("failed to open mbtiles %s: %s", path, e)
            return None
        return cls(conn, base_name(path), zoom_level, cache_limit)

    def close(self) -> None:
        with self.lock:
            self.conn.close()
            self._cache.clear()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def cache_limit(self) -> int:
        return self._cache_limit

    @cache_limit.setter
    def cache_limit(self, limit: int) -> None:
        with self.lock:
            self._cache_limit = limit
            self._evict()

    def cached_keys(self) -> list:
        """Cache keys, least recently used first."""
        with self.lock:
            return list(self._cache.keys())

    def overlays_in_viewport(self, rect) -> list:
        """All cached or freshly decoded features of the tiles covering rect
        (min_lon, min_lat, max_lon, max_lat) at this store's zoom level."""
        xs, ys = tile_range(rect, self.zoom_level)
        result = []
        for x in xs:
            for y in ys:
                result.extend(self.get(x, y, self.zoom_level))
        return result

    def get(self, x: int, y: int, z: int) -> list:
        """Features of one tile; empty when the tile is missing or bad."""
        key = (x, y, z)
        with self.lock:
            if key in self._cache:
                Stats.tile_cache_hits += 1
                self._cache.move_to_end(key)
                return self._cache[key]

            Stats.tile_cache_misses += 1
            features = self._load_tile(x, y, z)
            if features is None:
                return []
            self._cache[key] = features
            self._evict()
            return features

    def load_tile(self, x: int, y: int, z: int) -> Optional[list]:
        """Read and decode one tile, bypassing the cache."""
        with self.lock:
            return self._load_tile(x, y, z)

    def _evict(self) -> None:
        """Drop least recently used tiles until within the limit.
        Caller holds the lock."""
        while len(self._cache) > max(self._cache_limit, 0):
            key, _ = self._cache.popitem(last=False)
            logger.debug("%s: evicted tile %s", self.name, key)

    def _load_tile(self, x: int, y: int, z: int) -> Optional[list]:
        """Caller holds the lock."""
        row = 2 ** z - 1 - y  # mbtiles rows count from the south
        try:
            found = self.conn.execute(TILE_QUERY, (z, x, row)).fetchone()
        except sqlite3.Error as e:
            logger.debug("%s: tile %d/%d/%d read failed: %s", self.name, z, x, y, e)
            return None
        if found is None or found[0] is None:
            return None
        data = found[0]
        # json tiles are sometimes stored as TEXT
        if isinstance(data, str):
            data = data.encode("utf-8")
        return self._parse_tile_data(bytes(data), x, y, z)

    def _parse_tile_data(self, data: bytes, x: int, y: int, z: int) -> Optional[list]:
        collection = load_feature_collection(data)
        if collection is not None:
            Stats.tiles_decoded += 1
            return [f for f in parse_feature_collection(collection, self.name)
                    if f.kind in (GeometryKind.LINE, GeometryKind.POLYGON)]

        tile = VectorTile.parse(data)
        if tile is None:
            Stats.tile_decode_failures += 1
            logger.debug("%s: tile %d/%d/%d undecodable", self.name, z, x, y)
            return None
        Stats.tiles_decoded += 1
        return tile.to_features(x, y, z)
