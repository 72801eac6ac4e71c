"""Storage for all airspace data in the system: full geometry for drawing,
slim records and an R-tree for the HUD.

Loading happens on a background thread.  Each load builds a complete
CatalogSnapshot and swaps it in under the lock, so readers always see either
the previous catalog or the next one, never a half-built one.  A load that
finishes after a newer load has already been published is discarded.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .airspace_logger import Logger
from .airspace_slim import AirspaceSlim, build_slim_list
from .categories import (major_category, parse_feature_group_name,
                         parse_group_name, sub_category)
from .config import Config
from .geometry import (GeometryKind, load_feature_collection, parse_feature,
                       parse_feature_collection)
from .rtree import Rect, RTree
from .stats import Stats
from .tile_store import TileStore
from .util import base_name

logger = logging.getLogger(__name__)
#logger.level = logging.DEBUG
LOGGER = Logger()

WORLD = (-180., -90., 180., 90.)

@dataclass(frozen=True)
class CatalogSnapshot:
    """One complete, immutable generation of loaded airspace data."""
    generation: int = 0
    overlays_by_category: dict = field(default_factory=dict)     # category -> [GeometryFeature]
    annotations_by_category: dict = field(default_factory=dict)  # category -> [GeometryFeature]
    feature_groups_by_category: dict = field(default_factory=dict)  # category -> {group: [feature]}
    vector_sources: dict = field(default_factory=dict)           # category -> TileStore
    categories_by_group: dict = field(default_factory=dict)      # group -> [category]
    category_to_group: dict = field(default_factory=dict)
    slim_list: list = field(default_factory=list)
    rtree: RTree = field(default_factory=RTree)


def discover_files(data_dir) -> list[Path]:
    """mbtiles and geojson files in data_dir.  A geojson with the same base
    name as an mbtiles file is left out, the tiles win."""
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        logger.warning("Airspace directory not found: %s", data_dir)
        return []
    mbtiles = sorted(p for p in data_dir.iterdir() if p.suffix.lower() == ".mbtiles")
    mb_names = {base_name(p) for p in mbtiles}
    jsons = sorted(p for p in data_dir.iterdir()
                   if p.suffix.lower() == ".geojson" and base_name(p) not in mb_names)
    return mbtiles + jsons


def read_feature_collection(path) -> Optional[dict]:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        logger.warning("Could not read %s: %s", path, e)
        return None
    obj = load_feature_collection(data)
    if obj is None:
        logger.warning("Invalid GeoJSON: %s", Path(path).name)
    return obj


def _close_sources(old: CatalogSnapshot, keep: Optional[CatalogSnapshot]) -> None:
    """Close the tile stores of old that keep doesn't also use."""
    kept = set(map(id, keep.vector_sources.values())) if keep is not None else set()
    for category, source in old.vector_sources.items():
        if id(source) not in kept:
            logger.debug("closing vector source %s", category)
            source.close()


class _Builder:
    """Accumulates the contents of one load."""

    def __init__(self):
        self.overlays = {}
        self.annotations = {}
        self.feature_groups = {}
        self.sources = {}
        self.group_map = defaultdict(list)
        self.cat_to_group = {}

    def add_group(self, group: str, category: str) -> None:
        if category not in self.group_map[group]:
            self.group_map[group].append(category)
        self.cat_to_group[category] = group


class AirspaceCatalog:
    """All airspace categories in the system, and the display selection
    over them."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config(yaml_data={})
        self.lock = threading.Lock()
        self._snapshot = CatalogSnapshot()
        self._generation = 0        # last load started
        self._listeners: list[Callable] = []

        self.enabled_categories: list[str] = list(self.config['enabled_categories'])
        self.enabled_facility_categories: list[str] = list(
            self.config['enabled_facility_categories'])
        self.hidden_feature_ids: dict[str, set] = {
            cat: set(ids) for cat, ids in self.config['hidden_feature_ids'].items()}

    @property
    def snapshot(self) -> CatalogSnapshot:
        with self.lock:
            return self._snapshot

    def add_listener(self, fn: Callable) -> None:
        """fn(snapshot) is called, on the loading thread, after each publish."""
        self._listeners.append(fn)

    # --- loading ---

    def load_all(self, paths=None) -> threading.Thread:
        """Load in the background.  Join the returned thread to wait."""
        with self.lock:
            self._generation += 1
            generation = self._generation
        thread = threading.Thread(target=self._load, args=(paths, generation),
                                  name="airspace-loader", daemon=True)
        thread.start()
        return thread

    def load_all_sync(self, paths=None) -> CatalogSnapshot:
        """Load and publish on the calling thread."""
        with self.lock:
            self._generation += 1
            generation = self._generation
        return self._load(paths, generation)

    def _load(self, paths, generation: int) -> CatalogSnapshot:
        logger.debug("Airspace load %d started", generation)
        if paths is None:
            paths = discover_files(self.config['data_dir'])
        snapshot = self.build_snapshot(paths, generation)
        self._publish(snapshot)
        return snapshot

    def build_snapshot(self, paths, generation: int = 0) -> CatalogSnapshot:
        builder = _Builder()
        multi_name = self.config['multi_category_source']

        for path in paths:
            path = Path(path)
            base = base_name(path)
            suffix = path.suffix.lower()
            logger.debug("loading %s category = %s", path.name, base)
            if suffix == ".geojson":
                if base == multi_name:
                    ok = self._load_multi_category(path, builder)
                else:
                    ok = self._load_single_category(path, base, builder)
            elif suffix == ".mbtiles":
                ok = self._load_vector_source(path, base, builder)
            else:
                logger.debug("Ignoring %s", path.name)
                continue
            if ok:
                Stats.files_loaded += 1
            else:
                Stats.files_skipped += 1

        slim_list = build_slim_list(builder.overlays)
        rtree = RTree(self.config['rtree_max_entries'])
        for asp in slim_list:
            rtree.insert(Rect.from_bbox(asp.bbox), asp)

        logger.info("Loaded %d categories, %d vector sources, %d slim records",
                    len(builder.overlays), len(builder.sources), len(slim_list))
        return CatalogSnapshot(generation=generation,
                               overlays_by_category=builder.overlays,
                               annotations_by_category=builder.annotations,
                               feature_groups_by_category=builder.feature_groups,
                               vector_sources=builder.sources,
                               categories_by_group=dict(builder.group_map),
                               category_to_group=builder.cat_to_group,
                               slim_list=slim_list,
                               rtree=rtree)

    def _load_single_category(self, path: Path, category: str, builder: _Builder) -> bool:
        obj = read_feature_collection(path)
        if obj is None:
            return False
        overlays, annotations = [], []
        grouped = defaultdict(list)
        for feature in parse_feature_collection(obj, category):
            if feature.kind is GeometryKind.POINT:
                annotations.append(feature)
            else:
                overlays.append(feature)
                grouped[parse_feature_group_name(feature.title)].append(feature)
        if not overlays and not annotations:
            logger.debug("No overlays parsed from %s", path.name)

        builder.overlays[category] = overlays
        builder.annotations[category] = annotations
        builder.feature_groups[category] = dict(grouped)
        builder.add_group(parse_group_name(category), category)
        logger.debug("loaded %d overlays from %s", len(overlays), path.name)
        return True

    def _load_multi_category(self, path: Path, builder: _Builder) -> bool:
        """Split the multi-category source by feature name/type."""
        obj = read_feature_collection(path)
        if obj is None:
            return False
        for index, raw in enumerate(obj["features"]):
            props = raw.get("properties") if isinstance(raw, dict) else None
            if not isinstance(props, dict) or not isinstance(props.get("name"), str):
                continue
            type_code = props.get("type") if isinstance(props.get("type"), int) else 0
            sub = sub_category(props["name"], type_code)
            feature = parse_feature(raw, index, sub, point_kind=GeometryKind.CIRCLE)
            if feature is None:
                continue
            builder.overlays.setdefault(sub, []).append(feature)
            builder.feature_groups.setdefault(sub, {}).setdefault(
                parse_feature_group_name(feature.title), []).append(feature)
            builder.add_group(major_category(sub), sub)
        logger.debug("loaded %s as %s", path.name, sorted(builder.overlays))
        return True

    def _load_vector_source(self, path: Path, category: str, builder: _Builder) -> bool:
        source = TileStore.open(path, zoom_level=self.config['vector_zoom'],
                                cache_limit=self.config['tile_cache_limit'])
        if source is None:
            logger.warning("failed to open MBTiles: %s", path)
            return False
        builder.sources[category] = source
        builder.add_group(parse_group_name(category), category)
        return True

    def _publish(self, snapshot: CatalogSnapshot) -> None:
        with self.lock:
            if snapshot.generation < self._snapshot.generation:
                logger.info("Discarding stale airspace load %d", snapshot.generation)
                stale = True
            else:
                stale = False
                replaced = self._snapshot
                self._snapshot = snapshot
                if not self.enabled_categories:
                    self.enabled_categories = self._categories(snapshot)
                if not self.enabled_facility_categories:
                    self.enabled_facility_categories = sorted(snapshot.annotations_by_category)
        if stale:
            _close_sources(snapshot, keep=self.snapshot)
            return
        # readers still holding the old snapshot get empty tiles from here on
        _close_sources(replaced, keep=snapshot)
        Stats.catalog_loads += 1
        logger.debug("enabled categories: %s", self.enabled_categories)
        for fn in self._listeners:
            fn(snapshot)

    def close(self) -> None:
        """Release the mbtiles connections of the current snapshot."""
        _close_sources(self.snapshot, keep=None)

    # --- queries ---

    @staticmethod
    def _categories(snapshot: CatalogSnapshot) -> list[str]:
        return sorted(set(snapshot.overlays_by_category) | set(snapshot.vector_sources))

    @property
    def categories(self) -> list[str]:
        return self._categories(self.snapshot)

    @property
    def groups(self) -> list[str]:
        return sorted(self.snapshot.categories_by_group)

    @property
    def slim_list(self) -> list[AirspaceSlim]:
        return self.snapshot.slim_list

    def categories_in_group(self, group: str) -> list[str]:
        return list(self.snapshot.categories_by_group.get(group, []))

    def group_for(self, category: str) -> str:
        return self.snapshot.category_to_group.get(category, category)

    def features(self, category: str, group: Optional[str] = None) -> list:
        snap = self.snapshot
        if group is None:
            return list(snap.overlays_by_category.get(category, []))
        return list(snap.feature_groups_by_category.get(category, {}).get(group, []))

    def feature_groups(self, category: str) -> list[str]:
        return sorted(self.snapshot.feature_groups_by_category.get(category, {}))

    def set_hidden(self, category: str, feature_ids) -> None:
        self.hidden_feature_ids[category] = set(feature_ids)

    def display_overlays(self, viewport=WORLD) -> list:
        """Features to draw: enabled categories minus hidden features, plus
        the vector tiles covering viewport (min_lon, min_lat, max_lon, max_lat)."""
        snap = self.snapshot
        result = []
        for cat in self.enabled_categories:
            hidden = self.hidden_feature_ids.get(cat, set())
            for feature in snap.overlays_by_category.get(cat, []):
                if feature.feature_id not in hidden:
                    result.append(feature)
            source = snap.vector_sources.get(cat)
            if source is not None:
                result.extend(source.overlays_in_viewport(viewport))
        return result

    def display_annotations(self) -> list:
        snap = self.snapshot
        result = []
        for cat in self.enabled_facility_categories:
            hidden = self.hidden_feature_ids.get(cat, set())
            result.extend(a for a in snap.annotations_by_category.get(cat, [])
                          if a.feature_id not in hidden)
        return result
