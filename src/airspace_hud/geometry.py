"""Renderer-independent geometry for airspace features, and GeoJSON parsing.

A GeometryFeature is a plain tagged value: the renderer converts it to
whatever native shape it draws, this package only needs its vertices,
identity and bounds."""

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

import orjson
from shapely import affinity
from shapely.geometry import LineString, MultiPoint, Point, Polygon

from .geo_helpers import meters_to_nm, nm_to_lat_lon_offsets
from .stats import Stats

logger = logging.getLogger(__name__)

# Point features of the multi-category source are drawn as circles this big.
DEFAULT_CIRCLE_RADIUS_M = 300.

class GeometryKind(enum.Enum):
    LINE = "line"
    POLYGON = "polygon"
    POINT = "point"
    CIRCLE = "circle"

@dataclass(frozen=True)
class GeometryFeature:
    """One drawable feature.  vertices are (lon, lat) tuples; a CIRCLE has a
    single center vertex and a radius."""
    kind: GeometryKind
    vertices: tuple
    category: str
    feature_id: str
    properties: dict = field(default_factory=dict)
    title: Optional[str] = None
    radius_m: float = 0.

    def bounds(self) -> tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat) of the feature's extent."""
        if self.kind is GeometryKind.CIRCLE:
            lon, lat = self.vertices[0]
            lat_off, lon_off = nm_to_lat_lon_offsets(meters_to_nm(self.radius_m), lat)
            return (lon - lon_off, lat - lat_off, lon + lon_off, lat + lat_off)
        return MultiPoint(self.vertices).bounds

    def as_shape(self):
        """shapely geometry for this feature, for renderers and tools."""
        if self.kind is GeometryKind.CIRCLE:
            lon, lat = self.vertices[0]
            lat_off, lon_off = nm_to_lat_lon_offsets(meters_to_nm(self.radius_m), lat)
            circle = Point(lon, lat).buffer(lat_off)
            return affinity.scale(circle, xfact=lon_off / lat_off, yfact=1.)
        if self.kind is GeometryKind.POINT or len(self.vertices) == 1:
            return Point(self.vertices[0])
        if self.kind is GeometryKind.POLYGON and len(self.vertices) >= 3:
            return Polygon(self.vertices)
        return LineString(self.vertices)


def load_feature_collection(data: bytes) -> Optional[dict]:
    """Decode bytes holding a GeoJSON FeatureCollection.  Returns None
    unless the payload is a JSON object with a "features" list."""
    try:
        obj = orjson.loads(data)
    except (orjson.JSONDecodeError, ValueError, TypeError):
        return None
    if not isinstance(obj, dict) or not isinstance(obj.get("features"), list):
        return None
    return obj


def _coords(raw) -> Optional[tuple]:
    try:
        return tuple((float(c[0]), float(c[1])) for c in raw)
    except (TypeError, ValueError, IndexError):
        return None


def parse_feature(feature: dict, index: int, category: str,
                  point_kind: GeometryKind = GeometryKind.POINT,
                  radius_m: float = DEFAULT_CIRCLE_RADIUS_M) -> Optional[GeometryFeature]:
    """Convert one GeoJSON feature dict.  Returns None for anything that
    isn't a usable LineString, Polygon or Point.

    Polygons keep their first (outer) ring only.  point_kind selects whether
    Points become POINT annotations or CIRCLE airspaces."""
    if not isinstance(feature, dict):
        return None
    geometry = feature.get("geometry")
    if not isinstance(geometry, dict):
        return None
    gtype = geometry.get("type")
    raw = geometry.get("coordinates")
    props = feature.get("properties")
    if not isinstance(props, dict):
        props = {}
    fid = feature.get("id")
    fid = str(fid) if fid is not None else str(index)
    name = props.get("name") if isinstance(props.get("name"), str) else None

    vertices = None
    if gtype == "LineString":
        kind = GeometryKind.LINE
        vertices = _coords(raw) if isinstance(raw, list) else None
    elif gtype == "Polygon":
        kind = GeometryKind.POLYGON
        if isinstance(raw, list) and raw and isinstance(raw[0], list):
            vertices = _coords(raw[0])
    elif gtype == "Point":
        kind = point_kind
        if isinstance(raw, list) and len(raw) == 2:
            vertices = _coords([raw])
    else:
        logger.debug("Unsupported geometry type: %s", gtype)
        Stats.features_skipped += 1
        return None

    if not vertices:
        logger.debug("Feature %s has no usable %s coordinates", fid, gtype)
        Stats.features_skipped += 1
        return None

    return GeometryFeature(kind=kind, vertices=vertices, category=category,
                           feature_id=fid, properties=props, title=name,
                           radius_m=radius_m if kind is GeometryKind.CIRCLE else 0.)


def parse_feature_collection(obj: dict, category: str,
                             point_kind: GeometryKind = GeometryKind.POINT) -> list[GeometryFeature]:
    """All usable features of a decoded FeatureCollection, in file order."""
    result = []
    for index, feature in enumerate(obj.get("features", [])):
        parsed = parse_feature(feature, index, category, point_kind)
        if parsed is not None:
            result.append(parsed)
    return result
