"""Slim per-airspace records for the HUD, and altitude band parsing.

An AirspaceSlim is everything the HUD needs to decide whether an airspace
applies to the aircraft: identity, altitude band and bounding box.  It is
derived from the full geometry and never used for drawing.

The airspace_slim.json wire format is a list of objects with the keys
id, name, sub, icon, upper, lower, bbox, active."""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional

from .geo_helpers import FEET_TO_METERS
from .geometry import GeometryFeature

logger = logging.getLogger(__name__)

# unit code for flight levels in the source dataset's limit objects
FLIGHT_LEVEL_UNIT = 6

# type codes of military airspace in the source dataset
MILITARY_TYPE_CODES = (2, 4)

@dataclass(frozen=True)
class AirspaceSlim:
    id: str
    name: str
    sub: str
    icon: str           # "M" military, "C" civil
    upper: str          # e.g. "FL100", "5000ft"
    lower: str
    bbox: tuple         # (min_lon, min_lat, max_lon, max_lat)
    active: Optional[bool] = None

    @classmethod
    def from_dict(cls, d: dict) -> "AirspaceSlim":
        """Raises ValueError if bbox isn't four numbers or a limit is neither
        a string nor a number of feet."""
        bbox = d.get("bbox")
        if not isinstance(bbox, (list, tuple)) or len(bbox) != 4 or \
                not all(_is_number(v) for v in bbox):
            raise ValueError(f"bad bbox {bbox!r}")
        return cls(id=str(d["id"]), name=d.get("name", ""), sub=d.get("sub", ""),
                   icon=d.get("icon", "C"), upper=_limit(d.get("upper", "0ft")),
                   lower=_limit(d.get("lower", "0ft")),
                   bbox=tuple(float(v) for v in bbox),
                   active=d.get("active"))

    def to_dict(self) -> dict:
        d = asdict(self)
        d["bbox"] = list(self.bbox)
        return d

    def upper_m(self) -> int:
        return alt_m(self.upper)

    def lower_m(self) -> int:
        return alt_m(self.lower)

    def to_row(self) -> str:
        """One HUD strip line: "FL100-0ft TCA  C"."""
        return "%s-%s %-4s %s" % (self.upper, self.lower, self.sub, self.icon)


def _is_number(v) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _limit(v) -> str:
    """Slim file altitude limit: strings pass through, bare numbers are feet."""
    if isinstance(v, str):
        return v
    if _is_number(v):
        return f"{int(v)}ft"
    raise ValueError(f"bad altitude limit {v!r}")


def _feet_to_m(feet: int) -> int:
    # integer math so 10000 ft is exactly 3048 m, truncated toward zero
    m = abs(feet) * 3048 // 10000
    return m if feet >= 0 else -m


def alt_m(s: str) -> int:
    """Altitude string to meters.  "FL100" and "5000ft" are understood, a
    bare number is taken as feet, anything else is 0."""
    if not isinstance(s, str):
        return 0
    lower = s.strip().lower()
    try:
        if lower.startswith("fl"):
            return _feet_to_m(int(lower[2:]) * 100)
        if lower.endswith("ft"):
            return _feet_to_m(int(lower[:-2]))
        return int(float(lower) * FEET_TO_METERS)
    except (ValueError, OverflowError):
        return 0


def alt_string(limit) -> str:
    """Limit object {"value": int, "unit": int} to an altitude string."""
    if not isinstance(limit, dict):
        return "0ft"
    value = limit.get("value")
    unit = limit.get("unit")
    if not isinstance(value, int) or not isinstance(unit, int):
        return "0ft"
    if unit == FLIGHT_LEVEL_UNIT:
        return f"FL{value}"
    return f"{value}ft"


def contains(lat: float, lon: float, bbox) -> bool:
    """Is the point inside bbox (min_lon, min_lat, max_lon, max_lat), edges
    included?"""
    if len(bbox) != 4:
        return False
    return bbox[0] <= lon <= bbox[2] and bbox[1] <= lat <= bbox[3]


def is_active(asp: AirspaceSlim) -> bool:
    """Airspaces without activation data are always active."""
    return asp.active is None or asp.active


def mil_rank(asp: AirspaceSlim) -> int:
    """0 for military, 1 for civil; military sorts first."""
    return 0 if asp.icon.upper().startswith("M") else 1


def sort_key(asp: AirspaceSlim):
    """Highest upper limit first, then military before civil, then name."""
    return (-asp.upper_m(), mil_rank(asp), asp.name)


def sort_airspaces(asps) -> list[AirspaceSlim]:
    return sorted(asps, key=sort_key)


def slim_from_feature(feature: GeometryFeature) -> AirspaceSlim:
    props = feature.properties
    type_code = props.get("type") if isinstance(props.get("type"), int) else 0
    icon = "M" if type_code in MILITARY_TYPE_CODES else "C"
    return AirspaceSlim(id=feature.feature_id,
                        name=feature.title or feature.category,
                        sub=feature.category,
                        icon=icon,
                        upper=alt_string(props.get("upperLimit")),
                        lower=alt_string(props.get("lowerLimit")),
                        bbox=tuple(feature.bounds()),
                        active=True)


def build_slim_list(overlays_by_category: dict) -> list[AirspaceSlim]:
    """One record per overlay feature, categories in sorted order."""
    result = []
    for category in sorted(overlays_by_category):
        for feature in overlays_by_category[category]:
            result.append(slim_from_feature(feature))
    return result


def load_slim_json(path) -> list[AirspaceSlim]:
    """Read a pre-built airspace_slim.json list.  Malformed entries are
    logged and skipped."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    result = []
    for entry in raw:
        try:
            result.append(AirspaceSlim.from_dict(entry))
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            logger.warning("Skipping bad slim record %s: %s", entry, e)
    return result
