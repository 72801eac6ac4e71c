from dataclasses import dataclass, fields
from typing import Optional

from .geo_helpers import FEET_TO_METERS, distance_m

@dataclass
class Location:
    """A single ownship telemetry sample: position, altitude, timestamp."""
    lat: float = 0.
    lon: float = 0.
    alt_ft: float = 0.
    now: Optional[float] = 0

    def __post_init__(self):
        """sometimes these values come in as ints or strings"""
        for name in ("lat", "lon", "alt_ft"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                setattr(self, name, 0.)
            else:
                setattr(self, name, float(value))
        if not isinstance(self.now, (int, float)):
            self.now = 0

    @classmethod
    def from_dict(cl, d: dict):
        nd = {}
        for f in fields(Location):
            if f.name in d:
                nd[f.name] = d[f.name]
        return Location(**nd)

    @property
    def alt_m(self) -> float:
        return self.alt_ft * FEET_TO_METERS

    def to_str(self):
        s = "%d ft MSL %.4f, %.4f @ %s" % (self.alt_ft, self.lat, self.lon, self.now)
        return s

    def __sub__(self, other):
        """Return distance to the other Location in meters"""
        return self.distfrom(other.lat, other.lon)

    def distfrom(self, lat, lon):
        """Return great-circle distance from other lat/long in meters"""
        return distance_m(self.lat, self.lon, lat, lon)
