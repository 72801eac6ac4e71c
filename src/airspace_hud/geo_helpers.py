"""Geographic calculation helpers: degree offsets, slippy-map tile math, and
distances."""

import math

from geopy import distance

METERS_PER_NM = 1852.0
FEET_TO_METERS = 0.3048

# Web Mercator is undefined at the poles; tile math clamps to this latitude.
MAX_MERCATOR_LAT = 85.05112878


def nm_to_lat_lon_offsets(radius_nm: float, center_lat: float) -> tuple[float, float]:
    """Convert a radius in nautical miles to lat/lon degree offsets.

    Args:
        radius_nm: Radius in nautical miles
        center_lat: Center latitude in degrees (used for longitude correction)

    Returns:
        Tuple of (lat_offset, lon_offset) in degrees

    Examples:
        >>> lat_off, lon_off = nm_to_lat_lon_offsets(60.0, 0.0)  # 60nm at equator
        >>> abs(lat_off - 1.0) < 0.01  # ~1 degree latitude
        True
        >>> abs(lon_off - 1.0) < 0.01  # ~1 degree longitude at equator
        True
    """
    lat_offset = radius_nm / 60.0  # 1 degree latitude ≈ 60 nm everywhere
    lon_offset = radius_nm / (60.0 * math.cos(math.radians(center_lat)))  # Adjusted for latitude compression
    return lat_offset, lon_offset


def meters_to_nm(meters: float) -> float:
    return meters / METERS_PER_NM


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle (haversine) distance between two points, in meters."""
    return distance.great_circle((lat1, lon1), (lat2, lon2)).meters


# --- Tile coordinate math (standard Web Mercator) ---

def lonlat_to_tile(lon: float, lat: float, zoom: int) -> tuple[int, int]:
    """Return the (x, y) index of the tile containing lon/lat at this zoom,
    clamped to the valid tile range."""
    n = 2 ** zoom
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    tx_float = (lon + 180.0) / 360.0 * n
    lat_rad = math.radians(lat)
    ty_float = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad))
                / math.pi) / 2.0 * n

    tile_x = max(0, min(n - 1, int(math.floor(tx_float))))
    tile_y = max(0, min(n - 1, int(math.floor(ty_float))))
    return tile_x, tile_y


def tile_to_lonlat(px: float, py: float, x: int, y: int, zoom: int,
                   extent: int = 4096) -> tuple[float, float]:
    """Project a tile-local coordinate (0..extent) inside tile (x, y, zoom)
    to (lon, lat)."""
    n = 2 ** zoom
    lon = ((x + px / extent) / n) * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * ((y + py / extent) / n)))))
    return lon, lat


def tile_bounds(x: int, y: int, zoom: int) -> tuple[float, float, float, float]:
    """Geographic bounds of a tile as (min_lon, min_lat, max_lon, max_lat)."""
    west, north = tile_to_lonlat(0, 0, x, y, zoom, 1)
    east, south = tile_to_lonlat(1, 1, x, y, zoom, 1)
    return west, south, east, north


def tile_range(rect, zoom: int) -> tuple[range, range]:
    """Ranges of tile x and y indices covering rect
    (min_lon, min_lat, max_lon, max_lat).  Tile y grows southward, so the
    north-west corner gives the minimum indices."""
    min_lon, min_lat, max_lon, max_lat = rect
    min_x, min_y = lonlat_to_tile(min_lon, max_lat, zoom)
    max_x, max_y = lonlat_to_tile(max_lon, min_lat, zoom)
    return range(min_x, max_x + 1), range(min_y, max_y + 1)
