"""Minimal Mapbox Vector Tile decoder.

Only what the airspace basemaps need is decoded: layer name, extent, and
feature geometry (points, lines, polygons).  Feature tags/properties are
skipped.  Payloads may be gzip wrapped, as tippecanoe writes them into
mbtiles.

Decoding is fail-soft: a sub-message with broken framing (truncated varint,
length running past its parent) is dropped and its siblings are kept.
"""

import enum
import logging
import zlib
from dataclasses import dataclass, field
from typing import Optional

from .geo_helpers import tile_to_lonlat
from .geometry import GeometryFeature, GeometryKind

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
INFLATE_INITIAL_SIZE = 1_000_000
INFLATE_MAX_SIZE = 20_000_000

DEFAULT_EXTENT = 4096

# geometry command ids
CMD_MOVE_TO = 1
CMD_LINE_TO = 2
CMD_CLOSE_PATH = 7

# protobuf wire types
WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LEN = 2
WIRE_FIXED32 = 5


class GeometryType(enum.IntEnum):
    UNKNOWN = 0
    POINT = 1
    LINESTRING = 2
    POLYGON = 3


@dataclass
class Feature:
    type: GeometryType
    geometry: list  # rings of (x, y) tile-local integer tuples


@dataclass
class Layer:
    name: str
    extent: int = DEFAULT_EXTENT
    features: list = field(default_factory=list)


def gunzip(data: bytes, initial_size: int = INFLATE_INITIAL_SIZE,
           max_size: int = INFLATE_MAX_SIZE) -> Optional[bytes]:
    """Inflate a gzip payload into a bounded buffer, doubling the size guess
    up to max_size.  Returns None if the payload is corrupt, truncated, or
    doesn't fit."""
    size = initial_size
    while True:
        inflater = zlib.decompressobj(zlib.MAX_WBITS | 16)
        try:
            out = inflater.decompress(data, size)
        except zlib.error as e:
            logger.debug("gzip inflate failed: %s", e)
            return None
        if inflater.eof:
            return out
        if len(out) < size:
            # ran out of input before the end of the stream
            return None
        if size >= max_size:
            logger.warning("Tile larger than %d bytes inflated, dropped", max_size)
            return None
        size = min(size * 2, max_size)


def decompress_if_needed(data: bytes) -> Optional[bytes]:
    if data[:2] == GZIP_MAGIC:
        return gunzip(data)
    return data


class ProtoReader:
    """Cursor over a protobuf encoded buffer.  Read methods return None
    rather than raising when the buffer is truncated."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def at_end(self) -> bool:
        return self.offset >= len(self.data)

    def read_varint(self) -> Optional[int]:
        result = 0
        shift = 0
        while self.offset < len(self.data):
            b = self.data[self.offset]
            self.offset += 1
            result |= (b & 0x7F) << shift
            if not b & 0x80:
                return result
            shift += 7
        return None

    def read_length_delimited(self) -> Optional[bytes]:
        length = self.read_varint()
        if length is None or self.offset + length > len(self.data):
            return None
        sub = self.data[self.offset:self.offset + length]
        self.offset += length
        return sub

    def skip(self, wire: int) -> bool:
        """Step over one field value.  False if that isn't possible."""
        if wire == WIRE_VARINT:
            return self.read_varint() is not None
        if wire == WIRE_LEN:
            return self.read_length_delimited() is not None
        if wire == WIRE_FIXED64:
            width = 8
        elif wire == WIRE_FIXED32:
            width = 4
        else:
            # groups and reserved wire types have no length we can skip by
            return False
        if self.offset + width > len(self.data):
            return False
        self.offset += width
        return True


def zigzag_decode(n: int) -> int:
    return (n >> 1) ^ -(n & 1)


def decode_geometry(ints: list) -> list:
    """Run the MoveTo/LineTo/ClosePath command stream against a cursor.
    Returns a list of rings, each a list of absolute (x, y) tuples."""
    rings = []
    ring = []
    x = y = 0
    i = 0
    while i < len(ints):
        cmd = ints[i] & 0x7
        count = ints[i] >> 3
        i += 1
        if cmd in (CMD_MOVE_TO, CMD_LINE_TO):
            if cmd == CMD_MOVE_TO and ring:
                rings.append(ring)
                ring = []
            for _ in range(count):
                if i + 1 >= len(ints):
                    # parameters run past the end of the stream
                    i = len(ints)
                    break
                x += zigzag_decode(ints[i])
                y += zigzag_decode(ints[i + 1])
                i += 2
                ring.append((x, y))
        elif cmd == CMD_CLOSE_PATH:
            if ring:
                rings.append(ring)
                ring = []
        else:
            logger.debug("Unknown geometry command %d", cmd)
    if ring:
        rings.append(ring)
    return rings


def parse_feature(data: bytes) -> Optional[Feature]:
    reader = ProtoReader(data)
    type_raw = 0
    ints = []
    while not reader.at_end():
        key = reader.read_varint()
        if key is None:
            return None
        field_no, wire = key >> 3, key & 0x7
        if field_no == 3 and wire == WIRE_VARINT:
            type_raw = reader.read_varint()
            if type_raw is None:
                return None
        elif field_no == 4 and wire == WIRE_LEN:
            packed = reader.read_length_delimited()
            if packed is None:
                return None
            geometry_reader = ProtoReader(packed)
            while not geometry_reader.at_end():
                value = geometry_reader.read_varint()
                if value is None:
                    return None
                ints.append(value)
        elif not reader.skip(wire):
            return None
    try:
        gtype = GeometryType(type_raw)
    except ValueError:
        gtype = GeometryType.UNKNOWN
    return Feature(type=gtype, geometry=decode_geometry(ints))


def parse_layer(data: bytes) -> Optional[Layer]:
    reader = ProtoReader(data)
    layer = Layer(name="")
    while not reader.at_end():
        key = reader.read_varint()
        if key is None:
            return None
        field_no, wire = key >> 3, key & 0x7
        if field_no == 1 and wire == WIRE_LEN:
            raw = reader.read_length_delimited()
            if raw is None:
                return None
            layer.name = raw.decode("utf-8", errors="replace")
        elif field_no == 2 and wire == WIRE_LEN:
            raw = reader.read_length_delimited()
            if raw is None:
                return None
            feature = parse_feature(raw)
            if feature is not None:
                layer.features.append(feature)
            else:
                logger.debug("Dropped malformed feature in layer %s", layer.name)
        elif field_no == 5 and wire == WIRE_VARINT:
            extent = reader.read_varint()
            if extent is None:
                return None
            layer.extent = extent or DEFAULT_EXTENT
        elif not reader.skip(wire):
            return None
    return layer


class VectorTile:
    """Decoded layers of one tile."""

    def __init__(self, layers: list):
        self.layers: list[Layer] = layers

    @classmethod
    def parse(cls, data: bytes) -> Optional["VectorTile"]:
        """Decode a (possibly gzipped) tile.  Returns None if the payload
        can't be inflated or its top-level framing is broken."""
        raw = decompress_if_needed(data)
        if raw is None:
            return None
        reader = ProtoReader(raw)
        layers = []
        while not reader.at_end():
            key = reader.read_varint()
            if key is None:
                return None
            field_no, wire = key >> 3, key & 0x7
            if field_no == 3 and wire == WIRE_LEN:
                sub = reader.read_length_delimited()
                if sub is None:
                    return None
                layer = parse_layer(sub)
                if layer is not None:
                    layers.append(layer)
                else:
                    logger.debug("Dropped malformed layer")
            elif not reader.skip(wire):
                return None
        return cls(layers)

    def to_features(self, x: int, y: int, z: int) -> list[GeometryFeature]:
        """Project every ring to geographic coordinates.  Each ring becomes
        one feature; point features yield one POINT per vertex."""
        result = []
        for layer_idx, layer in enumerate(self.layers):
            for feat_idx, feature in enumerate(layer.features):
                if feature.type is GeometryType.UNKNOWN:
                    continue
                for ring_idx, ring in enumerate(feature.geometry):
                    coords = tuple(tile_to_lonlat(px, py, x, y, z, layer.extent)
                                   for px, py in ring)
                    fid = f"{z}/{x}/{y}/{layer_idx}/{feat_idx}/{ring_idx}"
                    if feature.type is GeometryType.POINT:
                        for pt_idx, coord in enumerate(coords):
                            result.append(GeometryFeature(
                                kind=GeometryKind.POINT, vertices=(coord,),
                                category=layer.name, feature_id=f"{fid}/{pt_idx}"))
                    else:
                        kind = (GeometryKind.LINE if feature.type is GeometryType.LINESTRING
                                else GeometryKind.POLYGON)
                        result.append(GeometryFeature(
                            kind=kind, vertices=coords, category=layer.name,
                            feature_id=fid))
        return result


def parse_tile(data: bytes) -> Optional[VectorTile]:
    return VectorTile.parse(data)
