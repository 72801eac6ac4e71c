"""Tests for the vector tile decoder."""

import gzip

import pytest

from airspace_hud.geo_helpers import tile_to_lonlat
from airspace_hud.geometry import GeometryKind
from airspace_hud import vector_tile
from airspace_hud.vector_tile import (GeometryType, ProtoReader, VectorTile,
                                      decode_geometry, gunzip, zigzag_decode)
from testinfra import (command, encode_feature, encode_layer, encode_tile, key,
                       length_delimited, line_tile, varint, zigzag)


def test_zigzag_decode():
    assert zigzag_decode(0) == 0
    assert zigzag_decode(1) == -1
    assert zigzag_decode(2) == 1
    assert zigzag_decode(3) == -2
    assert zigzag_decode(zigzag(-1234)) == -1234


def test_varint_reader():
    reader = ProtoReader(varint(300) + varint(1))
    assert reader.read_varint() == 300
    assert reader.read_varint() == 1
    assert reader.at_end()
    assert reader.read_varint() is None


def test_truncated_varint():
    reader = ProtoReader(b"\xff\xff")
    assert reader.read_varint() is None


def test_length_past_end():
    reader = ProtoReader(varint(10) + b"abc")
    assert reader.read_length_delimited() is None


class TestDecodeGeometry:
    def test_relative_coordinates(self):
        ints = [command(1, 1), zigzag(5), zigzag(5),
                command(2, 2), zigzag(10), zigzag(0), zigzag(0), zigzag(-3)]
        assert decode_geometry(ints) == [[(5, 5), (15, 5), (15, 2)]]

    def test_close_path_and_second_ring(self):
        ints = [command(1, 1), zigzag(0), zigzag(0),
                command(2, 2), zigzag(4), zigzag(0), zigzag(0), zigzag(4),
                command(7, 1),
                command(1, 1), zigzag(1), zigzag(1),
                command(2, 1), zigzag(1), zigzag(0),
                command(7, 1)]
        rings = decode_geometry(ints)
        assert rings == [[(0, 0), (4, 0), (4, 4)], [(5, 5), (6, 5)]]

    def test_move_to_flushes_open_ring(self):
        ints = [command(1, 1), zigzag(0), zigzag(0),
                command(2, 1), zigzag(2), zigzag(2),
                command(1, 1), zigzag(1), zigzag(1)]
        assert decode_geometry(ints) == [[(0, 0), (2, 2)], [(3, 3)]]

    def test_truncated_parameters_keep_prefix(self):
        ints = [command(1, 1), zigzag(1), zigzag(2),
                command(2, 3), zigzag(1), zigzag(1), zigzag(7)]
        assert decode_geometry(ints) == [[(1, 2), (2, 3)]]


class TestParseTile:
    def test_minimal_line_tile(self):
        """MoveTo(0,0) LineTo(10,10) decodes to one two-vertex line."""
        tile = VectorTile.parse(line_tile())
        assert tile is not None
        assert len(tile.layers) == 1
        layer = tile.layers[0]
        assert layer.name == "layer"
        assert layer.extent == 4096
        assert len(layer.features) == 1
        assert layer.features[0].type is GeometryType.LINESTRING
        assert layer.features[0].geometry == [[(0, 0), (10, 10)]]

        features = tile.to_features(0, 0, 0)
        assert len(features) == 1
        line = features[0]
        assert line.kind is GeometryKind.LINE
        assert line.category == "layer"
        assert len(line.vertices) == 2
        assert line.vertices[0] == pytest.approx(tile_to_lonlat(0, 0, 0, 0, 0, 4096))
        assert line.vertices[1] == pytest.approx(tile_to_lonlat(10, 10, 0, 0, 0, 4096))
        assert line.vertices[0][0] == pytest.approx(-180.0)

    def test_uncompressed_tile(self):
        tile = VectorTile.parse(line_tile(compress=False))
        assert tile is not None
        assert tile.layers[0].features[0].geometry == [[(0, 0), (10, 10)]]

    def test_custom_extent(self):
        tile = VectorTile.parse(line_tile(extent=512))
        assert tile.layers[0].extent == 512
        features = tile.to_features(3, 2, 2)
        assert features[0].vertices[1] == pytest.approx(tile_to_lonlat(10, 10, 3, 2, 2, 512))

    def test_layer_without_features(self):
        tile = VectorTile.parse(encode_tile([encode_layer("empty", [])]))
        assert tile is not None
        assert tile.layers[0].features == []
        assert tile.to_features(0, 0, 0) == []

    def test_polygon_and_point(self):
        polygon = encode_feature(3, [command(1, 1), zigzag(0), zigzag(0),
                                     command(2, 2), zigzag(100), zigzag(0), zigzag(0), zigzag(100),
                                     command(7, 1)])
        point = encode_feature(1, [command(1, 2), zigzag(5), zigzag(5), zigzag(1), zigzag(1)])
        tile = VectorTile.parse(encode_tile([encode_layer("asp", [polygon, point])]))
        features = tile.to_features(0, 0, 1)
        kinds = [f.kind for f in features]
        assert kinds == [GeometryKind.POLYGON, GeometryKind.POINT, GeometryKind.POINT]
        assert len(features[0].vertices) == 3
        assert len({f.feature_id for f in features}) == 3

    def test_unknown_fields_skipped(self):
        """Tags (field 2), keys (field 3) and fixed-width fields are stepped over."""
        feature = (key(1, 0) + varint(42) +
                   length_delimited(2, varint(0) + varint(0)) +
                   encode_feature(2, [command(1, 1), zigzag(0), zigzag(0),
                                      command(2, 1), zigzag(1), zigzag(1)]))
        layer = (key(15, 0) + varint(2) +
                 length_delimited(3, b"class") +
                 key(9, 5) + b"\x00\x00\x00\x00" +
                 key(10, 1) + b"\x00" * 8 +
                 encode_layer("layer", [feature]))
        tile = VectorTile.parse(length_delimited(7, b"junk") + encode_tile([layer]))
        assert tile is not None
        assert tile.layers[0].features[0].geometry == [[(0, 0), (1, 1)]]

    def test_malformed_feature_dropped_alone(self):
        good = encode_feature(2, [command(1, 1), zigzag(0), zigzag(0),
                                  command(2, 1), zigzag(1), zigzag(1)])
        bad = key(3, 0) + b"\xff"   # truncated varint
        tile = VectorTile.parse(encode_tile([encode_layer("layer", [bad, good])]))
        assert tile is not None
        assert len(tile.layers[0].features) == 1

    def test_malformed_layer_dropped_alone(self):
        bad_layer = length_delimited(1, b"x") + key(2, 2) + varint(50)  # feature runs past end
        good_layer = encode_layer("good", [])
        tile = VectorTile.parse(encode_tile([bad_layer, good_layer]))
        assert [layer.name for layer in tile.layers] == ["good"]

    def test_truncated_tile(self):
        data = line_tile(compress=False)
        assert VectorTile.parse(data + b"\x80") is None
        assert VectorTile.parse(data + key(3, 2) + varint(500)) is None

    def test_feature_without_geometry(self):
        tile = VectorTile.parse(encode_tile([encode_layer("layer", [key(3, 0) + varint(2)])]))
        assert tile.layers[0].features[0].geometry == []
        assert tile.to_features(0, 0, 0) == []


class TestGunzip:
    def test_roundtrip_small_guess(self):
        payload = b"airspace" * 1000
        assert gunzip(gzip.compress(payload), initial_size=16, max_size=1_000_000) == payload

    def test_ceiling_exceeded(self):
        payload = b"\x00" * 10_000
        assert gunzip(gzip.compress(payload), initial_size=100, max_size=5_000) is None

    def test_corrupt(self):
        assert gunzip(b"\x1f\x8b\x08\x00garbage") is None

    def test_truncated(self):
        data = gzip.compress(b"abc" * 1000)
        assert gunzip(data[:len(data) // 2]) is None

    def test_oversized_tile_is_none(self, monkeypatch):
        monkeypatch.setattr(vector_tile, "gunzip",
                            lambda data: gunzip(data, initial_size=4, max_size=8))
        assert VectorTile.parse(line_tile()) is None
