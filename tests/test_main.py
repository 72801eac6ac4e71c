"""Tests for the telemetry replay command line."""

import io
import json
import logging
import logging.handlers

import pytest

from airspace_hud import main as cli
from airspace_hud.catalog import AirspaceCatalog
from airspace_hud.config import Config
from airspace_hud.hud import ActiveZoneEngine
from testinfra import copy_fixture

HANEDA_LOW = {"now": 0, "lat": 35.55, "lon": 139.78, "alt_ft": 2000}
HANEDA_HIGH = {"now": 1, "lat": 35.55, "lon": 139.78, "alt_ft": 5000}


@pytest.fixture
def data_dir(tmp_path):
    copy_fixture("jp_asp.geojson", tmp_path)
    return tmp_path


@pytest.fixture
def engine(data_dir):
    catalog = AirspaceCatalog(Config(yaml_data={'data_dir': str(data_dir)}))
    catalog.load_all_sync()
    return ActiveZoneEngine(catalog)


def telemetry(*samples):
    return [json.dumps(s) + "\n" for s in samples]


def test_replay(engine):
    lines = telemetry(HANEDA_LOW) + ["{not json\n", "[1, 2]\n", "\n"] + telemetry(HANEDA_HIGH)
    out = io.StringIO()
    assert cli.replay(lines, engine, out=out) == 2
    assert out.getvalue().splitlines() == [
        "2000 ft MSL 35.5500, 139.7800 @ 0: 3000ft-0ft CTR  C",
        "5000 ft MSL 35.5500, 139.7800 @ 1: FL140-3000ft TCA  C",
    ]


def test_replay_unchanged_hud_prints_once(engine):
    out = io.StringIO()
    later = dict(HANEDA_LOW, now=120)
    assert cli.replay(telemetry(HANEDA_LOW, later), engine, out=out) == 2
    assert len(out.getvalue().splitlines()) == 1


def test_replay_enabled_filter(engine):
    out = io.StringIO()
    cli.replay(telemetry(HANEDA_LOW, HANEDA_HIGH), engine, enabled=["TCA"], out=out)
    assert out.getvalue().splitlines() == [
        "2000 ft MSL 35.5500, 139.7800 @ 0: ",
        "5000 ft MSL 35.5500, 139.7800 @ 1: FL140-3000ft TCA  C",
    ]


def test_print_tap(engine):
    out = io.StringIO()
    cli.print_tap(engine, 35.55, 139.78, out=out)
    assert out.getvalue().splitlines() == [
        "FL140-3000ft TCA  C  TOKYO TCA-2B",
        "3000ft-0ft CTR  C  HANEDA CTR",
    ]


def test_print_tap_nothing(engine):
    out = io.StringIO()
    cli.print_tap(engine, 0., 0., out=out)
    assert out.getvalue() == "no airspace at 0.0000, 0.0000\n"


def test_main_replay_file(data_dir, tmp_path, capsys):
    track = tmp_path / "track.jsonl"
    track.write_text("".join(telemetry(HANEDA_LOW, HANEDA_HIGH)), encoding="utf-8")
    assert cli.main(["--data-dir", str(data_dir), str(track)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[-1] == "5000 ft MSL 35.5500, 139.7800 @ 1: FL140-3000ft TCA  C"


def test_main_tap(data_dir, capsys):
    assert cli.main(["--data-dir", str(data_dir), "--tap", "35.55", "139.78"]) == 0
    assert "TOKYO TCA-2B" in capsys.readouterr().out


def test_main_config_file(data_dir, tmp_path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text("data_dir: %s\nenabled_categories: [CTR]\n" % data_dir, encoding="utf-8")
    track = tmp_path / "track.jsonl"
    track.write_text("".join(telemetry(HANEDA_LOW, HANEDA_HIGH)), encoding="utf-8")
    assert cli.main(["--config", str(config), str(track)]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "2000 ft MSL 35.5500, 139.7800 @ 0: 3000ft-0ft CTR  C",
        "5000 ft MSL 35.5500, 139.7800 @ 1: ",
    ]


def test_main_logfile(data_dir, tmp_path):
    logfile = tmp_path / "hud.log"
    root = logging.getLogger()
    level = root.level
    try:
        assert cli.main(["-d", "--logfile", str(logfile), "--data-dir", str(data_dir),
                         "--tap", "35.55", "139.78"]) == 0
    finally:
        root.setLevel(level)
        for handler in [h for h in root.handlers
                        if isinstance(h, logging.handlers.RotatingFileHandler)]:
            root.removeHandler(handler)
            handler.close()
    assert "Loaded 5 categories" in logfile.read_text(encoding="utf-8")
