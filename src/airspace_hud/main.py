#!/usr/bin/python3
"""Replay ownship telemetry against an airspace directory and print the HUD
strip whenever it changes.

Input is one JSON object per line, for example:
    {"now": 1700000000, "lat": 35.55, "lon": 139.78, "alt_ft": 3000}

Usage:
    python -m airspace_hud.main --data-dir data/airspace track.jsonl
    python -m airspace_hud.main --data-dir data/airspace --tap 35.55 139.78
"""
import argparse
import json
import logging
import sys

from prometheus_client import start_http_server

from .airspace_logger import Logger
from .catalog import AirspaceCatalog
from .config import Config
from .hud import ActiveZoneEngine, filter_enabled
from .location import Location
from .stats import Stats

logger = logging.getLogger(__name__)


def replay(lines, engine: ActiveZoneEngine, enabled=None, out=None) -> int:
    """Feed telemetry lines to the engine, printing HUD changes.
    Returns the number of samples read."""
    if out is None:
        out = sys.stdout
    count = 0
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            jsondict = json.loads(line)
        except json.JSONDecodeError:
            logger.error("JSON Parse fail: %s", line)
            continue
        if not isinstance(jsondict, dict):
            logger.error("Not a telemetry object: %s", line)
            continue
        count += 1
        loc = Location.from_dict(jsondict)
        if engine.on_new_location(loc):
            hud = engine.hud_list
            if enabled is not None:
                hud = filter_enabled(hud, enabled)
            print("%s: %s" % (loc.to_str(), " | ".join(a.to_row() for a in hud)),
                  file=out)
    return count


def print_tap(engine: ActiveZoneEngine, lat: float, lon: float, out=None) -> None:
    if out is None:
        out = sys.stdout
    engine.zone_query_on = True
    stack = engine.on_map_tap(lat, lon)
    if not stack:
        print("no airspace at %.4f, %.4f" % (lat, lon), file=out)
    for asp in stack:
        print("%s  %s" % (asp.to_row(), asp.name), file=out)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="match ownship telemetry against airspace data")
    parser.add_argument("-d", "--debug", action="store_true")
    parser.add_argument("--logfile", help="also log to this file, rotated at 1MB")
    parser.add_argument("--config", help="Path to the YAML config file")
    parser.add_argument("--data-dir", help="airspace directory (geojson/mbtiles), overrides config")
    parser.add_argument("--mport", type=int, help="port for prometheus metrics")
    parser.add_argument("--tap", nargs=2, type=float, metavar=("LAT", "LON"),
                        help="print the airspace stack under this point and exit")
    parser.add_argument("telemetry", nargs="?", help="JSON lines file, default stdin")
    args = parser.parse_args(argv)

    Logger(logging.DEBUG if args.debug else None, args.logfile)

    config = Config(path=args.config) if args.config else Config()
    if args.data_dir:
        config.vars['data_dir'] = args.data_dir

    if args.mport:
        Stats.register_prom_callbacks()
        start_http_server(args.mport)

    catalog = AirspaceCatalog(config)
    catalog.load_all_sync()
    engine = ActiveZoneEngine(catalog, config)

    if args.tap:
        print_tap(engine, args.tap[0], args.tap[1])
        return 0

    enabled = catalog.enabled_categories
    if args.telemetry:
        with open(args.telemetry, "r", encoding="utf-8") as f:
            count = replay(f, engine, enabled)
    else:
        count = replay(sys.stdin, engine, enabled)
    logger.info("Replayed %d samples, %d HUD updates", count, Stats.hud_updates)
    return 0


if __name__ == "__main__":
    sys.exit(main())
