"""Read local configuration yamls.

These yamls specify user-specific settings such as the airspace data
directory, cache sizes, and HUD debounce thresholds.  Anything not given in
the yaml falls back to DEFAULTS."""

import copy
import logging

import yaml
from .util import safe_path

logger = logging.getLogger(__name__)

# don't rely on the cwd to find the config file
CONFIGPATH = safe_path("../../config.yaml")

DEFAULTS = {
    'data_dir': safe_path("../../data/airspace"),
    'multi_category_source': 'jp_asp',  # this file is split into sub-categories
    'vector_zoom': 8,                   # zoom level read from mbtiles sources
    'tile_cache_limit': 100,            # decoded tiles kept per mbtiles source
    'rtree_max_entries': 8,
    'debounce': {
        'distance_m': 500.,
        'altitude_m': 100.,
        'time_s': 60.,
    },
    'hud_rows': 3,
    'tap_rows': 4,
    'enabled_categories': [],           # empty: enable everything after first load
    'enabled_facility_categories': [],
    'hidden_feature_ids': {},           # category -> list of feature ids
}

class Config:
    def __init__(self, path=None, yaml_data=None):
        self.vars = copy.deepcopy(DEFAULTS)

        if yaml_data is None:
            yaml_data = self._load(path or CONFIGPATH)
        if yaml_data:
            self._merge(self.vars, yaml_data)

    @staticmethod
    def _load(path) -> dict:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            logger.debug("No config found at %s, using defaults", path)
            return {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Config parse fail for %s, using defaults: %s", path, e)
            return {}
        if data is not None and not isinstance(data, dict):
            logger.warning("Config %s is not a mapping, using defaults", path)
            return {}
        return data or {}

    @classmethod
    def _merge(cls, base: dict, overrides: dict) -> None:
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict) \
                    and key != 'hidden_feature_ids':
                cls._merge(base[key], value)
            else:
                base[key] = value

    def __getitem__(self, key):
        return self.vars[key]

    def get(self, key, default=None):
        return self.vars.get(key, default)
