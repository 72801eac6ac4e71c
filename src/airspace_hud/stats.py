"""Systemwide statistics tracking, mostly for test and debug purposes."""

from prometheus_client import Gauge

class Stats:
    # catalog loading
    catalog_loads: int = 0
    files_loaded: int = 0
    files_skipped: int = 0
    features_skipped: int = 0

    # tile store
    tile_cache_hits: int = 0
    tile_cache_misses: int = 0
    tiles_decoded: int = 0
    tile_decode_failures: int = 0

    # active zone engine
    samples_received: int = 0
    samples_debounced: int = 0
    zone_queries: int = 0
    hud_updates: int = 0

    @classmethod
    def reset(cl):
        cl.catalog_loads = cl.files_loaded = cl.files_skipped = 0
        cl.features_skipped = 0
        cl.tile_cache_hits = cl.tile_cache_misses = 0
        cl.tiles_decoded = cl.tile_decode_failures = 0
        cl.samples_received = cl.samples_debounced = 0
        cl.zone_queries = cl.hud_updates = 0

    @classmethod
    def register_prom_callbacks(cl):
        """Register a gauge callback for every int member of this class."""

        def make_callback(attr_name):
            """Closure to capture the current attribute name in the for loop."""
            return lambda: getattr(Stats, attr_name)

        for name in dir(cl):
            if name.startswith('_') or not isinstance(getattr(cl, name), int):
                continue
            d = Gauge('airspace_hud_stat_' + name, name)
            d.set_function(make_callback(name))
