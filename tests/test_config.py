"""Tests for config yaml loading and defaults."""

import yaml

from airspace_hud.config import DEFAULTS, Config

YAML_STRING = """
  data_dir: /srv/airspace
  tile_cache_limit: 20
  debounce:
    distance_m: 250
  enabled_categories: [TCA, CTR]
  hidden_feature_ids:
    CTR: [asp-ctr]
"""


def test_defaults_only():
    config = Config(yaml_data={})
    assert config['multi_category_source'] == 'jp_asp'
    assert config['debounce'] == {'distance_m': 500., 'altitude_m': 100., 'time_s': 60.}
    assert config['hud_rows'] == 3
    assert config['tap_rows'] == 4
    assert config.get('nonexistent', 'x') == 'x'


def test_defaults_not_shared():
    config = Config(yaml_data={})
    config['debounce']['distance_m'] = 1.
    assert DEFAULTS['debounce']['distance_m'] == 500.
    assert Config(yaml_data={})['debounce']['distance_m'] == 500.


def test_yaml_overrides_merge():
    config = Config(yaml_data=yaml.safe_load(YAML_STRING))
    assert config['data_dir'] == '/srv/airspace'
    assert config['tile_cache_limit'] == 20
    # nested sections merge key by key
    assert config['debounce'] == {'distance_m': 250, 'altitude_m': 100., 'time_s': 60.}
    assert config['enabled_categories'] == ['TCA', 'CTR']
    assert config['hidden_feature_ids'] == {'CTR': ['asp-ctr']}


def test_load_from_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(YAML_STRING, encoding="utf-8")
    config = Config(path=str(path))
    assert config['tile_cache_limit'] == 20
    assert config['vector_zoom'] == 8


def test_missing_file_uses_defaults(tmp_path):
    config = Config(path=str(tmp_path / "missing.yaml"))
    assert config.vars == DEFAULTS


def test_bad_yaml_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("debounce: [unterminated\n", encoding="utf-8")
    assert Config(path=str(path)).vars == DEFAULTS


def test_non_mapping_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert Config(path=str(path)).vars == DEFAULTS
