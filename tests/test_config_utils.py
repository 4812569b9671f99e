"""Tests for config loading, placeholder resolution and validation."""

import pytest

from utils.config_utils import DEFAULT_CONFIG, load_settings, merge_defaults
from utils.validator import validate_config

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("EXIF_HARVESTER_ROOT", "TIMEZONEDB_API_KEY", "PIRATE_WEATHER_API_KEY"):
        monkeypatch.delenv(name, raising=False)


# =============================================================================
# PLACEHOLDERS
# =============================================================================

def test_paths_resolve_through_lib_root():
    config = load_settings({"paths": {"lib_root": "/srv/harvest"}})
    assert config["paths"]["data_root"] == "/srv/harvest/data"
    assert config["paths"]["metadata_store"] == "/srv/harvest/data/metadata.json"
    assert config["paths"]["database"] == "/srv/harvest/data/harvester.db"


def test_env_root_takes_priority(monkeypatch):
    monkeypatch.setenv("EXIF_HARVESTER_ROOT", "/opt/harvest")
    config = load_settings({"paths": {"lib_root": "/srv/harvest"}})
    assert config["paths"]["lib_root"] == "/opt/harvest"
    assert config["paths"]["log_dir"] == "/opt/harvest/logs"


def test_unset_root_falls_back_to_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_settings({})
    assert config["paths"]["lib_root"] == str(tmp_path)


def test_unresolved_env_becomes_empty():
    config = load_settings({})
    assert config["timezone"]["api_key"] == ""
    assert config["weather"]["api_key"] == ""


def test_env_keys_expand_and_url_templates_survive(monkeypatch):
    monkeypatch.setenv("PIRATE_WEATHER_API_KEY", "abc123")
    config = load_settings({})
    assert config["weather"]["api_key"] == "abc123"
    assert config["weather"]["endpoints"][0].endswith("/{api_key}/{lat},{lon},{time}")


def test_merge_keeps_user_values_and_defaults():
    merged = merge_defaults({"weather": {"enabled": True, "endpoints": ["https://example.test/{lat}"]}})
    assert merged["weather"]["enabled"] is True
    assert merged["weather"]["endpoints"] == ["https://example.test/{lat}"]
    assert merged["weather"]["failure_cooldown_seconds"] == 3600
    assert DEFAULT_CONFIG["weather"]["enabled"] is False


# =============================================================================
# VALIDATION
# =============================================================================

def _valid(tmp_path):
    return load_settings({"paths": {"lib_root": str(tmp_path)}})


def test_valid_config_creates_data_dirs(tmp_path):
    config = _valid(tmp_path)
    assert validate_config(config) is True
    assert (tmp_path / "data").is_dir()


def test_missing_section(tmp_path):
    config = _valid(tmp_path)
    del config["seo"]
    with pytest.raises(ValueError, match="seo"):
        validate_config(config)


def test_empty_endpoints(tmp_path):
    config = _valid(tmp_path)
    config["weather"]["endpoints"] = []
    with pytest.raises(ValueError, match="endpoints"):
        validate_config(config)


@pytest.mark.parametrize("section,key,value", [
    ("weather", "failure_cooldown_seconds", 0),
    ("timezone", "timeout_seconds", "30"),
    ("seo", "max_length", True),
])
def test_non_positive_numbers(tmp_path, section, key, value):
    config = _valid(tmp_path)
    config[section][key] = value
    with pytest.raises(ValueError, match=key):
        validate_config(config)


def test_content_types_must_be_strings(tmp_path):
    config = _valid(tmp_path)
    config["processing"]["enabled_content_types"] = "post"
    with pytest.raises(ValueError):
        validate_config(config)
