import copy
import os
import re
from typing import Any, Dict

_UNRESOLVED_ENV = re.compile(r"\$\{[^}]*\}")

DEFAULT_CONFIG: Dict[str, Any] = {
    "paths": {
        "lib_root": "${EXIF_HARVESTER_ROOT}",
        "data_root": "{lib_root}/data",
        "metadata_store": "{data_root}/metadata.json",
        "database": "{data_root}/harvester.db",
        "media_root": "{lib_root}/media",
        "log_dir": "{lib_root}/logs",
    },
    "processing": {
        "enabled_content_types": ["post"],
        "delete_on_update": True,
    },
    "timezone": {
        "enabled": True,
        "api_key": "${TIMEZONEDB_API_KEY}",
        "api_url": "https://api.timezonedb.com/v2.1/get-time-zone",
        "timeout_seconds": 30,
        "offline_fallback": False,
    },
    "weather": {
        "enabled": False,
        "api_key": "${PIRATE_WEATHER_API_KEY}",
        "endpoints": [
            "https://timemachine.pirateweather.net/forecast/{api_key}/{lat},{lon},{time}",
            "https://api.pirateweather.net/forecast/{api_key}/{lat},{lon},{time}",
        ],
        "connect_timeout_seconds": 10,
        "timeout_seconds": 30,
        "failure_cooldown_seconds": 3600,
        "user_agent": "ExifHarvester/1.0",
    },
    "seo": {
        "max_length": 155,
        "custom_blacklist": {"exact": [], "patterns": []},
        "synonyms": {},
    },
}


def _expand_string(value: str, variables: Dict[str, str]) -> str:
    # 1) Expand environment variables like ${VAR}
    expanded = os.path.expandvars(value)
    # Unset variables stay as literal ${VAR}; treat them as empty
    expanded = _UNRESOLVED_ENV.sub("", expanded)
    # 2) Expand {var} placeholders using provided variables
    try:
        expanded = expanded.format(**variables)
    except (KeyError, IndexError, ValueError):
        # Templates such as "{lat},{lon}" are resolved later by their consumer
        pass
    return expanded


def _expand_obj(obj: Any, variables: Dict[str, str]) -> Any:
    if isinstance(obj, str):
        return _expand_string(obj, variables)
    if isinstance(obj, list):
        return [_expand_obj(i, variables) for i in obj]
    if isinstance(obj, dict):
        return {k: _expand_obj(v, variables) for k, v in obj.items()}
    return obj


def merge_defaults(config: Dict[str, Any], defaults: Dict[str, Any] = None) -> Dict[str, Any]:
    """Deep-merge user config over defaults. Lists and scalars from the user win."""
    base = copy.deepcopy(DEFAULT_CONFIG if defaults is None else defaults)
    for key, value in (config or {}).items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = merge_defaults(value, base[key])
        else:
            base[key] = copy.deepcopy(value)
    return base


def resolve_config_placeholders(config: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve placeholders in config using lib_root and environment variables.

    Priority for lib_root:
    1. ENV EXIF_HARVESTER_ROOT
    2. config.paths.lib_root
    3. current working directory
    """
    paths = config.get("paths", {})
    env_lib = os.getenv("EXIF_HARVESTER_ROOT")

    configured_root = paths.get("lib_root")
    resolved_config_root = ""
    if configured_root:
        expanded_value = os.path.expandvars(configured_root)
        if expanded_value and expanded_value != configured_root:
            resolved_config_root = expanded_value
        elif "${" in configured_root:
            resolved_config_root = ""
        else:
            resolved_config_root = configured_root

    lib_root = env_lib or resolved_config_root or os.getcwd()

    config = dict(config)
    paths = dict(config.get("paths", {}))
    paths["lib_root"] = lib_root
    config["paths"] = paths

    variables = {"lib_root": lib_root}
    current = _expand_obj(config, variables)

    # Multi-pass: paths may reference other paths ({data_root} -> {lib_root})
    for _ in range(5):
        resolved_paths = current.get("paths", {})
        extended_variables = dict(variables)
        extended_variables.update({k: v for k, v in resolved_paths.items() if isinstance(v, str)})

        next_resolved = _expand_obj(current, extended_variables)
        if next_resolved == current:
            break
        current = next_resolved

    return current


def load_settings(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Merge defaults under a raw config and resolve every placeholder."""
    return resolve_config_placeholders(merge_defaults(raw))
