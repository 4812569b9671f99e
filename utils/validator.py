import os

REQUIRED_SECTIONS = ["paths", "processing", "timezone", "weather", "seo"]
REQUIRED_PATHS = ["data_root", "metadata_store", "database"]


def validate_config(config):
    """Validate required sections and value types, and ensure data directories exist.

    Returns True if validation passes.
    """
    missing = [key for key in REQUIRED_SECTIONS if not isinstance(config.get(key), dict)]
    if missing:
        raise ValueError(f"❌ Missing required config sections: {', '.join(missing)}")

    paths = config["paths"]
    missing_paths = [key for key in REQUIRED_PATHS if not paths.get(key)]
    if missing_paths:
        raise ValueError(f"❌ Missing required paths: {', '.join(missing_paths)}")

    content_types = config["processing"].get("enabled_content_types")
    if not isinstance(content_types, list) or not all(isinstance(t, str) for t in content_types):
        raise ValueError("❌ processing.enabled_content_types must be a list of strings")

    endpoints = config["weather"].get("endpoints")
    if not isinstance(endpoints, list) or not endpoints:
        raise ValueError("❌ weather.endpoints must be a non-empty list")

    for section, key in [("weather", "failure_cooldown_seconds"), ("weather", "timeout_seconds"),
                         ("weather", "connect_timeout_seconds"), ("timezone", "timeout_seconds"),
                         ("seo", "max_length")]:
        value = config[section].get(key)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"❌ {section}.{key} must be a positive number (got {value!r})")

    blacklist = config["seo"].get("custom_blacklist", {})
    if not isinstance(blacklist, dict):
        raise ValueError("❌ seo.custom_blacklist must be an object with 'exact' and 'patterns' lists")

    for key in ["data_root"]:
        path = paths.get(key)
        if path and isinstance(path, str):
            try:
                os.makedirs(path, exist_ok=True)
            except OSError as e:
                raise ValueError(f"❌ Failed to ensure directory for '{key}': {path} ({e})")

    for key in ["metadata_store", "database"]:
        path = paths.get(key)
        parent = os.path.dirname(path) if isinstance(path, str) and path != ":memory:" else ""
        if parent and not os.path.exists(parent):
            try:
                os.makedirs(parent, exist_ok=True)
            except OSError as e:
                raise ValueError(f"❌ Failed to create parent directory for {key}: {parent} ({e})")

    return True
