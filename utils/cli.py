import json
import os
import sys
from typing import Any, Dict, List

from utils.config_utils import load_settings
from utils.logger import logError, logInfo


def load_config(path):
    try:
        if not os.path.exists(path):
            logError(f"Config file not found: {path}")
            sys.exit(1)

        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return load_settings(raw)
    except (OSError, ValueError) as e:
        logError(f"Failed to parse config: {e}")
        sys.exit(1)


def load_items(path) -> List[Dict[str, Any]]:
    """Load content items from a JSON file holding a list (or {"items": [...]})."""
    if not path:
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logError(f"Failed to read items file {path}: {e}")
        sys.exit(1)

    items = data.get("items", []) if isinstance(data, dict) else data
    if not isinstance(items, list):
        logError(f"Items file {path} must contain a list of items")
        sys.exit(1)
    logInfo(f"📄 Loaded {len(items)} items from {path}")
    return [item for item in items if isinstance(item, dict)]


def list_corrections(table) -> None:
    logInfo(f"📦 {table.label} corrections:")
    for row in table.list_all():
        logInfo(f"  [{row['id']}] {row['raw_name']} -> {row[table.value_column]}")
