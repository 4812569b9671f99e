"""Metadata Store

Per-item key-value metadata persisted in a single JSON file.

Each entry is keyed by the content item id (stringified). Values are scalars.
`set_if_absent` is the primitive the extractor builds on: a key is written only
when it is missing or empty, so repeated passes never clobber earlier values.

Usage:
    store = MetadataStore(path_to_metadata_json)
    store.set_if_absent("42", "camera", "Sony a7RII")
    store.get("42", "camera")
    store.delete_keys("42", ["camera", "lens"])

Write operations are atomic via temporary file + replace to reduce corruption risk.
Mutations are serialized with a reentrant lock because weather workers write from
background threads.
"""
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from utils.logger import logWarn

__all__ = ["MetadataStore"]


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


class MetadataStore:
    def __init__(self, store_path: Optional[str] = None, auto_save: bool = True):
        self.store_path = Path(store_path) if store_path else None
        self.auto_save = auto_save and self.store_path is not None
        self.data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        self.load()

    # ---------- Core IO ----------
    def load(self) -> None:
        if self.store_path and self.store_path.exists():
            try:
                with open(self.store_path, 'r', encoding='utf-8') as f:
                    self.data = json.load(f)
            except (OSError, ValueError) as e:
                # Corrupted file fallback: keep empty and allow rebuild
                logWarn(f"Could not load metadata store {self.store_path}: {e}")
                self.data = {}

    def save(self) -> None:
        if not self.store_path:
            return
        with self._lock:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.store_path.with_suffix('.tmp')
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(self.data, f, indent=2, ensure_ascii=False)
            tmp_path.replace(self.store_path)

    def _maybe_save(self) -> None:
        if self.auto_save:
            self.save()

    # ---------- Key access ----------
    def get(self, item_id, key: str, default: Any = None) -> Any:
        with self._lock:
            return self.data.get(str(item_id), {}).get(key, default)

    def exists(self, item_id, key: str) -> bool:
        with self._lock:
            return not _is_empty(self.data.get(str(item_id), {}).get(key))

    def set(self, item_id, key: str, value: Any) -> None:
        with self._lock:
            self.data.setdefault(str(item_id), {})[key] = value
            self._maybe_save()

    def set_if_absent(self, item_id, key: str, value: Any) -> bool:
        """Write only when the key is missing or empty. Returns True if written."""
        if _is_empty(value):
            return False
        with self._lock:
            entry = self.data.setdefault(str(item_id), {})
            if not _is_empty(entry.get(key)):
                return False
            entry[key] = value
            self._maybe_save()
            return True

    def delete(self, item_id, key: str) -> bool:
        with self._lock:
            entry = self.data.get(str(item_id))
            if not entry or key not in entry:
                return False
            del entry[key]
            self._maybe_save()
            return True

    # ---------- Entry Management ----------
    def delete_keys(self, item_id, keys: Iterable[str]) -> int:
        with self._lock:
            entry = self.data.get(str(item_id))
            if not entry:
                return 0
            removed = 0
            for key in keys:
                if key in entry:
                    del entry[key]
                    removed += 1
            if removed:
                self._maybe_save()
            return removed

    def entry(self, item_id) -> Dict[str, Any]:
        """Shallow copy of everything stored for an item."""
        with self._lock:
            return dict(self.data.get(str(item_id), {}))

    def list_items(self) -> List[str]:
        with self._lock:
            return list(self.data.keys())
