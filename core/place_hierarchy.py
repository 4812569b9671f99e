"""
Place Hierarchy
Country -> State -> City -> Location taxonomy backed by SQLite, plus the manager
that maps an item's flat location fields onto it and back.

Roots are stored with parent_id 0 rather than NULL so the UNIQUE(name, parent_id)
constraint also holds for top-level nodes.
"""
from typing import Dict, List, Optional

from core.database import HarvesterDatabase
from core.metadata_store import MetadataStore
from utils.logger import logDebug, logInfo

ROOT_PARENT = 0
LEVELS = ("country", "state", "city", "location")


def _parent_key(parent_id: Optional[int]) -> int:
    return ROOT_PARENT if parent_id is None else int(parent_id)


def _node(row: Optional[Dict]) -> Optional[Dict]:
    if row is None:
        return None
    node = dict(row)
    node["parent_id"] = None if node["parent_id"] == ROOT_PARENT else node["parent_id"]
    return node


class PlaceTaxonomy:
    def __init__(self, db: HarvesterDatabase):
        self.db = db
        with self.db.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS place_nodes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    parent_id INTEGER NOT NULL DEFAULT 0,
                    UNIQUE(name, parent_id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS place_assignments (
                    item_id TEXT PRIMARY KEY,
                    node_id INTEGER NOT NULL REFERENCES place_nodes(id) ON DELETE CASCADE
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_place_nodes_parent ON place_nodes(parent_id)")

    def find_child(self, parent_id: Optional[int], name: str) -> Optional[Dict]:
        return _node(self.db.query_one(
            "SELECT id, name, parent_id FROM place_nodes WHERE name = ? AND parent_id = ?",
            (name, _parent_key(parent_id)),
        ))

    def find_or_create_child(self, parent_id: Optional[int], name: str) -> int:
        """Return the id of the (name, parent) node, creating it if needed.

        INSERT OR IGNORE against the uniqueness constraint keeps concurrent creators
        from producing duplicates; the SELECT then sees whichever row won.
        """
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO place_nodes (name, parent_id) VALUES (?, ?)",
                (name, _parent_key(parent_id)),
            )
            row = conn.execute(
                "SELECT id FROM place_nodes WHERE name = ? AND parent_id = ?",
                (name, _parent_key(parent_id)),
            ).fetchone()
        return row["id"]

    def get_node(self, node_id: int) -> Optional[Dict]:
        return _node(self.db.query_one("SELECT id, name, parent_id FROM place_nodes WHERE id = ?", (node_id,)))

    def children(self, node_id: Optional[int]) -> List[Dict]:
        rows = self.db.query_all(
            "SELECT id, name, parent_id FROM place_nodes WHERE parent_id = ? ORDER BY name",
            (_parent_key(node_id),),
        )
        return [_node(r) for r in rows]

    def ancestors(self, node_id: int) -> List[Dict]:
        """Chain from the root down to (and including) node_id."""
        chain: List[Dict] = []
        seen = set()
        current = self.get_node(node_id)
        while current is not None and current["id"] not in seen:
            seen.add(current["id"])
            chain.append(current)
            if current["parent_id"] is None:
                break
            current = self.get_node(current["parent_id"])
        chain.reverse()
        return chain

    def assign(self, item_id, node_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO place_assignments (item_id, node_id) VALUES (?, ?)",
                (str(item_id), node_id),
            )

    def assigned_nodes(self, item_id) -> List[Dict]:
        rows = self.db.query_all(
            "SELECT n.id, n.name, n.parent_id FROM place_assignments a "
            "JOIN place_nodes n ON n.id = a.node_id WHERE a.item_id = ?",
            (str(item_id),),
        )
        return [_node(r) for r in rows]

    def clear_assignment(self, item_id) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM place_assignments WHERE item_id = ?", (str(item_id),))
            return cursor.rowcount > 0


class LocationHierarchyManager:
    def __init__(self, taxonomy: PlaceTaxonomy, store: MetadataStore):
        self.taxonomy = taxonomy
        self.store = store

    def resolve_place_node(self, country: str = "", state: str = "", city: str = "",
                           location: str = "") -> Optional[int]:
        """Walk country -> state -> city -> location, skipping empty levels.

        Returns the deepest node id, or None when every level is empty.
        """
        parent_id: Optional[int] = None
        for name in (country, state, city, location):
            name = (name or "").strip()
            if not name:
                continue
            parent_id = self.taxonomy.find_or_create_child(parent_id, name)
        return parent_id

    def assign_item(self, item_id, country: str = "", state: str = "", city: str = "",
                    location: str = "") -> Optional[int]:
        node_id = self.resolve_place_node(country, state, city, location)
        if node_id is None:
            logDebug(f"Item {item_id} has no location fields; no place assigned")
            return None
        self.taxonomy.assign(item_id, node_id)
        logInfo(f"📍 Item {item_id} assigned to place node {node_id}")
        return node_id

    def assign_from_metadata(self, item_id) -> Optional[int]:
        return self.assign_item(
            item_id,
            country=self.store.get(item_id, "country", ""),
            state=self.store.get(item_id, "state", ""),
            city=self.store.get(item_id, "city", ""),
            location=self.store.get(item_id, "location", ""),
        )

    def most_specific_node(self, item_id) -> Optional[Dict]:
        nodes = self.taxonomy.assigned_nodes(item_id)
        if not nodes:
            return None
        for node in nodes:
            if not self.taxonomy.children(node["id"]):
                return node
        return nodes[0]

    def chain_names(self, node_id: int) -> List[str]:
        return [n["name"] for n in self.taxonomy.ancestors(node_id)]

    @staticmethod
    def _flatten_names(names: List[str]) -> Dict[str, str]:
        flat = {level: "" for level in LEVELS}
        for depth, name in enumerate(names[: len(LEVELS)]):
            flat[LEVELS[depth]] = name
        return flat

    def flatten(self, node_id: int) -> Dict[str, str]:
        """Map depth-from-root onto country/state/city/location ("" when absent)."""
        return self._flatten_names(self.chain_names(node_id))

    def sync_flat_fields(self, item_id) -> List[str]:
        """Backfill empty flat location fields from the assigned node. Never overwrites.

        A chain shorter than four levels skipped some level, so its depths only line up
        with the flat fields when the item has none of them yet.
        """
        node = self.most_specific_node(item_id)
        if node is None:
            return []
        names = self.chain_names(node["id"])
        if len(names) < len(LEVELS) and any(self.store.get(item_id, level) for level in LEVELS):
            logDebug(f"Item {item_id}: place node {node['id']} is partial and flat fields exist; no backfill")
            return []
        written = []
        for key, value in self._flatten_names(names).items():
            if value and self.store.set_if_absent(item_id, key, value):
                written.append(key)
        if written:
            logDebug(f"Backfilled {written} for item {item_id} from place node {node['id']}")
        return written
