"""
Correction Tables
Operator-curated mappings from raw EXIF/IPTC strings to display names.

Three tables share one SQLite database:
    camera_corrections   raw camera model   -> pretty camera name
    lens_corrections     raw lens model     -> pretty lens name
    location_corrections truncated location -> full location name (raw <= 32 chars)

IPTC sublocation fields are capped at 32 characters by most tools, which is why the
location table exists and why its raw key carries that limit.

Usage:
    tables = CorrectionTables(HarvesterDatabase(db_path))
    tables.seed_defaults()
    tables.cameras.lookup("ILCE-7RM2")  # -> "Sony a7RII"
"""
from __future__ import annotations

import sqlite3
from typing import Dict, List, Optional

from core.database import HarvesterDatabase
from utils.logger import logInfo
from utils.time_utils import utc_now_iso_z

__all__ = [
    "CorrectionError",
    "DuplicateKeyError",
    "ValidationError",
    "CorrectionTable",
    "CorrectionTables",
]

LOCATION_RAW_MAX_LENGTH = 32


class CorrectionError(Exception):
    """Base class for correction-table failures surfaced to the operator."""


class DuplicateKeyError(CorrectionError):
    def __init__(self, table: str, raw_name: str):
        super().__init__(f"{table}: raw name '{raw_name}' already exists")
        self.table = table
        self.raw_name = raw_name


class ValidationError(CorrectionError, ValueError):
    pass


DEFAULT_CAMERAS = [
    ("Canon EOS 60D", "Canon EOS 60D"),
    ("Canon PowerShot S90", "Canon PowerShot S90"),
    ("Canon EOS DIGITAL REBEL XTi", "Canon EOS Digital Rebel XTi/400D"),
    ("ILCE-7RM2", "Sony a7RII"),
    ("DSC-RX100M7", "Sony RX100 Vii"),
    ("X100VI", "Fujifilm X100vi"),
    ("X-T5", "Fujifilm X-T5"),
    ("X-T30 II", "Fujifilm X-T30 II"),
    ("X-E5", "Fujifilm X-E5"),
    ("FinePix X100", "Fujifilm FinePix X100"),
    ("DMC-GX8", "Panasonic Lumix GX8"),
    ("DMC-GM1", "Panasonic Lumix GM1"),
    ("DMC-G6", "Panasonic Lumix G6"),
    ("iPhone 5s", "Apple iPhone 5s"),
    ("iPhone 6", "Apple iPhone"),
    ("iPhone 6s", "Apple iPhone 6s"),
    ("iPhone 7 Plus", "Apple iPhone 7 Plus"),
    ("iPhone 11 Pro Max", "Apple iPhone 11 Pro Max"),
    ("iPhone 13 Pro Max", "Apple iPhone 13 Pro Max"),
    ("iPhone 15 Pro Max", "Apple iPhone 15 Pro Max"),
    ("iPhone", "Apple iPhone"),
    ("Pixel 2 XL", "Google Pixel 2 XL"),
    ("SM-G930T", "Samsung Galaxy S7"),
    ("FC7203", "DJI Mavic Mini"),
    ("FC300C", "DJI Phantom 3"),
    ("C4040Z", "Olympus C4040Z"),
    ("uD600,S600", "Olympus Stylus 600"),
]

DEFAULT_LENSES = [
    ("EF-S18-55mm f/3.5-5.6", "Canon EF-S 18-55mm f/3.5-5.6"),
    ("EF-S55-250mm f/4-5.6 IS", "Canon EF-S 55-250mm f/4-5.6 IS"),
    ("EF100-400mm f/4.5-5.6L IS USM", "Canon EF 100-400mm f/4.5-5.6L IS USM"),
    ("EF100mm f/2.8 Macro USM", "Canon EF 100mm f/2.8 Macro USM"),
    ("EF24-105mm f/4L IS USM", "Canon EF 24-105mm f/4L IS USM"),
    ("EF50mm f/1.8 II", "Canon EF50mm f/1.8 II"),
    ("6.0-22.5 mm", "Canon s90 6.0-22.5 mm"),
    ("FE 28-70mm F3.5-5.6 OSS", "Sony FE 28-70mm f/3.5-5.6 OSS"),
    ("FE 50mm F1.8", "Sony FE 50mm f/1.8"),
    ("XF16-55mmF2.8 R LM WR", "Fujifilm XF 16-55mm f/2.8 R LM WR"),
    ("XF8-16mmF2.8 R LM WR", "Fujifilm XF 8-16mm f/2.8 R LM WR"),
    ("XF23mmF1.4 R", "Fujifilm XF 23mm f/1.4 R"),
    ("XF35mmF1.4 R", "Fujifilm XF 35mm f/1.4 R"),
    ("XF56mmF1.2 R", "Fujifilm XF 56mm f/1.2 R"),
    ("XF10-24mmF4 R OIS", "Fujifilm XF 10-24mm f/4 R OIS"),
    ("XF50-140mmF2.8 R LM OIS WR", "Fujifilm XF 50-140mm f/2.8 R LM OIS WR"),
    ("LUMIX G 20/F1.7 II", "Panasonic Lumix G 20/F1.7 II"),
    ("LUMIX G VARIO 12-35/F2.8", "Panasonic Lumix G Vario 12-35/F2.8"),
    ("LUMIX G VARIO 35-100/F2.8", "Panasonic Lumix G Vario 35-100/F2.8"),
    ("E 28-75mm F2.8-2.8", "Tamron E 28-75mm F2.8"),
    ("E 70-180mm F2.8 A056", "Tamron E 70-180mm F2.8"),
    ("18-200mm", "Sigma 18-200mm 3.5-6.3 DC HSM OS"),
    ("-- mm f/--", "Olympus 5.8-17.4mm"),
    ("AF 13/1.4 XF", "Viltrox AF 13mm F1.4"),
    ("20.7 mm", "DJI 20 mm f/2.8"),
    ("24-200mm F2.8-4.5", "Sony RX100 24-200mm F2.8-4.5"),
    ("AF 27/2.8", "TTArtisan 27mm F2.8"),
    ("iPhone 6s back camera 4.15mm f/2.2", "Apple iPhone 6s back camera 4.15mm f/2.2"),
    ("iPhone 11 Pro Max back camera 4.25mm f/1.8", "Apple iPhone 11 Pro Max back camera 4.25mm f/1.8"),
    ("iPhone 13 Pro Max back camera 5.7mm f/1.5", "Apple iPhone 13 Pro Max back camera 5.7mm f/1.5"),
    ("iPhone 15 Pro Max back camera 6.86mm f/1.78", "Apple iPhone 15 Pro Max back camera 6.86mm f/1.78"),
    ("iPhone 15 Pro Max back triple camera 6.765mm f/1.78", "Apple iPhone 15 Pro Max back camera 6.765mm f/1.78"),
]

DEFAULT_LOCATIONS = [
    ("Fort Worth Stockyards National H", "Fort Worth Stockyards National Historic District"),
    ("Enchanted Rock State Natural Are", "Enchanted Rock State Natural Area"),
    ("Ray Roberts State Park - Isle du", "Ray Roberts State Park - Isle du Bois"),
    ("San Jacinto Battleground State H", "San Jacinto Battleground State Historic Site"),
    ("Red Rock Canyon National Conserv", "Red Rock Canyon National Conservation Area"),
    ("Bathhouse Row - Hot Springs Nati", "Bathhouse Row - Hot Springs National Park"),
    ("Perot Museum of Nature and Scien", "Perot Museum of Nature and Science"),
    ("Hagerman National Wildlife Refug", "Hagerman National Wildlife Refuge"),
    ("Glacier Bay National Park & Pres", "Glacier Bay National Park & Preserve"),
    ("Fort Davis National Historic Sit", "Fort Davis National Historic Site"),
    ("San Francisco Maritime National ", "San Francisco Maritime National Historical Park"),
    ("Yaquina Head Outstanding Natural", "Yaquina Head Outstanding Natural Area"),
    ("Great Smoky Mountains National P", "Great Smoky Mountains National Park"),
    ("Houston Museum of Natural Scienc", "Houston Museum of Natural Science"),
    ("Otter Crest State Scenic Viewpoi", "Otter Crest State Scenic Viewpoint"),
    ("Las Vegas Valley", "Las Vegas"),
]


class CorrectionTable:
    """CRUD over one raw_name -> display-name table."""

    def __init__(self, db: HarvesterDatabase, table: str, value_column: str, label: str,
                 max_raw_length: Optional[int] = None):
        self.db = db
        self.table = table
        self.value_column = value_column
        self.label = label
        self.max_raw_length = max_raw_length
        self._create()

    def _create(self) -> None:
        with self.db.transaction() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    raw_name TEXT NOT NULL UNIQUE,
                    {self.value_column} TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def _validate(self, raw_name: str, value: str) -> None:
        if not raw_name or not str(raw_name).strip():
            raise ValidationError(f"{self.label}: raw name is required")
        if not value or not str(value).strip():
            raise ValidationError(f"{self.label}: display name is required")
        if self.max_raw_length is not None and len(raw_name) > self.max_raw_length:
            raise ValidationError(
                f"{self.label}: raw name must be at most {self.max_raw_length} characters (got {len(raw_name)})"
            )

    def lookup(self, raw_name: Optional[str]) -> Optional[str]:
        """Exact match on raw_name; None when there is no correction."""
        if not raw_name:
            return None
        row = self.db.query_one(
            f"SELECT {self.value_column} FROM {self.table} WHERE raw_name = ?", (raw_name,)
        )
        return row[self.value_column] if row else None

    def get(self, entry_id: int) -> Optional[Dict]:
        return self.db.query_one(f"SELECT * FROM {self.table} WHERE id = ?", (entry_id,))

    def upsert(self, raw_name: str, value: str, entry_id: Optional[int] = None) -> Dict:
        """Insert (entry_id None) or update a correction. Duplicate raw names raise DuplicateKeyError."""
        self._validate(raw_name, value)
        now = utc_now_iso_z()
        try:
            with self.db.transaction() as conn:
                if entry_id is None:
                    cursor = conn.execute(
                        f"INSERT INTO {self.table} (raw_name, {self.value_column}, created_at, updated_at) "
                        f"VALUES (?, ?, ?, ?)",
                        (raw_name, value, now, now),
                    )
                    entry_id = cursor.lastrowid
                else:
                    cursor = conn.execute(
                        f"UPDATE {self.table} SET raw_name = ?, {self.value_column} = ?, updated_at = ? WHERE id = ?",
                        (raw_name, value, now, entry_id),
                    )
                    if cursor.rowcount == 0:
                        raise ValidationError(f"{self.label}: no entry with id {entry_id}")
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(self.table, raw_name) from e
        return self.get(entry_id)

    def delete(self, entry_id: int) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (entry_id,))
            return cursor.rowcount > 0

    def list_all(self) -> List[Dict]:
        return self.db.query_all(f"SELECT * FROM {self.table} ORDER BY raw_name")

    def count(self) -> int:
        row = self.db.query_one(f"SELECT COUNT(*) AS n FROM {self.table}")
        return row["n"] if row else 0

    def seed(self, rows) -> int:
        """Insert default rows into an empty table. Returns the number inserted."""
        if self.count() > 0:
            return 0
        now = utc_now_iso_z()
        inserted = 0
        with self.db.transaction() as conn:
            for raw_name, value in rows:
                cursor = conn.execute(
                    f"INSERT OR IGNORE INTO {self.table} (raw_name, {self.value_column}, created_at, updated_at) "
                    f"VALUES (?, ?, ?, ?)",
                    (raw_name, value, now, now),
                )
                inserted += cursor.rowcount
        return inserted


class CorrectionTables:
    def __init__(self, db: HarvesterDatabase):
        self.db = db
        self.cameras = CorrectionTable(db, "camera_corrections", "pretty_name", "Camera")
        self.lenses = CorrectionTable(db, "lens_corrections", "pretty_name", "Lens")
        self.locations = CorrectionTable(
            db, "location_corrections", "full_name", "Location", max_raw_length=LOCATION_RAW_MAX_LENGTH
        )

    def by_name(self, name: str) -> CorrectionTable:
        tables = {"camera": self.cameras, "lens": self.lenses, "location": self.locations}
        if name not in tables:
            raise ValidationError(f"Unknown correction table '{name}' (expected one of: {', '.join(tables)})")
        return tables[name]

    def seed_defaults(self) -> Dict[str, int]:
        counts = {
            "camera": self.cameras.seed(DEFAULT_CAMERAS),
            "lens": self.lenses.seed(DEFAULT_LENSES),
            "location": self.locations.seed(DEFAULT_LOCATIONS),
        }
        if any(counts.values()):
            logInfo(f"🌱 Seeded correction tables: {counts}")
        return counts
