"""
Shared fixtures for the harvester test suite.

Fixtures build real components on temporary storage: an in-memory SQLite database,
a JSON metadata store under tmp_path, and JPEG files carrying EXIF written with piexif.
External HTTP is never reached; tests patch `requests.get` where a client is used.
"""

import os
import sys

import piexif
import pytest
from PIL import Image

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.correction_tables import CorrectionTables  # noqa: E402
from core.database import HarvesterDatabase  # noqa: E402
from core.metadata_store import MetadataStore  # noqa: E402
from core.place_hierarchy import LocationHierarchyManager, PlaceTaxonomy  # noqa: E402


# =============================================================================
# PYTEST HOOKS
# =============================================================================

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests (fast, no files or network)")
    config.addinivalue_line("markers", "integration: Integration tests (files, database, orchestrator)")


# =============================================================================
# STORAGE FIXTURES
# =============================================================================

@pytest.fixture
def db():
    database = HarvesterDatabase(":memory:")
    yield database
    database.close()


@pytest.fixture
def corrections(db):
    tables = CorrectionTables(db)
    tables.seed_defaults()
    return tables


@pytest.fixture
def store(tmp_path):
    return MetadataStore(str(tmp_path / "metadata.json"))


@pytest.fixture
def taxonomy(db):
    return PlaceTaxonomy(db)


@pytest.fixture
def hierarchy(taxonomy, store):
    return LocationHierarchyManager(taxonomy, store)


# =============================================================================
# IMAGE FIXTURES
# =============================================================================

def write_exif_jpeg(path, size=(120, 80), model="ILCE-7RM2", lens=None, with_gps=True):
    """Write a small JPEG whose EXIF matches the reference scenario."""
    zeroth = {piexif.ImageIFD.Make: b"Sony", piexif.ImageIFD.Model: model.encode()}
    exif = {
        piexif.ExifIFD.DateTimeOriginal: b"2023:06:15 14:30:00",
        piexif.ExifIFD.ApertureValue: (6, 1),
        piexif.ExifIFD.ShutterSpeedValue: (4, 1),
        piexif.ExifIFD.ISOSpeedRatings: 100,
        piexif.ExifIFD.FocalLength: (50, 1),
    }
    if lens:
        exif[piexif.ExifIFD.LensModel] = lens.encode()
    gps = {}
    if with_gps:
        gps = {
            piexif.GPSIFD.GPSLatitudeRef: b"N",
            piexif.GPSIFD.GPSLatitude: ((38, 1), (53, 1), (23, 1)),
            piexif.GPSIFD.GPSLongitudeRef: b"W",
            piexif.GPSIFD.GPSLongitude: ((77, 1), (2, 1), (0, 1)),
            piexif.GPSIFD.GPSAltitudeRef: 0,
            piexif.GPSIFD.GPSAltitude: (1234, 100),
        }
    exif_bytes = piexif.dump({"0th": zeroth, "Exif": exif, "GPS": gps, "1st": {}, "thumbnail": None})
    Image.new("RGB", size, color="navy").save(str(path), "jpeg", exif=exif_bytes)
    return str(path)


@pytest.fixture
def exif_jpeg(tmp_path):
    return write_exif_jpeg(tmp_path / "monument.jpg")


@pytest.fixture
def reference_tags():
    """Tag map as the reader produces it for the reference photo."""
    return {
        "Model": "ILCE-7RM2",
        "ApertureValue": "6/1",
        "ShutterSpeedValue": "4/1",
        "ISOSpeedRatings": 100,
        "FocalLength": "50/1",
        "DateTimeOriginal": "2023:06:15 14:30:00",
        "GPSLatitude": ["38/1", "53/1", "23/1"],
        "GPSLatitudeRef": "N",
        "GPSLongitude": ["77/1", "2/1", "0/1"],
        "GPSLongitudeRef": "W",
    }


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture
def harvester_config(tmp_path):
    media = tmp_path / "media"
    media.mkdir()
    return {
        "paths": {
            "lib_root": str(tmp_path),
            "data_root": "{lib_root}/data",
            "metadata_store": "{data_root}/metadata.json",
            "database": "{data_root}/harvester.db",
            "media_root": str(media),
            "log_dir": "{lib_root}/logs",
        },
        "timezone": {"enabled": True, "api_key": "tz-test-key"},
        "weather": {"enabled": True, "api_key": "wx-test-key"},
    }
