"""
EXIF Metadata Extractor
Reads camera, exposure, date, GPS and IPTC location data from an image and writes
normalized fields into the metadata store.

Every field is written with set-if-absent; a missing tag simply skips its step.
"""
import calendar
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional, Tuple

import piexif
from PIL import Image, IptcImagePlugin
from PIL.ExifTags import GPSTAGS, TAGS

from core.correction_tables import CorrectionTables
from core.exif_units import (
    apex_to_fstop,
    apex_to_shutter,
    aspect_ratio,
    dms_to_decimal,
    fraction_to_decimal,
    geohash,
    is_valid_coordinate,
    plus_code,
)
from core.metadata_store import MetadataStore
from utils.logger import logDebug, logInfo
from utils.time_utils import _parse_any_datetime, naive_epoch

CAMERA_PLACEHOLDER = "Camera Information Not Available"
LENS_PLACEHOLDER = "Lens Information Not Available"

# IPTC-IIM application record datasets
IPTC_FIELDS = {
    (2, 92): "location",
    (2, 90): "city",
    (2, 95): "state",
    (2, 101): "country",
}

XMP_NAMESPACES = {
    "Iptc4xmpCore": "http://iptc.org/std/Iptc4xmpCore/1.0/xmlns/",
    "photoshop": "http://ns.adobe.com/photoshop/1.0/",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
}

XMP_FIELDS = {
    "location": "{http://iptc.org/std/Iptc4xmpCore/1.0/xmlns/}Location",
    "city": "{http://ns.adobe.com/photoshop/1.0/}City",
    "state": "{http://ns.adobe.com/photoshop/1.0/}State",
    "country": "{http://ns.adobe.com/photoshop/1.0/}Country",
}

RATIONAL_TYPES = (piexif.TYPES.Rational, piexif.TYPES.SRational)


def time_of_day_context(hour: int) -> str:
    if 5 <= hour < 12:
        return "Morning"
    if 12 <= hour < 17:
        return "Afternoon"
    if 17 <= hour < 21:
        return "Evening"
    return "Night"


def _decode_bytes(value: bytes) -> str:
    return value.decode('utf-8', errors='ignore').strip('\x00').strip()


def _rational_text(value) -> str:
    return f"{value[0]}/{value[1]}"


class ExifExtractor:
    # Fixed-lens devices: camera pretty name -> lens to record when EXIF has none
    DEFAULT_LENSES = {
        "Google Pixel 2 XL": "Google Pixel 2 XL f/1.8 1.9mm",
        "DJI Mavic Mini": "DJI Mavic Mini f/2.8 4.5mm",
        "Fujifilm FinePix X100": "Fujifilm Fujinon f/2 23mm",
        "Fujifilm X100vi": "Fujifilm Fujinon f/2 23mm",
        "Olympus Stylus 600": "Olympus f/3.1-5.2 5.8-17.4mm",
        "Olympus C4040Z": "Olympus f/1.8-f/2.6 7.1-21.3 mm",
    }

    # Generic "Apple iPhone" resolved to a specific model by the lens description
    IPHONE_LENS_HINTS = (
        ("15 Pro Max", "Apple iPhone 15 Pro Max"),
        ("iPhone 6s", "Apple iPhone 6s"),
    )

    LENS_TAGS = ("LensModel", "UndefinedTag:0xA434")

    def __init__(self, store: MetadataStore, corrections: CorrectionTables):
        self.store = store
        self.corrections = corrections

    # ---------- Readers ----------
    def read_tag_map(self, image_path: str) -> Dict[str, Any]:
        """Flatten 0th/Exif/GPS IFDs into {tag name: value}; rationals become "a/b" strings."""
        try:
            exif_dict = piexif.load(image_path)
        except Exception as e:
            # piexif rejects formats it cannot parse; Pillow handles the rest
            logDebug(f"piexif could not read {image_path} ({e}); trying Pillow")
            return self._read_tag_map_pillow(image_path)

        tags: Dict[str, Any] = {}
        for ifd in ("0th", "Exif", "GPS"):
            for tag, value in (exif_dict.get(ifd) or {}).items():
                info = piexif.TAGS[ifd].get(tag)
                name = info["name"] if info else f"UndefinedTag:0x{tag:04X}"
                tags[name] = self._normalize_piexif_value(value, info["type"] if info else None)
        return tags

    def _normalize_piexif_value(self, value, tag_type):
        if isinstance(value, bytes):
            return _decode_bytes(value)
        if tag_type in RATIONAL_TYPES:
            if value and isinstance(value[0], (tuple, list)):
                return [_rational_text(v) for v in value]
            return _rational_text(value)
        return value

    def _read_tag_map_pillow(self, image_path: str) -> Dict[str, Any]:
        tags: Dict[str, Any] = {}
        try:
            with Image.open(image_path) as image:
                exif = image.getexif()
                if not exif:
                    return tags
                sections = [(exif, TAGS), (exif.get_ifd(0x8769), TAGS), (exif.get_ifd(0x8825), GPSTAGS)]
                for section, names in sections:
                    for tag, value in section.items():
                        name = names.get(tag, f"UndefinedTag:0x{tag:04X}")
                        tags[name] = self._normalize_pillow_value(value)
        except (OSError, ValueError) as e:
            logDebug(f"No EXIF readable from {image_path}: {e}")
        return tags

    def _normalize_pillow_value(self, value):
        if isinstance(value, bytes):
            return _decode_bytes(value)
        if hasattr(value, "numerator") and hasattr(value, "denominator") and not isinstance(value, int):
            return f"{value.numerator}/{value.denominator}"
        if isinstance(value, tuple):
            return [self._normalize_pillow_value(v) for v in value]
        if isinstance(value, str):
            return value.strip('\x00').strip()
        return value

    def read_dimensions(self, image_path: str) -> Optional[Tuple[int, int]]:
        try:
            with Image.open(image_path) as image:
                return image.size
        except (OSError, ValueError) as e:
            logDebug(f"Could not read dimensions from {image_path}: {e}")
            return None

    def read_iptc_fields(self, image_path: str) -> Dict[str, str]:
        """IPTC location/city/state/country; falls back to XMP (WebP carries no IIM block)."""
        fields: Dict[str, str] = {}
        try:
            with Image.open(image_path) as image:
                iptc = IptcImagePlugin.getiptcinfo(image) or {}
                for key, name in IPTC_FIELDS.items():
                    value = iptc.get(key)
                    if isinstance(value, list):
                        value = value[0] if value else None
                    if isinstance(value, bytes):
                        value = _decode_bytes(value)
                    if value:
                        fields[name] = value

                if not fields:
                    xmp = image.info.get("xmp") or image.info.get("XML:com.adobe.xmp")
                    if xmp:
                        fields = parse_xmp_location(xmp)
        except (OSError, ValueError, SyntaxError) as e:
            logDebug(f"No IPTC readable from {image_path}: {e}")
        return fields

    # ---------- Extraction ----------
    def extract_from_file(self, item_id, image_path: str) -> Dict[str, Any]:
        tags = self.read_tag_map(image_path)
        iptc = self.read_iptc_fields(image_path)
        dimensions = self.read_dimensions(image_path)
        logInfo(f"📷 Extracting metadata for item {item_id} from {image_path} ({len(tags)} tags)")
        return self.extract(item_id, tags, iptc=iptc, dimensions=dimensions)

    def extract(self, item_id, tags: Dict[str, Any], iptc: Optional[Dict[str, str]] = None,
                dimensions: Optional[Tuple[int, int]] = None) -> Dict[str, Any]:
        """Derive every metadata field available from the inputs and store it set-if-absent.

        Returns the derived values (including ones that were already stored and kept).
        """
        derived: Dict[str, Any] = {}
        tags = tags or {}

        if dimensions:
            derived.update(self._dimension_fields(*dimensions))
        derived.update(self._camera_and_lens(tags))
        derived.update(self._exposure_fields(tags))
        derived.update(self._datetime_fields(tags.get("DateTimeOriginal")))
        derived.update(self._gps_fields(tags))
        derived.update(self._location_fields(iptc or {}))

        for key, value in derived.items():
            self.store.set_if_absent(item_id, key, value)
        return derived

    def _dimension_fields(self, width, height) -> Dict[str, Any]:
        if not width or not height:
            return {}
        return {
            "photo_width": int(width),
            "photo_height": int(height),
            "photo_dimensions": f"{width}x{height}",
            "photo_megapixels": round(width * height / 1_000_000, 2),
            "photo_aspect_ratio": aspect_ratio(width, height),
        }

    def _lens_raw(self, tags: Dict[str, Any]) -> Optional[str]:
        for key in self.LENS_TAGS:
            if key in tags:
                return str(tags[key] or "").strip()
        return None

    def _camera_and_lens(self, tags: Dict[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        lens_raw = self._lens_raw(tags)

        if "Model" in tags:
            raw_camera = str(tags["Model"] or "").strip()
            if raw_camera:
                camera = self.corrections.cameras.lookup(raw_camera) or raw_camera
            else:
                camera = CAMERA_PLACEHOLDER

            if camera == "Apple iPhone" and lens_raw:
                for hint, model in self.IPHONE_LENS_HINTS:
                    if hint in lens_raw:
                        camera = model
                        break
            fields["camera"] = camera

            default_lens = self.DEFAULT_LENSES.get(camera)
            if default_lens and not lens_raw:
                fields["lens"] = default_lens

        if lens_raw is not None:
            if lens_raw:
                fields["lens"] = self.corrections.lenses.lookup(lens_raw) or lens_raw
            elif "lens" not in fields:
                fields["lens"] = LENS_PLACEHOLDER
        return fields

    def _exposure_fields(self, tags: Dict[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}

        fstop = apex_to_fstop(tags.get("ApertureValue")) if "ApertureValue" in tags else None
        if fstop:
            fields["fstop"] = fstop

        shutter = apex_to_shutter(tags.get("ShutterSpeedValue")) if "ShutterSpeedValue" in tags else None
        if shutter:
            fields["shutterspeed"] = shutter

        iso = tags.get("ISOSpeedRatings", tags.get("PhotographicSensitivity"))
        if isinstance(iso, (list, tuple)):
            iso = iso[0] if iso else None
        if iso not in (None, ""):
            fields["iso"] = f"{iso} ISO"

        focal = fraction_to_decimal(tags.get("FocalLength")) if "FocalLength" in tags else None
        if focal is not None:
            fields["focallength"] = f"{int(round(focal))}mm"
        return fields

    def _datetime_fields(self, raw) -> Dict[str, Any]:
        if not raw:
            return {}
        raw = str(raw).strip()
        fields: Dict[str, Any] = {"dateTimeOriginal": raw}
        dt = _parse_any_datetime(raw)
        if dt is None:
            logDebug(f"Malformed DateTimeOriginal '{raw}', storing raw value only")
            return fields

        dt = dt.replace(tzinfo=None)
        fields.update({
            "dateOriginal": dt.strftime("%Y-%m-%d"),
            "yearOriginal": dt.strftime("%Y"),
            "monthOriginal": dt.strftime("%m"),
            "monthNameOriginal": calendar.month_name[dt.month],
            "dayOriginal": dt.strftime("%d"),
            "dayOfWeekOriginal": calendar.day_name[dt.weekday()],
            "hourOriginal": dt.strftime("%H"),
            "minuteOriginal": dt.strftime("%M"),
            "timeOriginal": dt.strftime("%H:%M"),
            "timeOfDayContext": time_of_day_context(dt.hour),
            "unixTime": naive_epoch(dt),
        })
        return fields

    def _coordinate(self, value, ref) -> Optional[float]:
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",")]
        elif isinstance(value, (list, tuple)):
            parts = list(value)
        else:
            return None
        if not parts:
            return None
        while len(parts) < 3:
            parts.append(0)
        return dms_to_decimal(parts[0], parts[1], parts[2], ref)

    def _gps_fields(self, tags: Dict[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        required = ("GPSLatitude", "GPSLatitudeRef", "GPSLongitude", "GPSLongitudeRef")
        if all(tags.get(k) not in (None, "", []) for k in required):
            lat = self._coordinate(tags["GPSLatitude"], tags["GPSLatitudeRef"])
            lon = self._coordinate(tags["GPSLongitude"], tags["GPSLongitudeRef"])
            if is_valid_coordinate(lat, lon):
                lat, lon = round(lat, 6), round(lon, 6)
                fields.update({
                    "GPS": f"{lat},{lon}",
                    "GPSLat": lat,
                    "GPSLon": lon,
                    "geoHash": geohash(lat, lon),
                    "GPCode": plus_code(lat, lon),
                })
            else:
                logDebug(f"Ignoring invalid GPS coordinates ({lat}, {lon})")

        altitude = tags.get("GPSAltitude")
        if altitude not in (None, ""):
            parts = str(altitude).split("/")
            if len(parts) == 2 and fraction_to_decimal(parts[1]) == 0:
                logDebug(f"Skipping GPSAltitude with zero denominator: {altitude}")
            else:
                metres = fraction_to_decimal(altitude)
                if metres is not None:
                    if tags.get("GPSAltitudeRef") in (1, b"\x01", "1"):
                        metres = -metres
                    fields["GPSAlt"] = round(metres, 2)
        return fields

    def _location_fields(self, iptc: Dict[str, str]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for name in ("location", "city", "state", "country"):
            value = str(iptc.get(name) or "").strip()
            if not value:
                continue
            if name in ("location", "city"):
                value = self.corrections.locations.lookup(value) or value
            fields[name] = value
        return fields


def parse_xmp_location(xmp) -> Dict[str, str]:
    """Pull location fields from an XMP packet (attribute or element form)."""
    if isinstance(xmp, bytes):
        xmp = xmp.decode("utf-8", errors="ignore")
    start = xmp.find("<x:xmpmeta")
    if start < 0:
        start = xmp.find("<rdf:RDF")
    if start > 0:
        xmp = xmp[start:]
    end_marker = "</x:xmpmeta>" if xmp.startswith("<x:xmpmeta") else "</rdf:RDF>"
    end = xmp.find(end_marker)
    if end >= 0:
        xmp = xmp[: end + len(end_marker)]

    try:
        root = ET.fromstring(xmp)
    except ET.ParseError as e:
        logDebug(f"Unparseable XMP packet: {e}")
        return {}

    fields: Dict[str, str] = {}
    for description in root.iter(f"{{{XMP_NAMESPACES['rdf']}}}Description"):
        for name, qualified in XMP_FIELDS.items():
            if name in fields:
                continue
            value = description.get(qualified)
            if not value:
                element = description.find(qualified)
                if element is not None:
                    value = "".join(element.itertext())
            if value and value.strip():
                fields[name] = value.strip()
    return fields
