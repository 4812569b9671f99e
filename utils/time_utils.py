import calendar
from datetime import datetime, UTC
from typing import Optional, Union
from zoneinfo import ZoneInfo

from timezonefinder import TimezoneFinder

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"

_finder: Optional[TimezoneFinder] = None


def utc_now_iso_z() -> str:
    """Return current UTC time in ISO8601 format with trailing 'Z'.
    Example: '2025-11-14T17:59:30.123456Z'
    """
    # Keep microseconds; normalize +00:00 suffix to 'Z'
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _parse_any_datetime(value: Union[str, datetime]) -> Optional[datetime]:
    """Parse a datetime from various inputs.
    Accepts EXIF-style 'YYYY:MM:DD HH:MM:SS', ISO8601 strings (with or without Z), or datetime objects.
    Returns naive or aware datetime depending on source; None if unparseable.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    s = value.strip().rstrip("\x00")
    try:
        return datetime.strptime(s, EXIF_DATETIME_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(s.replace('Z', '+00:00'))
    except ValueError:
        return None


def naive_epoch(dt: datetime) -> int:
    """Seconds since epoch treating a naive wall-clock datetime as if it were UTC."""
    return calendar.timegm(dt.timetuple())


def local_to_utc(local_ts: int, gmt_offset_hours: Optional[float]) -> int:
    """Convert a wall-clock epoch to true UTC using the stored offset.

    An unknown offset passes the local timestamp through unchanged.
    """
    if gmt_offset_hours is None or gmt_offset_hours == "":
        return int(local_ts)
    try:
        return int(round(int(local_ts) - float(gmt_offset_hours) * 3600))
    except (TypeError, ValueError):
        return int(local_ts)


def _timezone_finder() -> TimezoneFinder:
    global _finder
    if _finder is None:
        _finder = TimezoneFinder()
    return _finder


def timezone_at(lat: float, lon: float) -> Optional[str]:
    """IANA zone name for a coordinate, from the bundled timezonefinder polygons."""
    tf = _timezone_finder()
    return tf.timezone_at(lng=float(lon), lat=float(lat))


def offset_hours_at(lat: float, lon: float, local_ts: int) -> Optional[dict]:
    """Offline GMT offset for a coordinate at a wall-clock epoch.

    Interprets the naive timestamp as local time in the zone found for lat/lon.
    Returns {'gmtOffset': hours, 'timeZone': name} or None if no zone is found.
    """
    tzname = timezone_at(lat, lon)
    if not tzname:
        return None

    try:
        tz = ZoneInfo(tzname)
    except (KeyError, ValueError):
        return None
    local_dt = datetime.fromtimestamp(int(local_ts), UTC).replace(tzinfo=tz)
    offset = local_dt.utcoffset()
    if offset is None:
        return None
    return {"gmtOffset": offset.total_seconds() / 3600, "timeZone": tzname}
