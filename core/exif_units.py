"""
EXIF Unit Converters
Pure conversions from raw EXIF values (rationals, APEX, DMS) to display values.

All converters are total: bad input yields None (or the documented fallback),
never an exception.
"""
from typing import Optional, Tuple

from openlocationcode import openlocationcode as olc

GEOHASH_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
GEOHASH_PRECISION = 12


def fraction_to_decimal(value) -> Optional[float]:
    """Convert "a/b" (or a number, or an (a, b) tuple) to a float.

    Division by zero returns the numerator unchanged: "5/0" -> 5.0.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, (tuple, list)) and len(value) == 2:
        value = f"{value[0]}/{value[1]}"
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")

    s = str(value).strip().strip("\x00")
    if not s:
        return None
    if "/" in s:
        num_s, den_s = s.split("/", 1)
        try:
            num = float(num_s)
            den = float(den_s)
        except ValueError:
            return None
        if den == 0:
            return num
        return num / den
    try:
        return float(s)
    except ValueError:
        return None


def apex_to_shutter(apex) -> Optional[str]:
    """APEX shutter value to exposure time text: 4 -> "1/16s", 0 -> "1s", -1 -> "2s"."""
    value = fraction_to_decimal(apex)
    if value is None:
        return None
    try:
        shutter = 2 ** (-value)
    except OverflowError:
        return None
    if shutter == 0:
        return None
    if shutter >= 1:
        return f"{int(round(shutter))}s"
    return f"1/{int(round(1 / shutter))}s"


def apex_to_fstop(apex) -> Optional[str]:
    """APEX aperture value to f-number text: 6 -> "ƒ/8.0"."""
    value = fraction_to_decimal(apex)
    if value is None:
        return None
    try:
        fstop = 2 ** (value / 2)
    except OverflowError:
        return None
    if fstop == 0:
        return None
    return f"ƒ/{round(fstop, 1)}"


def dms_to_decimal(degrees, minutes, seconds, hemisphere) -> Optional[float]:
    d = fraction_to_decimal(degrees)
    if d is None:
        return None
    m = fraction_to_decimal(minutes) or 0.0
    s = fraction_to_decimal(seconds) or 0.0
    decimal = d + m / 60 + s / 3600
    if str(hemisphere or "").strip().upper()[:1] in ("S", "W"):
        decimal = -decimal
    return decimal


def decimal_to_dms(decimal: float, is_latitude: bool = True) -> str:
    """38.8897 -> 38° 53' 22.9" N"""
    if is_latitude:
        hemisphere = "N" if decimal >= 0 else "S"
    else:
        hemisphere = "E" if decimal >= 0 else "W"
    value = abs(decimal)
    degrees = int(value)
    minutes_full = (value - degrees) * 60
    minutes = int(minutes_full)
    seconds = round((minutes_full - minutes) * 60, 1)
    return f"{degrees}° {minutes}' {seconds}\" {hemisphere}"


def is_valid_coordinate(lat, lon) -> bool:
    """A coordinate pair is usable only if both components are present and non-zero."""
    if lat is None or lon is None:
        return False
    try:
        lat_f, lon_f = float(lat), float(lon)
    except (TypeError, ValueError):
        return False
    if lat_f == 0 or lon_f == 0:
        return False
    return -90 <= lat_f <= 90 and -180 <= lon_f <= 180


def parse_gps_string(gps) -> Optional[Tuple[float, float]]:
    """Parse the stored "lat,lon" string. Returns None on malformed text."""
    if not gps or not isinstance(gps, str) or "," not in gps:
        return None
    lat_s, lon_s = gps.split(",", 1)
    try:
        return float(lat_s.strip()), float(lon_s.strip())
    except ValueError:
        return None


def geohash(lat: float, lon: float, precision: int = GEOHASH_PRECISION) -> str:
    """Standard base-32 geohash; even bits refine longitude, odd bits latitude."""
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    chars = []
    bit = 0
    ch = 0
    even = True
    while len(chars) < precision:
        if even:
            mid = (lon_range[0] + lon_range[1]) / 2
            if lon >= mid:
                ch = (ch << 1) | 1
                lon_range[0] = mid
            else:
                ch = ch << 1
                lon_range[1] = mid
        else:
            mid = (lat_range[0] + lat_range[1]) / 2
            if lat >= mid:
                ch = (ch << 1) | 1
                lat_range[0] = mid
            else:
                ch = ch << 1
                lat_range[1] = mid
        even = not even
        bit += 1
        if bit == 5:
            chars.append(GEOHASH_BASE32[ch])
            bit = 0
            ch = 0
    return "".join(chars)


def plus_code(lat: float, lon: float) -> str:
    """Open Location Code (Plus Code) for a coordinate, standard 10-digit precision."""
    return olc.encode(lat, lon)


def fahrenheit_to_celsius(fahrenheit) -> Optional[float]:
    try:
        return round((float(fahrenheit) - 32) * 5 / 9, 2)
    except (TypeError, ValueError):
        return None


def celsius_to_fahrenheit(celsius) -> Optional[float]:
    try:
        return round(float(celsius) * 9 / 5 + 32, 2)
    except (TypeError, ValueError):
        return None


def _gcd(a: int, b: int) -> int:
    while b:
        a, b = b, a % b
    return a


def aspect_ratio(width: int, height: int) -> Optional[str]:
    """6000x4000 -> "3:2"."""
    if not width or not height:
        return None
    divisor = _gcd(int(width), int(height))
    return f"{int(width) // divisor}:{int(height) // divisor}"
