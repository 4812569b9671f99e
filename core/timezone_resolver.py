"""
Timezone Resolver
Looks up the GMT offset and zone name for a coordinate at a point in time.

Primary source is the TimezoneDB position API; timezonefinder can be enabled as an
offline fallback. Failures resolve to None ("unresolved") and are never raised.
"""
from typing import Dict, Optional

import requests

from core.exif_units import is_valid_coordinate, parse_gps_string
from core.metadata_store import MetadataStore
from utils.logger import logDebug, logInfo
from utils.time_utils import offset_hours_at


class TimezoneResolver:
    API_URL = "https://api.timezonedb.com/v2.1/get-time-zone"

    def __init__(self, config: Dict):
        tz_cfg = config.get('timezone', {})
        self.enabled = tz_cfg.get('enabled', True)
        self.api_key = tz_cfg.get('api_key', '') or ''
        self.api_url = tz_cfg.get('api_url', self.API_URL)
        self.connect_timeout = int(tz_cfg.get('connect_timeout_seconds', 10))
        self.timeout = int(tz_cfg.get('timeout_seconds', 30))
        self.offline_fallback = bool(tz_cfg.get('offline_fallback', False))

    def resolve(self, lat: float, lon: float, unix_time: int) -> Optional[Dict]:
        """Return {'gmtOffset': hours, 'timeZone': zone name} or None when unresolved."""
        result = self._timezonedb_lookup(lat, lon, unix_time) if self.api_key else None
        if result is None and self.offline_fallback:
            result = offset_hours_at(lat, lon, unix_time)
            if result:
                logDebug(f"Offline timezone for ({lat}, {lon}): {result['timeZone']}")
        return result

    def _timezonedb_lookup(self, lat: float, lon: float, unix_time: int) -> Optional[Dict]:
        params = {
            'key': self.api_key,
            'format': 'json',
            'by': 'position',
            'lat': lat,
            'lng': lon,
            'time': int(unix_time),
        }
        try:
            response = requests.get(self.api_url, params=params, timeout=(self.connect_timeout, self.timeout))
        except requests.exceptions.RequestException as e:
            logDebug(f"TimezoneDB request failed: {e}")
            return None

        if response.status_code != 200:
            logDebug(f"TimezoneDB returned HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            logDebug("TimezoneDB returned malformed JSON")
            return None

        if not isinstance(data, dict) or data.get('status', 'OK') != 'OK':
            logDebug(f"TimezoneDB lookup unsuccessful: {data.get('message') if isinstance(data, dict) else data}")
            return None
        if data.get('gmtOffset') is None or not data.get('zoneName'):
            return None

        try:
            offset_hours = float(data['gmtOffset']) / 3600
        except (TypeError, ValueError):
            return None
        return {'gmtOffset': offset_hours, 'timeZone': data['zoneName']}


class TimezoneEnricher:
    def __init__(self, store: MetadataStore, resolver: TimezoneResolver):
        self.store = store
        self.resolver = resolver

    def ensure_gmt_offset(self, item_id) -> Optional[float]:
        """Fill gmtOffset/timeZone once GPS and unixTime are known. Returns the offset."""
        if self.store.exists(item_id, 'gmtOffset'):
            return self.store.get(item_id, 'gmtOffset')

        coords = parse_gps_string(self.store.get(item_id, 'GPS'))
        unix_time = self.store.get(item_id, 'unixTime')
        if coords is None or not is_valid_coordinate(*coords) or unix_time in (None, ""):
            logDebug(f"Item {item_id}: no usable GPS/time for timezone lookup")
            return None

        result = self.resolver.resolve(coords[0], coords[1], int(unix_time))
        if result is None:
            logDebug(f"Item {item_id}: timezone unresolved")
            return None

        self.store.set_if_absent(item_id, 'gmtOffset', result['gmtOffset'])
        self.store.set_if_absent(item_id, 'timeZone', result['timeZone'])
        logInfo(f"🕒 Item {item_id}: {result['timeZone']} (UTC{result['gmtOffset']:+g})")
        return self.store.get(item_id, 'gmtOffset')
