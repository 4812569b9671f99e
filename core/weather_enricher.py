"""
Weather Enricher
Historical weather for a photo's place and time from PirateWeather.

Flow per attempt:
    cooldown gate -> clear previous weather + bookkeeping -> preconditions
    -> try each endpoint in order -> store summary/temperature or record failure

A failure blocks automatic retries for the cooldown window; manual refreshes pass
force=True and always run. Automatic runs go through WeatherDispatcher, which
runs each fetch on a daemon thread and falls back to running inline when a thread
cannot be started.
"""
import threading
import time
from typing import Callable, Dict, List, Optional

import requests

from core.exif_units import fahrenheit_to_celsius, is_valid_coordinate, parse_gps_string
from core.metadata_store import MetadataStore
from utils.logger import logDebug, logError, logInfo, logWarn
from utils.time_utils import local_to_utc

WEATHER_FIELDS = ("wXSummary", "temperature")
BOOKKEEPING_FIELDS = (
    "_weather_last_attempt",
    "_weather_last_failure",
    "_weather_last_success",
    "_weather_gps_used",
    "_weather_datetime_used",
    "_weather_api_urls",
)

ERR_NO_GPS = "No GPS coordinates found"
ERR_NO_TIMESTAMP = "No timestamp found"
ERR_BAD_GPS_FORMAT = "Invalid GPS coordinate format"
ERR_ZERO_GPS = "Invalid GPS coordinates (0,0)"
ERR_NO_API_KEY = "Weather API key not configured"
ERR_API_FAILED = "Failed to retrieve weather data from API"
ERR_COOLDOWN = "Weather retry cooldown active"


class WeatherClient:
    EXCLUDE = "minutely,hourly,daily,alerts"

    def __init__(self, config: Dict):
        wx_cfg = config.get('weather', {})
        self.api_key = wx_cfg.get('api_key', '') or ''
        self.endpoints: List[str] = list(wx_cfg.get('endpoints', []))
        self.connect_timeout = int(wx_cfg.get('connect_timeout_seconds', 10))
        self.timeout = int(wx_cfg.get('timeout_seconds', 30))
        self.user_agent = wx_cfg.get('user_agent', 'ExifHarvester/1.0')

    def build_urls(self, lat: float, lon: float, unix_time: int) -> List[str]:
        return [
            template.format(api_key=self.api_key, lat=lat, lon=lon, time=int(unix_time))
            for template in self.endpoints
        ]

    def mask(self, url: str) -> str:
        return url.replace(self.api_key, "***") if self.api_key else url

    def fetch(self, lat: float, lon: float, unix_time: int) -> Optional[Dict]:
        """Return {'summary', 'temperature_f', 'url'} from the first endpoint with usable data."""
        headers = {'User-Agent': self.user_agent}
        for url in self.build_urls(lat, lon, unix_time):
            try:
                response = requests.get(
                    url,
                    params={'exclude': self.EXCLUDE},
                    headers=headers,
                    timeout=(self.connect_timeout, self.timeout),
                )
            except requests.exceptions.RequestException as e:
                logDebug(f"Weather request failed for {self.mask(url)}: {e}")
                continue

            if not 200 <= response.status_code < 300:
                logDebug(f"Weather endpoint {self.mask(url)} returned HTTP {response.status_code}")
                continue

            try:
                data = response.json()
            except ValueError:
                logDebug(f"Weather endpoint {self.mask(url)} returned malformed JSON")
                continue

            currently = data.get('currently') if isinstance(data, dict) else None
            if not isinstance(currently, dict):
                continue
            summary = currently.get('summary')
            temperature = currently.get('temperature')
            if not summary or temperature is None:
                continue
            return {'summary': summary, 'temperature_f': temperature, 'url': url}
        return None


class WeatherEnricher:
    def __init__(self, store: MetadataStore, client: WeatherClient, cooldown_seconds: int = 3600,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.client = client
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock

    def in_cooldown(self, item_id) -> bool:
        last_failure = self.store.get(item_id, "_weather_last_failure")
        if last_failure in (None, ""):
            return False
        return self.clock() - float(last_failure) < self.cooldown_seconds

    def clear(self, item_id, include_bookkeeping: bool = True) -> None:
        keys = list(WEATHER_FIELDS) + (list(BOOKKEEPING_FIELDS) if include_bookkeeping else [])
        self.store.delete_keys(item_id, keys)

    def fetch_for_item(self, item_id, force: bool = False) -> Optional[str]:
        """Run one weather attempt. Returns None on success, else a short error string."""
        if not force and self.in_cooldown(item_id):
            logDebug(f"Item {item_id}: weather retry suppressed by cooldown")
            return ERR_COOLDOWN

        self.clear(item_id)

        gps = self.store.get(item_id, "GPS")
        unix_time = self.store.get(item_id, "unixTime")
        if not gps:
            return ERR_NO_GPS
        if unix_time in (None, ""):
            return ERR_NO_TIMESTAMP
        coords = parse_gps_string(gps)
        if coords is None:
            return ERR_BAD_GPS_FORMAT
        if not is_valid_coordinate(*coords):
            return ERR_ZERO_GPS
        if not self.client.api_key:
            return ERR_NO_API_KEY

        lat, lon = coords
        utc_time = local_to_utc(int(unix_time), self.store.get(item_id, "gmtOffset"))
        now = self.clock()
        self.store.set(item_id, "_weather_last_attempt", now)
        self.store.set(item_id, "_weather_api_urls",
                       [self.client.mask(u) for u in self.client.build_urls(lat, lon, utc_time)])

        result = self.client.fetch(lat, lon, utc_time)
        if result is None:
            self.store.set(item_id, "_weather_last_failure", now)
            logInfo(f"🌧️ Item {item_id}: weather unavailable, retry blocked for {self.cooldown_seconds}s")
            return ERR_API_FAILED

        self.store.set(item_id, "wXSummary", result['summary'])
        self.store.set(item_id, "temperature", fahrenheit_to_celsius(result['temperature_f']))
        self.store.set(item_id, "_weather_gps_used", gps)
        self.store.set(item_id, "_weather_datetime_used", self.store.get(item_id, "dateTimeOriginal", ""))
        self.store.set(item_id, "_weather_last_success", now)
        logInfo(f"🌤️ Item {item_id}: {result['summary']}, {self.store.get(item_id, 'temperature')}°C")
        return None

    def refresh_now(self, item_id) -> Optional[str]:
        """Synchronous, forced attempt used by manual refresh."""
        return self.fetch_for_item(item_id, force=True)


class WeatherDispatcher:
    def __init__(self, enricher: WeatherEnricher):
        self.enricher = enricher
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def _run(self, item_id) -> None:
        try:
            self.enricher.fetch_for_item(item_id)
        except Exception as e:
            logError(f"Weather job for item {item_id} failed: {e}")

    def dispatch(self, item_id, context) -> Optional[threading.Thread]:
        """Schedule one background fetch per item per request context."""
        key = str(item_id)
        if key in context.weather_scheduled:
            logDebug(f"Item {item_id}: weather already scheduled in this request")
            return None
        context.weather_scheduled.add(key)

        thread = threading.Thread(target=self._run, args=(item_id,), name=f"weather-{item_id}", daemon=True)
        try:
            thread.start()
        except RuntimeError as e:
            logWarn(f"Could not start weather thread for item {item_id} ({e}); running inline")
            self._run(item_id)
            return None

        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        return thread

    def wait(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)
