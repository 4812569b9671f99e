"""
Tests for weather enrichment.

PirateWeather is never contacted; `requests.get` is patched in the weather module
and the enricher gets an injected clock so cooldown windows can be stepped through.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from core.weather_enricher import (
    ERR_API_FAILED,
    ERR_BAD_GPS_FORMAT,
    ERR_COOLDOWN,
    ERR_NO_API_KEY,
    ERR_NO_GPS,
    ERR_NO_TIMESTAMP,
    ERR_ZERO_GPS,
    WeatherClient,
    WeatherDispatcher,
    WeatherEnricher,
)

pytestmark = pytest.mark.unit

ENDPOINTS = [
    "https://timemachine.pirateweather.net/forecast/{api_key}/{lat},{lon},{time}",
    "https://api.pirateweather.net/forecast/{api_key}/{lat},{lon},{time}",
]

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


def _response(status=200, payload=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    return response


SUNNY = {"currently": {"summary": "Clear", "temperature": 72.5}}


@pytest.fixture
def client():
    return WeatherClient({"weather": {"api_key": "wx-test-key", "endpoints": ENDPOINTS}})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def enricher(store, client, clock):
    store.set(1, "GPS", "38.889722,-77.033333")
    store.set(1, "unixTime", 1686839400)
    store.set(1, "dateTimeOriginal", "2023:06:15 14:30:00")
    return WeatherEnricher(store, client, cooldown_seconds=3600, clock=clock)


# =============================================================================
# CLIENT
# =============================================================================

def test_build_urls_and_mask(client):
    urls = client.build_urls(38.9, -77.0, 1686839400)
    assert urls[0] == "https://timemachine.pirateweather.net/forecast/wx-test-key/38.9,-77.0,1686839400"
    assert "wx-test-key" not in client.mask(urls[0])


@patch("core.weather_enricher.requests.get")
def test_fetch_falls_through_to_next_endpoint(mock_get, client):
    mock_get.side_effect = [requests.exceptions.ReadTimeout("slow"), _response(payload=SUNNY)]

    result = client.fetch(38.9, -77.0, 1686839400)

    assert result["summary"] == "Clear"
    assert result["url"].startswith("https://api.pirateweather.net/")
    assert mock_get.call_args.kwargs["params"] == {"exclude": "minutely,hourly,daily,alerts"}
    assert mock_get.call_args.kwargs["headers"]["User-Agent"]


@patch("core.weather_enricher.requests.get")
def test_fetch_requires_summary_and_temperature(mock_get, client):
    mock_get.return_value = _response(payload={"currently": {"summary": "Clear"}})
    assert client.fetch(38.9, -77.0, 1686839400) is None
    assert mock_get.call_count == 2


# =============================================================================
# ENRICHER
# =============================================================================

@patch("core.weather_enricher.requests.get")
def test_success_stores_celsius_and_bookkeeping(mock_get, enricher, store):
    mock_get.return_value = _response(payload=SUNNY)

    assert enricher.fetch_for_item(1) is None

    assert store.get(1, "wXSummary") == "Clear"
    assert store.get(1, "temperature") == 22.5
    assert store.get(1, "_weather_gps_used") == "38.889722,-77.033333"
    assert store.get(1, "_weather_datetime_used") == "2023:06:15 14:30:00"
    assert store.get(1, "_weather_last_success") == T0
    assert store.get(1, "_weather_last_failure") is None
    assert all("wx-test-key" not in url for url in store.get(1, "_weather_api_urls"))


@patch("core.weather_enricher.requests.get")
def test_request_time_is_corrected_to_utc(mock_get, enricher, store):
    store.set(1, "gmtOffset", -4.0)
    mock_get.return_value = _response(payload=SUNNY)

    enricher.fetch_for_item(1)

    assert mock_get.call_args.args[0].endswith(",1686853800")


@patch("core.weather_enricher.requests.get")
def test_failure_blocks_automatic_retry_for_cooldown(mock_get, enricher, store, clock):
    mock_get.return_value = _response(status=500)

    assert enricher.fetch_for_item(1) == ERR_API_FAILED
    assert store.get(1, "_weather_last_failure") == T0
    calls = mock_get.call_count

    clock.now = T0 + 1800
    assert enricher.fetch_for_item(1) == ERR_COOLDOWN
    assert mock_get.call_count == calls

    clock.now = T0 + 3700
    mock_get.return_value = _response(payload=SUNNY)
    assert enricher.fetch_for_item(1) is None
    assert store.get(1, "_weather_last_failure") is None


@patch("core.weather_enricher.requests.get")
def test_forced_refresh_ignores_cooldown(mock_get, enricher, store, clock):
    store.set(1, "_weather_last_failure", T0)
    clock.now = T0 + 10
    mock_get.return_value = _response(payload=SUNNY)

    assert enricher.refresh_now(1) is None
    assert store.get(1, "wXSummary") == "Clear"


@patch("core.weather_enricher.requests.get")
def test_attempt_clears_previous_weather(mock_get, enricher, store):
    store.set(1, "wXSummary", "Rain")
    store.set(1, "temperature", 10.0)
    mock_get.return_value = _response(status=404)

    enricher.fetch_for_item(1)

    assert store.get(1, "wXSummary") is None
    assert store.get(1, "temperature") is None


@pytest.mark.parametrize("gps,unix_time,expected", [
    (None, 1686839400, ERR_NO_GPS),
    ("38.9,-77.0", None, ERR_NO_TIMESTAMP),
    ("38.9 -77.0", 1686839400, ERR_BAD_GPS_FORMAT),
    ("0,0", 1686839400, ERR_ZERO_GPS),
])
@patch("core.weather_enricher.requests.get")
def test_precondition_errors(mock_get, gps, unix_time, expected, store, client):
    if gps is not None:
        store.set(2, "GPS", gps)
    if unix_time is not None:
        store.set(2, "unixTime", unix_time)

    assert WeatherEnricher(store, client).fetch_for_item(2) == expected
    mock_get.assert_not_called()


@patch("core.weather_enricher.requests.get")
def test_missing_api_key(mock_get, store):
    store.set(3, "GPS", "38.9,-77.0")
    store.set(3, "unixTime", 1686839400)
    client = WeatherClient({"weather": {"api_key": "", "endpoints": ENDPOINTS}})

    assert WeatherEnricher(store, client).fetch_for_item(3) == ERR_NO_API_KEY
    mock_get.assert_not_called()


# =============================================================================
# DISPATCHER
# =============================================================================

@patch("core.weather_enricher.requests.get")
def test_dispatch_once_per_context(mock_get, enricher, store):
    mock_get.return_value = _response(payload=SUNNY)
    dispatcher = WeatherDispatcher(enricher)
    context = SimpleNamespace(weather_scheduled=set())

    first = dispatcher.dispatch(1, context)
    second = dispatcher.dispatch("1", context)
    dispatcher.wait(timeout=5)

    assert first is not None
    assert second is None
    assert store.get(1, "wXSummary") == "Clear"


def test_dispatch_runs_inline_when_thread_cannot_start(enricher):
    enricher.fetch_for_item = MagicMock(return_value=None)
    dispatcher = WeatherDispatcher(enricher)
    context = SimpleNamespace(weather_scheduled=set())

    with patch("core.weather_enricher.threading.Thread.start", side_effect=RuntimeError("can't start new thread")):
        assert dispatcher.dispatch(1, context) is None

    enricher.fetch_for_item.assert_called_once_with(1)
