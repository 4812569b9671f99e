"""
Tests for timezone resolution.

TimezoneDB is never contacted; `requests.get` is patched in the resolver module.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from core.timezone_resolver import TimezoneEnricher, TimezoneResolver

pytestmark = pytest.mark.unit


def _response(status=200, payload=None, bad_json=False):
    response = MagicMock()
    response.status_code = status
    if bad_json:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    return response


OK_PAYLOAD = {"status": "OK", "zoneName": "America/New_York", "gmtOffset": -14400}


@pytest.fixture
def resolver():
    return TimezoneResolver({"timezone": {"api_key": "tz-test-key"}})


# =============================================================================
# RESOLVER
# =============================================================================

@patch("core.timezone_resolver.requests.get")
def test_resolve_returns_hours_and_zone(mock_get, resolver):
    mock_get.return_value = _response(payload=OK_PAYLOAD)

    result = resolver.resolve(38.889722, -77.033333, 1686839400)

    assert result == {"gmtOffset": -4.0, "timeZone": "America/New_York"}
    params = mock_get.call_args.kwargs["params"]
    assert params["by"] == "position"
    assert params["lng"] == -77.033333
    assert params["time"] == 1686839400
    assert mock_get.call_args.kwargs["timeout"] == (10, 30)


@pytest.mark.parametrize("response", [
    _response(status=500, payload=OK_PAYLOAD),
    _response(bad_json=True),
    _response(payload={"status": "FAILED", "message": "Invalid API key"}),
    _response(payload={"status": "OK", "zoneName": "America/New_York"}),
])
@patch("core.timezone_resolver.requests.get")
def test_resolve_failures_are_unresolved(mock_get, response, resolver):
    mock_get.return_value = response
    assert resolver.resolve(38.9, -77.0, 1686839400) is None


@patch("core.timezone_resolver.requests.get")
def test_network_error_is_unresolved(mock_get, resolver):
    mock_get.side_effect = requests.exceptions.ConnectTimeout("timed out")
    assert resolver.resolve(38.9, -77.0, 1686839400) is None


@patch("core.timezone_resolver.requests.get")
def test_no_api_key_skips_request(mock_get):
    resolver = TimezoneResolver({"timezone": {"api_key": ""}})
    assert resolver.resolve(38.9, -77.0, 1686839400) is None
    mock_get.assert_not_called()


@patch("core.timezone_resolver.offset_hours_at")
@patch("core.timezone_resolver.requests.get")
def test_offline_fallback(mock_get, mock_offline):
    mock_get.side_effect = requests.exceptions.ConnectionError("offline")
    mock_offline.return_value = {"gmtOffset": -4.0, "timeZone": "America/New_York"}
    resolver = TimezoneResolver({"timezone": {"api_key": "k", "offline_fallback": True}})

    assert resolver.resolve(38.9, -77.0, 1686839400)["timeZone"] == "America/New_York"
    mock_offline.assert_called_once_with(38.9, -77.0, 1686839400)


# =============================================================================
# ENRICHER
# =============================================================================

@patch("core.timezone_resolver.requests.get")
def test_enricher_stores_offset_once(mock_get, store, resolver):
    mock_get.return_value = _response(payload=OK_PAYLOAD)
    store.set(1, "GPS", "38.889722,-77.033333")
    store.set(1, "unixTime", 1686839400)
    enricher = TimezoneEnricher(store, resolver)

    assert enricher.ensure_gmt_offset(1) == -4.0
    assert store.get(1, "timeZone") == "America/New_York"

    assert enricher.ensure_gmt_offset(1) == -4.0
    assert mock_get.call_count == 1


@patch("core.timezone_resolver.requests.get")
def test_enricher_skips_without_gps(mock_get, store, resolver):
    store.set(2, "unixTime", 1686839400)
    assert TimezoneEnricher(store, resolver).ensure_gmt_offset(2) is None
    mock_get.assert_not_called()


@patch("core.timezone_resolver.requests.get")
def test_enricher_leaves_field_empty_when_unresolved(mock_get, store, resolver):
    mock_get.return_value = _response(status=503)
    store.set(3, "GPS", "47.6,-122.3")
    store.set(3, "unixTime", 1686839400)
    assert TimezoneEnricher(store, resolver).ensure_gmt_offset(3) is None
    assert store.get(3, "gmtOffset") is None
