from __future__ import annotations

from datetime import datetime

import httpx
import pytest

from dayplanner.core.exceptions import (
    ConfigurationError,
    InvalidRequestError,
    TransportError,
    UpstreamError,
    UpstreamFormatError,
)
from dayplanner.services.route_client import (
    CachedRouteClient,
    GoogleDirectionsRouteClient,
    RouteEstimate,
    provider_mode,
)

OK_PAYLOAD = {
    "status": "OK",
    "routes": [{"legs": [{"duration": {"value": 1530}, "departure_time": {"text": "9:35 AM"}}]}],
}


def _client(handler) -> GoogleDirectionsRouteClient:
    return GoogleDirectionsRouteClient("test-key", http_client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_estimate_parses_minutes_and_departure() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json=OK_PAYLOAD)

    estimate = _client(handler).estimate_duration(
        "1 Main St", "12 Oak Ave", "public transit", arrival=datetime(2026, 10, 18, 10, 0)
    )

    assert estimate == RouteEstimate(minutes=25, departure_label="9:35 AM")
    assert seen["mode"] == "transit"
    assert "arrival_time" in seen and "departure_time" not in seen


def test_missing_departure_text_is_na() -> None:
    payload = {"status": "OK", "routes": [{"legs": [{"duration": {"value": 600}}]}]}
    estimate = _client(lambda request: httpx.Response(200, json=payload)).estimate_duration("a", "b", "walk")
    assert estimate.departure_label == "N/A"


@pytest.mark.parametrize(
    "response, error",
    [
        (httpx.Response(500, text="oops"), UpstreamError),
        (httpx.Response(200, json={"status": "ZERO_RESULTS"}), InvalidRequestError),
        (httpx.Response(200, json={"status": "OVER_QUERY_LIMIT"}), UpstreamError),
        (httpx.Response(200, json={"status": "OK", "routes": []}), UpstreamFormatError),
        (httpx.Response(200, text="<html>"), UpstreamFormatError),
    ],
)
def test_provider_failures_map_to_errors(response, error) -> None:
    with pytest.raises(error):
        _client(lambda request: response).estimate_duration("a", "b", "drive")


def test_network_failure_is_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(TransportError):
        _client(handler).estimate_duration("a", "b", "drive")


def test_missing_key_and_unknown_mode() -> None:
    with pytest.raises(ConfigurationError):
        GoogleDirectionsRouteClient(None).estimate_duration("a", "b", "drive")
    with pytest.raises(InvalidRequestError):
        provider_mode("teleport")


class _CountingClient:
    def __init__(self) -> None:
        self.calls = 0

    def estimate_duration(self, origin, destination, mode, arrival=None) -> RouteEstimate:
        self.calls += 1
        return RouteEstimate(minutes=self.calls, departure_label="N/A")


def test_cache_hits_ignore_case_and_evict_least_recent() -> None:
    inner = _CountingClient()
    cache = CachedRouteClient(inner, max_entries=2)

    cache.estimate_duration("Home", "Gym", "drive")
    assert cache.estimate_duration(" home", "GYM", "Drive").minutes == 1
    cache.estimate_duration("Home", "Office", "drive")
    cache.estimate_duration("Home", "Gym", "drive")
    cache.estimate_duration("Home", "Park", "drive")

    assert len(cache) == 2
    assert (cache.hits, cache.misses) == (2, 3)
    cache.estimate_duration("Home", "Office", "drive")
    assert inner.calls == 4
