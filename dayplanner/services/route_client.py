"""Travel-duration lookups against a directions provider, with an LRU cache."""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Optional, Protocol, Tuple

import httpx

from dayplanner.core.exceptions import (
    ConfigurationError,
    InvalidRequestError,
    TransportError,
    UpstreamError,
    UpstreamFormatError,
)

logger = logging.getLogger(__name__)

DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"

TRANSPORT_MODES = {
    "walk": "walking",
    "walking": "walking",
    "drive": "driving",
    "driving": "driving",
    "public transit": "transit",
    "transit": "transit",
    "bike": "bicycling",
    "bicycling": "bicycling",
}

_REJECTED_STATUSES = {"INVALID_REQUEST", "NOT_FOUND", "ZERO_RESULTS", "MAX_WAYPOINTS_EXCEEDED"}


@dataclass(frozen=True)
class RouteEstimate:
    minutes: int
    departure_label: str


class GeoRouteClient(Protocol):
    def estimate_duration(
        self,
        origin: str,
        destination: str,
        mode: str,
        arrival: Optional[datetime] = None,
    ) -> RouteEstimate:
        ...


def provider_mode(mode: str) -> str:
    key = mode.strip().lower()
    if key not in TRANSPORT_MODES:
        raise InvalidRequestError(f"Unsupported transport mode: {mode}")
    return TRANSPORT_MODES[key]


class GoogleDirectionsRouteClient:
    def __init__(
        self,
        api_key: Optional[str],
        *,
        http_client: Optional[httpx.Client] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._http = http_client or httpx.Client(timeout=timeout_seconds)

    def estimate_duration(
        self,
        origin: str,
        destination: str,
        mode: str,
        arrival: Optional[datetime] = None,
    ) -> RouteEstimate:
        if not self._api_key:
            raise ConfigurationError("MAPS_API_KEY is not configured")
        params = {
            "origin": origin,
            "destination": destination,
            "mode": provider_mode(mode),
            "key": self._api_key,
        }
        if arrival is not None:
            params["arrival_time"] = str(int(arrival.timestamp()))
        else:
            params["departure_time"] = "now"

        try:
            response = self._http.get(DIRECTIONS_URL, params=params)
        except httpx.TimeoutException as exc:
            raise TransportError("Directions request timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Directions request failed: {exc}") from exc

        if response.status_code != 200:
            raise UpstreamError(
                f"Directions provider returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFormatError("directions response is not JSON", response.text) from exc

        status = payload.get("status", "UNKNOWN")
        if status in _REJECTED_STATUSES:
            raise InvalidRequestError(
                f"Directions provider rejected route {origin!r} -> {destination!r}: {status}",
                details={"status": status},
            )
        if status != "OK":
            raise UpstreamError(f"Directions provider status {status}", details={"status": status})

        try:
            leg = payload["routes"][0]["legs"][0]
            seconds = int(leg["duration"]["value"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise UpstreamFormatError("directions response has no route duration", response.text) from exc

        departure = (leg.get("departure_time") or {}).get("text") or "N/A"
        return RouteEstimate(minutes=seconds // 60, departure_label=departure)

    def close(self) -> None:
        self._http.close()


class CachedRouteClient:
    """Memoizes estimates by (origin, destination, mode), evicting least recently used."""

    def __init__(self, inner: GeoRouteClient, max_entries: int = 256) -> None:
        self._inner = inner
        self._max_entries = max(1, max_entries)
        self._cache: "OrderedDict[Tuple[str, str, str], RouteEstimate]" = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def cache_key(origin: str, destination: str, mode: str) -> Tuple[str, str, str]:
        return (origin.strip().lower(), destination.strip().lower(), mode.strip().lower())

    def estimate_duration(
        self,
        origin: str,
        destination: str,
        mode: str,
        arrival: Optional[datetime] = None,
    ) -> RouteEstimate:
        key = self.cache_key(origin, destination, mode)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                self.hits += 1
                logger.debug("Route cache hit %s -> %s", origin, destination)
                return cached
            self.misses += 1

        estimate = self._inner.estimate_duration(origin, destination, mode, arrival)

        with self._lock:
            self._cache[key] = estimate
            self._cache.move_to_end(key)
            while len(self._cache) > self._max_entries:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug("Evicted route %s -> %s", evicted[0], evicted[1])
        return estimate

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
