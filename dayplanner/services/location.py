"""Current-location lookup with a bounded wait."""
from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from dayplanner.core.exceptions import LocationTimeoutError


class LocationProvider(Protocol):
    async def current_location(self) -> Optional[str]:
        """Return a geocodable description of where the user is, if known."""
        ...


class StaticLocationProvider:
    """Reports a fixed location, typically the configured home address."""

    def __init__(self, location: Optional[str] = None) -> None:
        self.location = location or None

    async def current_location(self) -> Optional[str]:
        return self.location


async def fetch_location(provider: LocationProvider, timeout_seconds: float) -> Optional[str]:
    try:
        return await asyncio.wait_for(provider.current_location(), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise LocationTimeoutError(
            "Location request timed out. Please enable location access.",
            details={"timeout_seconds": timeout_seconds},
        ) from exc
