"""
Location sources and the per-workflow "last known location" slot.

A provider answers one question: where is the user right now? It either
returns a :class:`Coordinate` or raises :class:`LocationUnavailable` /
:class:`LocationDenied`. Workflows never talk to a provider directly; they go
through a :class:`LocationContext`, one per workflow, so a fix taken for
encryption is never reused for a decrypt-side check.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Awaitable, Callable, Optional

from .exceptions import LocationDenied, LocationUnavailable
from .models import Coordinate


logger = logging.getLogger(__name__)

LOCATION_ENV = "GEOLOCK_LOCATION"
DEFAULT_TIMEOUT_S = 30.0


class LocationProvider:
    """Base class for single-shot location sources."""

    async def locate(self) -> Coordinate:
        raise NotImplementedError


class StaticLocationProvider(LocationProvider):
    """Always reports the same fix (manual entry, tests)."""

    def __init__(self, coordinate: Coordinate):
        self.coordinate = coordinate

    async def locate(self) -> Coordinate:
        return self.coordinate


def parse_coordinate(text: str) -> Coordinate:
    """Parse ``"lat,lng"``; raises ValueError on anything else."""
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2:
        raise ValueError(f"expected 'lat,lng', got {text!r}")
    lat, lng = float(parts[0]), float(parts[1])
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        raise ValueError(f"coordinate out of range: {text!r}")
    return Coordinate(lat=lat, lng=lng)


class EnvironmentLocationProvider(LocationProvider):
    """
    Reads the fix from ``GEOLOCK_LOCATION`` (``"lat,lng"``) at each call.

    A terminal has no positioning hardware of its own; this lets a GPS daemon
    wrapper or the user export the current position.
    """

    def __init__(self, variable: str = LOCATION_ENV):
        self.variable = variable

    async def locate(self) -> Coordinate:
        raw = os.getenv(self.variable)
        if not raw:
            raise LocationUnavailable(f"{self.variable} is not set")
        try:
            return parse_coordinate(raw)
        except ValueError as e:
            raise LocationUnavailable(f"{self.variable} is invalid: {e}") from e


class ConsentLocationProvider(LocationProvider):
    """
    Asks the user before sharing a fix from ``inner``.

    A refusal sticks for the rest of the session: later calls raise
    :class:`LocationDenied` without asking again until :meth:`reset`.
    """

    def __init__(self, inner: LocationProvider, ask: Callable[[], Awaitable[bool]]):
        self.inner = inner
        self.ask = ask
        self.granted: Optional[bool] = None
        self._asking = asyncio.Lock()

    async def locate(self) -> Coordinate:
        # one prompt at a time; callers queued behind it reuse the answer
        async with self._asking:
            if self.granted is None:
                self.granted = bool(await self.ask())
        if not self.granted:
            raise LocationDenied("Location access denied")
        return await self.inner.locate()

    def reset(self) -> None:
        self.granted = None


class LocationContext:
    """Holds the most recent fix for one workflow."""

    def __init__(self, provider: LocationProvider, timeout: float = DEFAULT_TIMEOUT_S):
        self.provider = provider
        self.timeout = timeout
        self.location: Optional[Coordinate] = None

    async def refresh(self) -> Coordinate:
        """Acquire a fresh fix; the slot is cleared if acquisition fails."""
        self.location = None
        try:
            fix = await asyncio.wait_for(self.provider.locate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("location request timed out after %.1fs", self.timeout)
            raise LocationUnavailable("Location request timed out") from None
        self.location = fix
        logger.debug("location fix acquired")
        return fix

    async def require(self) -> Coordinate:
        if self.location is not None:
            return self.location
        return await self.refresh()

    def clear(self) -> None:
        self.location = None
