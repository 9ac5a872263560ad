"""Travel-time providers."""

from __future__ import annotations

import logging
from functools import lru_cache

from ...config import settings
from .osrm_client import OSRMClient
from .provider import FallbackProvider, HaversineProvider, TravelMatrix, TravelTimeProvider

__all__ = [
    "FallbackProvider",
    "HaversineProvider",
    "OSRMClient",
    "TravelMatrix",
    "TravelTimeProvider",
    "get_travel_provider",
]


@lru_cache()
def get_travel_provider() -> TravelTimeProvider:
    """Build the configured provider, OSRM when a base URL is set."""
    if not settings.osrm_base_url:
        logging.warning("OSRM base URL not configured; using great-circle travel estimates")
        return HaversineProvider()
    provider: TravelTimeProvider = OSRMClient()
    if settings.provider_fallback_to_haversine:
        provider = FallbackProvider(provider)
    return provider
