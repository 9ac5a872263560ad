"""Storage backends for the route engine."""

from __future__ import annotations

import logging
from functools import lru_cache

from ..db.supabase import get_supabase_client
from .base import RouteStore
from .memory import InMemoryRouteStore
from .supabase_store import SupabaseRouteStore

__all__ = ["RouteStore", "InMemoryRouteStore", "SupabaseRouteStore", "get_store"]


@lru_cache()
def get_store() -> RouteStore:
    """Return the process-wide store, Supabase when configured."""
    client = get_supabase_client()
    if client is None:
        logging.warning("Using in-memory route store; data will not survive a restart")
        return InMemoryRouteStore()
    return SupabaseRouteStore(client)
