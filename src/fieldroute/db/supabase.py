"""Supabase connection used by the persistent route store."""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import settings

logger = logging.getLogger(__name__)


def supabase_configured() -> bool:
    return bool(settings.supabase_url and settings.supabase_key)


@lru_cache()
def get_supabase_client() -> Client | None:
    """Shared Supabase client, or None when credentials are missing or rejected.

    Creating the client does not open a connection; the first query is what
    surfaces network problems.
    """
    if not supabase_configured():
        logger.warning("Supabase URL or key not set; persistent storage disabled")
        return None
    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as exc:
        logger.error(f"Could not create Supabase client for {settings.supabase_url}: {exc}")
        return None
