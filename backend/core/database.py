"""
core/database.py
────────────────
Supabase client factory with a module-level singleton.

Supabase is optional: it backs the persistent holdings store only when
``SUPABASE_URL`` and ``SUPABASE_KEY`` are set.  Without them the API runs
on the in-memory holdings store and this module is never called.

Usage
-----
    from core.database import get_supabase_client

    client = get_supabase_client()
"""

import logging
from functools import lru_cache

from supabase import Client, create_client

from core.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Return the application-wide Supabase client singleton.

    The client is initialised lazily on first call and reused for all
    subsequent calls in the same process.

    Returns:
        Authenticated Supabase ``Client`` ready for table queries.

    Raises:
        RuntimeError: If the Supabase credentials are not configured.
    """
    settings = get_settings()
    if not settings.USE_SUPABASE:
        raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must both be set")
    client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    logger.info("Supabase client initialised (url=%s)", settings.SUPABASE_URL)
    return client
