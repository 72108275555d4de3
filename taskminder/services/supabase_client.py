"""Supabase client for database operations."""

from functools import lru_cache
from typing import Optional

from supabase import Client, create_client

from ..config import get_settings
from ..logging_config import get_logger

logger = get_logger(__name__)

TASKS_TABLE = "tasks"
NOTIFICATIONS_TABLE = "scheduled_notifications"


@lru_cache(maxsize=1)
def get_supabase_client() -> Optional[Client]:
    """Get Supabase client instance."""
    settings = get_settings()

    if not settings.supabase_enabled:
        logger.warning("Supabase credentials not configured")
        return None

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialized successfully")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}")
        return None


def verify_database_tables(client: Client) -> bool:
    """Check that the tables used by the engine are reachable."""
    try:
        client.table(TASKS_TABLE).select("id").limit(1).execute()
        client.table(NOTIFICATIONS_TABLE).select("id").limit(1).execute()
        logger.info("Database tables verified")
        return True
    except Exception as e:
        logger.error(f"Database tables not reachable: {e}")
        return False
