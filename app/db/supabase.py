import logging
from typing import Optional
from supabase import create_client, Client
from app.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def create_supabase_client() -> Client:
    """
    Create the Supabase client used as the authoritative record store.

    Returns:
        Client: Configured Supabase client

    Raises:
        RuntimeError: If the store is not configured or the connection fails
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required")

    try:
        # Service role key so record updates are not filtered by RLS
        client: Client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
        logger.info("Supabase client created for %s", settings.SUPABASE_URL)
        return client
    except Exception as e:
        error_msg = f"Failed to connect to Supabase: {str(e)}"
        logger.error(error_msg)
        raise RuntimeError(error_msg)


def get_supabase() -> Client:
    """Get the process-wide Supabase client, creating it on first use"""
    global _client
    if _client is None:
        _client = create_supabase_client()
    return _client
