"""
Database connection management.

Provides the Supabase client singleton used by every store-backed service.
The hosted Postgres holds products, routes, daily stock loads, sales and
the per-product stock counters that guard concurrent sales.
"""

from supabase import create_client, Client
from functools import lru_cache
from typing import Optional
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class ConnectionError(DatabaseError):
    """Failed to connect to database."""
    pass


def is_duplicate_key_error(error: Exception) -> bool:
    """True when a Postgres unique constraint rejected the write (SQLSTATE 23505)."""
    text = str(error).lower()
    return "duplicate key" in text or "23505" in text


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        ConnectionError: If connection fails
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_key
        )

        logger.info(
            "supabase_connected",
            status="success"
        )

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise ConnectionError(f"Failed to connect to Supabase: {e}") from e


def get_admin_client() -> Optional[Client]:
    """
    Get Supabase client with service role key (admin access).

    Only available if SUPABASE_SERVICE_KEY is configured. The stock counter
    table is protected by row-level security, so counter maintenance uses
    this client when it is available.

    Returns:
        Client: Admin Supabase client, or None if not configured
    """
    if not settings.supabase_service_key:
        logger.warning("admin_client_not_configured")
        return None

    try:
        return create_client(
            settings.supabase_url,
            settings.supabase_service_key
        )
    except Exception as e:
        logger.error(
            "admin_client_failed",
            error=str(e)
        )
        return None


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with catalog sizes
    """
    try:
        client = get_supabase_client()

        products = client.table("products").select("id", count="exact").execute()
        routes = client.table("routes").select("id", count="exact").execute()

        return {
            "status": "healthy",
            "products_count": products.count,
            "routes_count": routes.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }

