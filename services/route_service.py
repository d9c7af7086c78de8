"""
Delivery route reads.

Routes created before the numbered naming scheme keep their city-pair
names in the database; they are shown under the numbered name, and one
retired route is hidden entirely.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.route import RouteResponse
from exceptions import RouteNotFoundError, DatabaseError

logger = structlog.get_logger(__name__)

LEGACY_ROUTE_NAMES = {
    "Rajkot - Jamnagar": "Route 1",
    "Ahmedabad - Vadodara": "Route 2",
    "Gandhinagar - Mehsana": "Route 3",
}
HIDDEN_ROUTE_NAMES = {"Surat - Navsari"}


def map_route_name(name: str) -> str:
    """Display name for a stored route name."""
    if name in HIDDEN_ROUTE_NAMES:
        return ""
    return LEGACY_ROUTE_NAMES.get(name, name)


def should_display_route(name: str) -> bool:
    return name not in HIDDEN_ROUTE_NAMES


def _to_response(row: dict) -> RouteResponse:
    return RouteResponse(
        id=row["id"],
        name=row["name"],
        display_name=map_route_name(row["name"]) or row["name"],
        description=row.get("description"),
        is_active=row.get("is_active") is not False,
    )


class RouteService:
    """Route lookups."""

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "routes"

    def get_active(self) -> list[RouteResponse]:
        """Active, visible routes."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("is_active", True)
                .execute()
            )
        except Exception as e:
            logger.error("get_routes_failed", error=str(e))
            raise DatabaseError("select", str(e))

        routes = [
            _to_response(row)
            for row in result.data
            if should_display_route(row["name"])
        ]
        logger.debug("routes_retrieved", count=len(routes))
        return routes

    def get_by_id(self, route_id: str) -> RouteResponse:
        """
        Get a route by ID.

        Raises:
            RouteNotFoundError: If route doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", route_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_route_failed", route_id=route_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise RouteNotFoundError(route_id)
        return _to_response(result.data[0])


# Singleton instance
_route_service: Optional[RouteService] = None


def get_route_service() -> RouteService:
    """Get or create RouteService instance."""
    global _route_service
    if _route_service is None:
        _route_service = RouteService()
    return _route_service
