"""
Stock load service.

A stock load is written once when a route starts and never changes after;
remaining stock is always start minus the day's sales, so the load itself
must keep representing the start of the day.
"""

from datetime import date
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from config import get_supabase_client, is_duplicate_key_error
from exceptions import (
    ReportGenerationError,
    StockLoadExistsError,
    StockLoadNotFoundError,
    InvalidRatioError,
    DatabaseError,
)
from models.product import SaleUnit
from models.stock_load import (
    StartPosition,
    StartPositions,
    StockLoadCreate,
    StockLoadResponse,
)
from services.product_service import get_product_service
from services.stock_counter_service import get_stock_counter_service
from services.unit_config_service import pair_to_pieces, resolve_pieces_per_box

logger = structlog.get_logger(__name__)


def build_start_positions(
    route_id: str,
    load_date: date,
    stock_load: Optional[StockLoadResponse]
) -> StartPositions:
    """
    Project a stock load onto per-product start quantities.

    Products missing from the load start at zero. When there is no load
    at all the result says so through ``stock_loaded=False`` so callers
    can tell "nothing loaded yet" apart from "loaded with nothing".
    """
    if stock_load is None:
        logger.warning("no_stock_loaded", route_id=route_id, date=str(load_date))
        return StartPositions(route_id=route_id, load_date=load_date, stock_loaded=False)

    positions: dict[str, StartPosition] = {}
    for entry in stock_load.entries:
        position = positions.setdefault(
            entry.product_id, StartPosition(product_id=entry.product_id)
        )
        if entry.unit is SaleUnit.BOX:
            position.start_box = entry.quantity
        else:
            position.start_pcs = entry.quantity

    return StartPositions(
        route_id=route_id,
        load_date=load_date,
        stock_loaded=True,
        positions=positions,
    )


def _parse_load(row: dict) -> StockLoadResponse:
    try:
        return StockLoadResponse(**row)
    except PydanticValidationError as e:
        logger.error("stock_load_unreadable", stock_load_id=row.get("id"), error=str(e))
        raise ReportGenerationError(
            "A stored stock load could not be read",
            details={
                "stock_load_id": row.get("id"),
                "errors": e.errors(include_url=False, include_context=False, include_input=False),
            }
        )


class StockLoadService:
    """
    Stock load persistence.

    Handles the one-per-day start-of-route inventory in ``daily_stock``.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "daily_stock"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_for_route_date(
        self,
        route_id: str,
        load_date: date
    ) -> Optional[StockLoadResponse]:
        """
        Get the stock load for a route and date.

        Returns:
            StockLoadResponse, or None when the route has not been loaded

        Raises:
            ReportGenerationError: If the stored load cannot be read
        """
        logger.debug("getting_stock_load", route_id=route_id, date=str(load_date))

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("route_id", route_id)
                .eq("date", load_date.isoformat())
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_stock_load_failed",
                route_id=route_id,
                date=str(load_date),
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return _parse_load(result.data[0])

    def get_by_id(self, stock_load_id: str) -> StockLoadResponse:
        """
        Get a stock load by ID.

        Raises:
            StockLoadNotFoundError: If the load doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", stock_load_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_stock_load_failed", stock_load_id=stock_load_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise StockLoadNotFoundError(stock_load_id)
        return _parse_load(result.data[0])

    def get_start_positions(self, route_id: str, load_date: date) -> StartPositions:
        """Start positions for a route/date (read-only projection)."""
        return build_start_positions(
            route_id, load_date, self.get_for_route_date(route_id, load_date)
        )

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: StockLoadCreate) -> StockLoadResponse:
        """
        Record the start-of-day load and seed the sale counters.

        Raises:
            StockLoadExistsError: If the route/date was already loaded
        """
        logger.info(
            "creating_stock_load",
            route_id=data.route_id,
            date=str(data.load_date),
            entries=len(data.entries)
        )

        if self.get_for_route_date(data.route_id, data.load_date) is not None:
            raise StockLoadExistsError(data.route_id, data.load_date.isoformat())

        insert_data = {
            "route_id": data.route_id,
            "date": data.load_date.isoformat(),
            "stock": [
                {
                    "productId": entry.product_id,
                    "unit": entry.unit.value,
                    "quantity": entry.quantity,
                }
                for entry in data.entries
            ],
        }

        try:
            result = self.db.table(self.table).insert(insert_data).execute()
        except Exception as e:
            if is_duplicate_key_error(e):
                raise StockLoadExistsError(data.route_id, data.load_date.isoformat())
            logger.error("create_stock_load_failed", route_id=data.route_id, error=str(e))
            raise DatabaseError("insert", str(e))

        stock_load = _parse_load(result.data[0])
        self._seed_counters(stock_load)

        logger.info(
            "stock_load_created",
            stock_load_id=stock_load.id,
            route_id=stock_load.route_id
        )
        return stock_load

    def _seed_counters(self, stock_load: StockLoadResponse) -> None:
        starts = build_start_positions(stock_load.route_id, stock_load.load_date, stock_load)
        catalog = get_product_service().get_catalog(set(starts.positions))

        start_pieces: dict[str, int] = {}
        for product_id, position in starts.positions.items():
            product = catalog.get(product_id)
            if product is None:
                logger.warning("stock_load_unknown_product", product_id=product_id)
                continue
            try:
                ratio = resolve_pieces_per_box(product)
            except InvalidRatioError:
                logger.error(
                    "stock_counter_skipped_invalid_ratio",
                    product_id=product_id,
                    pieces_per_box=product.pcs_per_box
                )
                continue
            start_pieces[product_id] = pair_to_pieces(
                position.start_box, position.start_pcs, ratio
            )

        get_stock_counter_service().seed(
            stock_load.route_id, stock_load.load_date, start_pieces
        )


# Singleton instance
_stock_load_service: Optional[StockLoadService] = None


def get_stock_load_service() -> StockLoadService:
    """Get or create StockLoadService instance."""
    global _stock_load_service
    if _stock_load_service is None:
        _stock_load_service = StockLoadService()
    return _stock_load_service
