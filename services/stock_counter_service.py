"""
Stock counter service - guarded allocation of stock to sales.

Keeps one row per (route, date, product) in ``stock_counters`` holding the
loaded pieces, the pieces sold so far and a version number. Every sale
claims its pieces with a conditional update on the version it read, so two
devices selling the last pieces of a product cannot both succeed: the
loser re-reads, sees the new sold count and is rejected or retried.

The table also carries ``CHECK (sold_pieces <= start_pieces)`` (see
migrations/001_stock_counters.sql) so a client that bypasses this service
is rejected by the database itself.
"""

from datetime import date
from typing import Optional

import structlog

from config import get_supabase_client, get_admin_client, is_duplicate_key_error, settings
from exceptions import (
    InsufficientStockError,
    AllocationConflictError,
    DatabaseError,
)
from models.reconciliation import ReconciliationResult
from models.stock_load import StockCounterResponse

logger = structlog.get_logger(__name__)


class StockCounterService:
    """
    Incrementally maintained per-product sold counters.

    Core methods:
    - seed: create counters when a stock load is recorded
    - seed_from_reconciliation: backfill counters for loads created earlier
    - reserve: claim pieces for a sale (optimistic, retried)
    - release: give pieces back when a sale could not be stored
    """

    def __init__(self):
        self.db = get_admin_client() or get_supabase_client()
        self.table = "stock_counters"
        self.max_retries = settings.allocation_max_retries

    # ===================
    # READ OPERATIONS
    # ===================

    def get(
        self,
        route_id: str,
        load_date: date,
        product_id: str
    ) -> Optional[StockCounterResponse]:
        """Counter row for one product, or None when not seeded."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("route_id", route_id)
                .eq("date", load_date.isoformat())
                .eq("product_id", product_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_stock_counter_failed",
                route_id=route_id,
                product_id=product_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return StockCounterResponse(**result.data[0])

    def has_counters(self, route_id: str, load_date: date) -> bool:
        """True when any counter exists for the route/date."""
        try:
            result = (
                self.db.table(self.table)
                .select("product_id")
                .eq("route_id", route_id)
                .eq("date", load_date.isoformat())
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("check_stock_counters_failed", route_id=route_id, error=str(e))
            raise DatabaseError("select", str(e))
        return bool(result.data)

    # ===================
    # WRITE OPERATIONS
    # ===================

    def seed(
        self,
        route_id: str,
        load_date: date,
        start_pieces: dict[str, int],
        sold_pieces: Optional[dict[str, int]] = None
    ) -> int:
        """
        Create counters for a route/date.

        Args:
            route_id: Route UUID
            load_date: Business date
            start_pieces: product_id -> loaded pieces
            sold_pieces: product_id -> pieces already sold (backfill only)

        Returns:
            Number of counters created; 0 if they already existed
        """
        sold_pieces = sold_pieces or {}
        rows = [
            {
                "route_id": route_id,
                "date": load_date.isoformat(),
                "product_id": product_id,
                "start_pieces": pieces,
                "sold_pieces": sold_pieces.get(product_id, 0),
                "version": 0,
            }
            for product_id, pieces in sorted(start_pieces.items())
        ]
        if not rows:
            return 0

        try:
            self.db.table(self.table).insert(rows).execute()
        except Exception as e:
            if is_duplicate_key_error(e):
                logger.info("stock_counters_already_seeded", route_id=route_id, date=str(load_date))
                return 0
            logger.error("seed_stock_counters_failed", route_id=route_id, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info(
            "stock_counters_seeded",
            route_id=route_id,
            date=str(load_date),
            products=len(rows)
        )
        return len(rows)

    def seed_from_reconciliation(self, result: ReconciliationResult) -> int:
        """
        Backfill counters from a reconciliation of stored records.

        Used for loads recorded before counters existed. Oversold products
        are seeded as fully sold, which the check constraint requires.
        """
        if self.has_counters(result.route_id, result.load_date):
            return 0
        start = {p.product_id: p.start_pieces for p in result.positions}
        sold = {
            p.product_id: min(p.sold_pieces, p.start_pieces)
            for p in result.positions
        }
        return self.seed(result.route_id, result.load_date, start, sold)

    def reserve(
        self,
        route_id: str,
        load_date: date,
        product_id: str,
        pieces: int
    ) -> StockCounterResponse:
        """
        Claim pieces for a sale.

        Algorithm:
        1. Read the counter (sold, version)
        2. Reject if sold + pieces > start
        3. UPDATE ... SET sold = sold + pieces, version = version + 1
           WHERE version = read version
        4. No row updated means another sale won; go back to 1

        Raises:
            InsufficientStockError: Not enough unsold pieces
            AllocationConflictError: Version kept changing for every attempt
        """
        for attempt in range(1, self.max_retries + 1):
            counter = self.get(route_id, load_date, product_id)
            if counter is None:
                raise InsufficientStockError(product_id, pieces, 0)
            if counter.sold_pieces + pieces > counter.start_pieces:
                logger.warning(
                    "stock_reservation_rejected",
                    route_id=route_id,
                    product_id=product_id,
                    requested_pieces=pieces,
                    available_pieces=counter.available_pieces
                )
                raise InsufficientStockError(product_id, pieces, counter.available_pieces)

            updated = self._compare_and_set(counter, counter.sold_pieces + pieces)
            if updated is not None:
                logger.info(
                    "stock_reserved",
                    route_id=route_id,
                    product_id=product_id,
                    pieces=pieces,
                    sold_pieces=updated.sold_pieces,
                    attempt=attempt
                )
                return updated

            logger.warning(
                "stock_counter_version_conflict",
                route_id=route_id,
                product_id=product_id,
                attempt=attempt
            )

        raise AllocationConflictError(product_id, self.max_retries)

    def release(
        self,
        route_id: str,
        load_date: date,
        product_id: str,
        pieces: int
    ) -> Optional[StockCounterResponse]:
        """
        Return pieces claimed by a sale that was not stored.

        Raises:
            AllocationConflictError: Version kept changing for every attempt
        """
        for attempt in range(1, self.max_retries + 1):
            counter = self.get(route_id, load_date, product_id)
            if counter is None:
                return None

            updated = self._compare_and_set(counter, max(0, counter.sold_pieces - pieces))
            if updated is not None:
                logger.info(
                    "stock_released",
                    route_id=route_id,
                    product_id=product_id,
                    pieces=pieces,
                    attempt=attempt
                )
                return updated

        logger.error(
            "stock_release_failed",
            route_id=route_id,
            product_id=product_id,
            pieces=pieces
        )
        raise AllocationConflictError(product_id, self.max_retries)

    def _compare_and_set(
        self,
        counter: StockCounterResponse,
        new_sold: int
    ) -> Optional[StockCounterResponse]:
        try:
            result = (
                self.db.table(self.table)
                .update({"sold_pieces": new_sold, "version": counter.version + 1})
                .eq("route_id", counter.route_id)
                .eq("date", counter.load_date.isoformat())
                .eq("product_id", counter.product_id)
                .eq("version", counter.version)
                .execute()
            )
        except Exception as e:
            logger.error(
                "update_stock_counter_failed",
                product_id=counter.product_id,
                error=str(e)
            )
            raise DatabaseError("update", str(e))

        if not result.data:
            return None
        return StockCounterResponse(**result.data[0])


# Singleton instance
_stock_counter_service: Optional[StockCounterService] = None


def get_stock_counter_service() -> StockCounterService:
    """Get or create StockCounterService instance."""
    global _stock_counter_service
    if _stock_counter_service is None:
        _stock_counter_service = StockCounterService()
    return _stock_counter_service
