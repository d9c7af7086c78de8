"""
Sales service.

Reads and records shop bills, and folds a day's bills into per-product
consumed quantities and revenue.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from config import get_supabase_client
from exceptions import (
    AppError,
    SaleRecordNotFoundError,
    NoStockLoadedError,
    ProductNotFoundError,
    InvalidRatioError,
    ReportGenerationError,
    DatabaseError,
)
from models.product import ProductResponse, SaleUnit
from models.reconciliation import (
    ReconciliationWarning,
    SalesAggregate,
    SoldPosition,
    WarningType,
)
from models.sales import (
    SaleLine,
    SaleRecordCreate,
    SaleRecordResponse,
    ShopSuggestionsResponse,
    normalize_sale_products,
)
from services.product_service import get_product_service
from services.shop_directory_service import (
    InMemoryShopNameCache,
    ShopNameCache,
    suggest_shop_names,
)
from services.stock_counter_service import get_stock_counter_service
from services.stock_load_service import get_stock_load_service
from services.unit_config_service import resolve_pieces_per_box, to_pieces, unit_price

logger = structlog.get_logger(__name__)

VALID_UNITS = {unit.value for unit in SaleUnit}


# ===================
# AGGREGATION
# ===================

def resolve_line_unit(line: SaleLine) -> SaleUnit:
    """Stored unit of a line; anything other than box counts as pieces."""
    if line.unit in VALID_UNITS:
        return SaleUnit(line.unit)
    return SaleUnit.PCS


def line_revenue(
    line: SaleLine,
    unit: SaleUnit,
    product: Optional[ProductResponse]
) -> Decimal:
    """
    Revenue for one line.

    Uses the stored line total, else quantity x stored unit price, else
    quantity x the product's current catalog price for the unit. Older
    bills lack the later fields, so the order matters.
    """
    if line.line_total is not None:
        return line.line_total
    if line.unit_price is not None:
        return line.unit_price * line.quantity
    if product is None:
        return Decimal("0")
    try:
        ratio = resolve_pieces_per_box(product)
    except InvalidRatioError:
        if unit is SaleUnit.PCS and product.pcs_price is None:
            return Decimal("0")
        ratio = 1
    return unit_price(product, unit, ratio) * line.quantity


def aggregate_sales(
    records: Iterable[SaleRecordResponse],
    catalog: dict[str, ProductResponse]
) -> SalesAggregate:
    """
    Fold sale records into consumed quantities and revenue per product.

    Order of records does not matter. Lines whose unit is missing or not
    box/pcs are counted as pieces and reported once per product.

    Args:
        records: Sale records for one route/date (any iterable, read once)
        catalog: Products by id, for the price fallback

    Returns:
        SalesAggregate with positions, warnings, record count and the sum
        of bill totals as recorded
    """
    positions: dict[str, SoldPosition] = {}
    defaulted: dict[str, list] = defaultdict(list)
    record_count = 0
    recorded_revenue = Decimal("0")

    for record in records:
        record_count += 1
        recorded_revenue += record.total_amount

        for line in record.lines:
            unit = resolve_line_unit(line)
            if line.unit not in VALID_UNITS:
                defaulted[line.product_id].append(line.unit)

            position = positions.setdefault(
                line.product_id, SoldPosition(product_id=line.product_id)
            )
            if unit is SaleUnit.BOX:
                position.sold_box += line.quantity
            else:
                position.sold_pcs += line.quantity
            position.revenue += line_revenue(line, unit, catalog.get(line.product_id))

    warnings = []
    for product_id, units in sorted(defaulted.items()):
        logger.warning(
            "sale_line_unit_defaulted",
            product_id=product_id,
            lines=len(units),
            units=sorted({str(u) for u in units})
        )
        warnings.append(ReconciliationWarning(
            type=WarningType.MALFORMED_SALE_LINE,
            product_id=product_id,
            message="Sale lines without a box/pcs unit were counted as pieces",
            details={"lines": len(units), "units": sorted({str(u) for u in units})},
        ))

    return SalesAggregate(
        positions=positions,
        warnings=warnings,
        record_count=record_count,
        recorded_revenue=recorded_revenue,
    )


def _parse_records(rows: list[dict]) -> list[SaleRecordResponse]:
    records = []
    for row in rows:
        try:
            records.append(SaleRecordResponse(**row))
        except PydanticValidationError as e:
            logger.error("sale_record_unreadable", record_id=row.get("id"), error=str(e))
            raise ReportGenerationError(
                "A stored sale record could not be read",
                details={
                    "record_id": row.get("id"),
                    "errors": e.errors(include_url=False, include_context=False, include_input=False),
                }
            )
    return records


# ===================
# SERVICE
# ===================

class SalesService:
    """
    Sales business logic.

    Core methods:
    - get_for_route_date: every bill for a route/day
    - record_sale: store a bill after claiming its stock
    - get_shop_suggestions: shop names for the billing form
    """

    def __init__(self, shop_cache: Optional[ShopNameCache] = None):
        self.db = get_supabase_client()
        self.table = "sales"
        self.shop_cache = shop_cache or InMemoryShopNameCache()

    # ===================
    # READ OPERATIONS
    # ===================

    def get_for_route_date(
        self,
        route_id: str,
        sale_date: date
    ) -> list[SaleRecordResponse]:
        """
        Get all sale records for a route and date.

        Raises:
            DatabaseError: If the query fails
            ReportGenerationError: If a stored record cannot be read
        """
        logger.debug("getting_sales_for_day", route_id=route_id, date=str(sale_date))

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("route_id", route_id)
                .eq("date", sale_date.isoformat())
                .order("created_at")
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_sales_for_day_failed",
                route_id=route_id,
                date=str(sale_date),
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        records = _parse_records(result.data)
        logger.info("sales_retrieved", route_id=route_id, count=len(records))
        return records

    def get_all(
        self,
        page: int = 1,
        page_size: int = 20,
        route_id: Optional[str] = None,
        sale_date: Optional[date] = None,
    ) -> tuple[list[SaleRecordResponse], int]:
        """
        Get sale records with optional filters, newest first.

        Returns:
            Tuple of (records, total count)
        """
        logger.info(
            "getting_sales",
            page=page,
            page_size=page_size,
            route_id=route_id
        )

        try:
            query = self.db.table(self.table).select("*", count="exact")

            if route_id:
                query = query.eq("route_id", route_id)
            if sale_date:
                query = query.eq("date", sale_date.isoformat())

            offset = (page - 1) * page_size
            query = query.range(offset, offset + page_size - 1)
            query = query.order("created_at", desc=True)

            result = query.execute()
        except Exception as e:
            logger.error("get_sales_failed", error=str(e))
            raise DatabaseError("select", str(e))

        records = _parse_records(result.data)
        return records, result.count or 0

    def get_by_id(self, record_id: str) -> SaleRecordResponse:
        """
        Get a single sale record by ID.

        Raises:
            SaleRecordNotFoundError: If record doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", record_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_sale_record_failed", record_id=record_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise SaleRecordNotFoundError(record_id)
        return _parse_records(result.data)[0]

    def get_shop_suggestions(self, route_id: str, query: str = "") -> ShopSuggestionsResponse:
        """
        Shop names matching what the driver typed.

        Merges names from stored bills on the route with the cache,
        without names the driver hid.
        """
        try:
            result = (
                self.db.table(self.table)
                .select("shop_name, products_sold")
                .eq("route_id", route_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_shop_names_failed", route_id=route_id, error=str(e))
            raise DatabaseError("select", str(e))

        stored_names = []
        for row in result.data:
            name = (row.get("shop_name") or "").strip()
            if not name:
                continue
            stored_names.append(name)
            _, meta = normalize_sale_products(row.get("products_sold"))
            self.shop_cache.store_details(name, meta.get("shop_address"), meta.get("shop_phone"))

        suggestions = suggest_shop_names(
            [*self.shop_cache.known_names(route_id), *stored_names],
            self.shop_cache.hidden_names(route_id),
            query,
        )
        details = {
            name: found
            for name in suggestions
            if (found := self.shop_cache.details(name))
        }
        return ShopSuggestionsResponse(
            route_id=route_id,
            query=query,
            suggestions=suggestions,
            details=details,
        )

    def hide_shop(self, route_id: str, name: str) -> None:
        """Remove a shop from suggestions on a route."""
        self.shop_cache.hide(route_id, name)

    # ===================
    # WRITE OPERATIONS
    # ===================

    def record_sale(self, data: SaleRecordCreate) -> SaleRecordResponse:
        """
        Store a bill after claiming its stock.

        Algorithm:
        1. Require a stock load for the route/date
        2. Convert each product's lines to pieces
        3. Claim pieces product by product (sorted by id) on the counters
        4. Insert the bill
        5. On any failure, give back every claim made so far

        Raises:
            NoStockLoadedError: No stock load for the route/date
            ProductNotFoundError: A line names an unknown product
            InvalidRatioError: A product has pieces_per_box <= 0
            InsufficientStockError: A product does not have enough stock
            AllocationConflictError: Concurrent sales kept winning
        """
        logger.info(
            "recording_sale",
            route_id=data.route_id,
            date=str(data.sale_date),
            shop_name=data.shop_name,
            lines=len(data.lines)
        )

        stock_load = get_stock_load_service().get_for_route_date(data.route_id, data.sale_date)
        if stock_load is None:
            raise NoStockLoadedError(data.route_id, data.sale_date.isoformat())

        needs = self._pieces_needed(data)
        counters = get_stock_counter_service()
        if not counters.has_counters(data.route_id, data.sale_date):
            # Loads recorded before counters existed
            from services.reconciliation_service import get_reconciliation_service
            counters.seed_from_reconciliation(
                get_reconciliation_service().reconcile_day(data.route_id, data.sale_date)
            )

        claimed: list[tuple[str, int]] = []
        try:
            for product_id in sorted(needs):
                counters.reserve(data.route_id, data.sale_date, product_id, needs[product_id])
                claimed.append((product_id, needs[product_id]))
            record = self._insert(data)
        except Exception:
            self._release_claims(data, claimed)
            raise

        self.shop_cache.remember(
            data.route_id, data.shop_name, data.shop_address, data.shop_phone
        )
        logger.info(
            "sale_recorded",
            record_id=record.id,
            route_id=record.route_id,
            total_amount=str(record.total_amount)
        )
        return record

    def _pieces_needed(self, data: SaleRecordCreate) -> dict[str, int]:
        catalog = get_product_service().get_catalog({line.product_id for line in data.lines})
        needs: dict[str, int] = defaultdict(int)
        for line in data.lines:
            product = catalog.get(line.product_id)
            if product is None:
                raise ProductNotFoundError(line.product_id)
            ratio = resolve_pieces_per_box(product)
            needs[line.product_id] += to_pieces(line.quantity, line.unit, ratio)
        return dict(needs)

    def _insert(self, data: SaleRecordCreate) -> SaleRecordResponse:
        insert_data = {
            "route_id": data.route_id,
            "date": data.sale_date.isoformat(),
            "shop_name": data.shop_name,
            "products_sold": data.to_stored_products(),
            "total_amount": float(data.total_amount),
        }
        try:
            result = self.db.table(self.table).insert(insert_data).execute()
        except Exception as e:
            logger.error("create_sale_record_failed", route_id=data.route_id, error=str(e))
            raise DatabaseError("insert", str(e))
        return SaleRecordResponse(**result.data[0])

    def _release_claims(self, data: SaleRecordCreate, claimed: list[tuple[str, int]]) -> None:
        counters = get_stock_counter_service()
        for product_id, pieces in reversed(claimed):
            try:
                counters.release(data.route_id, data.sale_date, product_id, pieces)
            except AppError as e:
                logger.error(
                    "stock_claim_not_released",
                    route_id=data.route_id,
                    product_id=product_id,
                    pieces=pieces,
                    error=e.message
                )


# Singleton instance
_sales_service: Optional[SalesService] = None


def get_sales_service() -> SalesService:
    """Get or create SalesService instance."""
    global _sales_service
    if _sales_service is None:
        _sales_service = SalesService()
    return _sales_service
