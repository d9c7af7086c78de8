"""
Reconciliation service.

Derives remaining stock per product for a route/day from the start-of-day
load and every sale recorded so far. The computation in ``reconcile`` is a
pure function of its inputs; the service around it only fetches them and
forwards audit alerts.
"""

from collections import OrderedDict
from datetime import date
from typing import Optional

import structlog

from exceptions import InvalidRatioError, NegativeReconciliationError, TelegramError
from integrations.telegram import send_reconciliation_alert
from models.product import ProductResponse
from models.reconciliation import (
    ReconciliationResult,
    ReconciliationWarning,
    SalesAggregate,
    StockPosition,
    WarningType,
)
from models.sales import SaleRecordResponse
from models.stock_load import StartPositions
from services.product_service import get_product_service
from services.sales_service import aggregate_sales, get_sales_service
from services.stock_load_service import get_stock_load_service
from services.unit_config_service import from_pieces, get_unit_config, pair_to_pieces

logger = structlog.get_logger(__name__)

# Oversell alerts are tried this many times per (product, sold count)
ALERT_MAX_ATTEMPTS = 3
# Route/days whose alert state is remembered
ALERT_HISTORY_DAYS = 64


def reconcile(
    catalog: dict[str, ProductResponse],
    start_positions: StartPositions,
    sales: SalesAggregate
) -> ReconciliationResult:
    """
    Combine start positions and sales into per-product stock positions.

    For each product in the load or in any sale:
    1. Convert start and sold (box, pcs) to pieces
    2. remaining = max(0, start - sold); an oversell is reported as a
       NEGATIVE_RECONCILIATION warning, the deficit stays recoverable
       from start_pieces / sold_pieces
    3. Split remaining back into (box, pcs)
    4. Drop products with nothing started and nothing sold

    A product with an invalid ratio gets no row, only a warning. Rows are
    ordered by product name, case-insensitively.

    Args:
        catalog: Products by id
        start_positions: Output of the stock load projection
        sales: Output of aggregate_sales

    Returns:
        ReconciliationResult
    """
    warnings: list[ReconciliationWarning] = []
    if not start_positions.stock_loaded:
        warnings.append(ReconciliationWarning(
            type=WarningType.NO_STOCK_LOADED,
            message="No starting stock loaded for this route and date; all start quantities are zero",
            details={
                "route_id": start_positions.route_id,
                "date": start_positions.load_date.isoformat(),
            },
        ))
    warnings.extend(sales.warnings)

    positions: list[StockPosition] = []
    product_ids = set(start_positions.positions) | set(sales.positions)

    for product_id in sorted(product_ids):
        start = start_positions.for_product(product_id)
        sold = sales.for_product(product_id)

        if not (start.start_box or start.start_pcs or sold.sold_box or sold.sold_pcs):
            continue

        product = catalog.get(product_id)
        if product is None:
            warnings.append(ReconciliationWarning(
                type=WarningType.UNKNOWN_PRODUCT,
                product_id=product_id,
                message="Product is not in the catalog; default pieces per box used",
            ))
            product = ProductResponse(id=product_id, name=product_id)

        try:
            unit_config = get_unit_config(product)
        except InvalidRatioError as e:
            warnings.append(ReconciliationWarning(
                type=WarningType.INVALID_RATIO,
                product_id=product_id,
                message=f"{product.name} has an invalid pieces per box and was left out",
                details=e.details,
            ))
            continue

        ratio = unit_config["pieces_per_box"]
        start_pieces = pair_to_pieces(start.start_box, start.start_pcs, ratio)
        sold_pieces = pair_to_pieces(sold.sold_box, sold.sold_pcs, ratio)
        remaining_pieces = start_pieces - sold_pieces

        if remaining_pieces < 0:
            audit = NegativeReconciliationError(product_id, start_pieces, sold_pieces)
            logger.warning(
                "negative_reconciliation",
                route_id=start_positions.route_id,
                date=start_positions.load_date.isoformat(),
                **audit.details
            )
            warnings.append(ReconciliationWarning(
                type=WarningType.NEGATIVE_RECONCILIATION,
                product_id=product_id,
                message=f"{product.name} sold more than was loaded; remaining shown as zero",
                details=audit.details,
            ))
            remaining_pieces = 0

        remaining = from_pieces(remaining_pieces, ratio)

        positions.append(StockPosition(
            product_id=product_id,
            product_name=product.name,
            pieces_per_box=ratio,
            start_box=start.start_box,
            start_pcs=start.start_pcs,
            sold_box=sold.sold_box,
            sold_pcs=sold.sold_pcs,
            remaining_box=remaining.box,
            remaining_pcs=remaining.pcs,
            revenue=sold.revenue,
            box_price=unit_config["box_price"],
            pcs_price=unit_config["pcs_price"],
            start_pieces=start_pieces,
            sold_pieces=sold_pieces,
            remaining_pieces=remaining_pieces,
        ))

    positions.sort(key=lambda p: p.product_name.casefold())

    return ReconciliationResult(
        route_id=start_positions.route_id,
        load_date=start_positions.load_date,
        stock_loaded=start_positions.stock_loaded,
        positions=positions,
        warnings=warnings,
        recorded_revenue=sales.recorded_revenue,
        sale_count=sales.record_count,
    )


class ReconciliationService:
    """
    Fetches a day's inputs and reconciles them.

    Core methods:
    - reconcile_day: positions for a route/date
    - load_day: positions plus the sale records they were built from
    """

    def __init__(self):
        # (route_id, date) -> {(product_id, sold_pieces): send attempts}
        self._alert_attempts: OrderedDict[tuple, dict[tuple, int]] = OrderedDict()

    def load_day(
        self,
        route_id: str,
        load_date: date
    ) -> tuple[ReconciliationResult, list[SaleRecordResponse]]:
        """
        Reconcile a route/date and return the sale records used.

        Raises:
            ReportGenerationError: If a stored sale record or stock load cannot be read
            DatabaseError: If a query fails
        """
        logger.info("reconciling_day", route_id=route_id, date=str(load_date))

        start_positions = get_stock_load_service().get_start_positions(route_id, load_date)
        records = get_sales_service().get_for_route_date(route_id, load_date)

        product_ids = set(start_positions.positions)
        product_ids.update(line.product_id for record in records for line in record.lines)
        catalog = get_product_service().get_catalog(product_ids)
        sales = aggregate_sales(records, catalog)

        result = reconcile(catalog, start_positions, sales)
        self._forward_alerts(result)

        logger.info(
            "day_reconciled",
            route_id=route_id,
            date=str(load_date),
            products=len(result.positions),
            sales=result.sale_count,
            warnings=len(result.warnings)
        )
        return result, records

    def reconcile_day(self, route_id: str, load_date: date) -> ReconciliationResult:
        """Positions for a route/date."""
        result, _ = self.load_day(route_id, load_date)
        return result

    def _attempts_for_day(self, route_id: str, load_date: date) -> dict[tuple, int]:
        day = (route_id, load_date)
        attempts = self._alert_attempts.get(day)
        if attempts is None:
            attempts = self._alert_attempts[day] = {}
            while len(self._alert_attempts) > ALERT_HISTORY_DAYS:
                self._alert_attempts.popitem(last=False)
        return attempts

    def _forward_alerts(self, result: ReconciliationResult) -> None:
        oversells = [
            w for w in result.warnings
            if w.type is WarningType.NEGATIVE_RECONCILIATION
        ]
        if not oversells:
            return

        attempts = self._attempts_for_day(result.route_id, result.load_date)
        for warning in oversells:
            key = (warning.product_id, warning.details.get("sold_pieces"))
            if attempts.get(key, 0) >= ALERT_MAX_ATTEMPTS:
                continue
            try:
                send_reconciliation_alert(warning, result.route_id, result.load_date)
            except TelegramError as e:
                attempts[key] = attempts.get(key, 0) + 1
                logger.error(
                    "reconciliation_alert_failed",
                    route_id=result.route_id,
                    product_id=warning.product_id,
                    attempt=attempts[key],
                    error=e.message
                )
                continue
            attempts[key] = ALERT_MAX_ATTEMPTS


# Singleton instance
_reconciliation_service: Optional[ReconciliationService] = None


def get_reconciliation_service() -> ReconciliationService:
    """Get or create ReconciliationService instance."""
    global _reconciliation_service
    if _reconciliation_service is None:
        _reconciliation_service = ReconciliationService()
    return _reconciliation_service
