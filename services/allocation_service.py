"""
Allocation service - live clamping of bill quantities.

While a driver edits a bill, each product has a pending box quantity and a
pending piece quantity. Together they may never need more pieces than the
product has left. Requests over the limit are clamped silently; the
accepted value is what the billing form must display.

Remaining stock comes from reconciliation of the sales saved so far and
never includes the bill being edited.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

import structlog

from exceptions import NoStockLoadedError, ProductNotFoundError
from models.allocation import AllocationRequest, AllocationResponse, DraftLine
from models.product import SaleUnit
from models.reconciliation import ReconciliationResult
from models.sales import SaleLineCreate, SaleRecordCreate
from services.unit_config_service import pair_to_pieces, to_pieces

logger = structlog.get_logger(__name__)


def compute_max_allowed(
    remaining_box: int,
    remaining_pcs: int,
    pieces_per_box: int,
    unit: Union[SaleUnit, str],
    other_pending: int
) -> int:
    """
    Largest quantity of ``unit`` that fits next to the other unit's pending quantity.

    Example: 2 boxes + 10 pcs left at 24 per box, 5 pcs pending
    -> (58 - 5) // 24 = 2 boxes.

    Args:
        remaining_box: Boxes left before this bill
        remaining_pcs: Loose pieces left before this bill
        pieces_per_box: Product ratio
        unit: Unit being edited
        other_pending: Pending quantity in the other unit, in that unit

    Returns:
        Non-negative maximum for ``unit``

    Raises:
        InvalidRatioError: If pieces_per_box <= 0
    """
    unit = SaleUnit(unit)
    total_remaining = pair_to_pieces(remaining_box, remaining_pcs, pieces_per_box)
    other_pieces = to_pieces(other_pending, unit.other, pieces_per_box)
    available = total_remaining - other_pieces

    if available <= 0:
        return 0
    if unit is SaleUnit.BOX:
        return available // pieces_per_box
    return available


def clamp_quantity(requested: int, max_allowed: int) -> int:
    """Clamp a requested quantity to [0, max_allowed]."""
    return max(0, min(requested, max_allowed))


def clamp_allocation(request: AllocationRequest) -> AllocationResponse:
    """Stateless clamp for one edited unit."""
    other_pending = (
        request.pending_pcs if request.unit is SaleUnit.BOX else request.pending_box
    )
    max_allowed = compute_max_allowed(
        request.remaining_box,
        request.remaining_pcs,
        request.pieces_per_box,
        request.unit,
        other_pending,
    )
    accepted = clamp_quantity(request.requested_quantity, max_allowed)
    return AllocationResponse(
        unit=request.unit,
        requested_quantity=request.requested_quantity,
        accepted_quantity=accepted,
        max_allowed=max_allowed,
        clamped=accepted != request.requested_quantity,
    )


def _safe_price(price) -> Decimal:
    """Price as Decimal; negative, non-finite or unparseable values become 0."""
    try:
        value = Decimal(str(price))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal("0")
    if not value.is_finite() or value < 0:
        return Decimal("0")
    return value


@dataclass
class ProductAllocation:
    """Remaining stock and pending bill quantities for one product."""
    product_id: str
    product_name: str
    pieces_per_box: int
    remaining_box: int
    remaining_pcs: int
    box_price: Decimal = Decimal("0")
    pcs_price: Decimal = Decimal("0")
    pending_box: int = 0
    pending_pcs: int = 0

    def pending(self, unit: SaleUnit) -> int:
        return self.pending_box if unit is SaleUnit.BOX else self.pending_pcs

    def set_pending(self, unit: SaleUnit, quantity: int) -> None:
        if unit is SaleUnit.BOX:
            self.pending_box = quantity
        else:
            self.pending_pcs = quantity

    def price(self, unit: SaleUnit) -> Decimal:
        return self.box_price if unit is SaleUnit.BOX else self.pcs_price

    def set_price(self, unit: SaleUnit, price: Decimal) -> None:
        if unit is SaleUnit.BOX:
            self.box_price = price
        else:
            self.pcs_price = price

    def max_allowed(self, unit: SaleUnit) -> int:
        return compute_max_allowed(
            self.remaining_box,
            self.remaining_pcs,
            self.pieces_per_box,
            unit,
            self.pending(unit.other),
        )


@dataclass
class SaleDraft:
    """
    A bill being edited.

    Core methods:
    - set_quantity / adjust_quantity: clamped quantity edits
    - set_price: per-unit price override for this bill
    - lines / total: what would be recorded
    - reset: clear quantities after the bill is saved

    ``stock_loaded`` is false when the day has no stock load, so empty
    allocations are not mistaken for a sold-out truck.
    """
    route_id: str
    sale_date: date
    stock_loaded: bool = True
    allocations: dict[str, ProductAllocation] = field(default_factory=dict)

    @classmethod
    def from_reconciliation(cls, result: ReconciliationResult) -> "SaleDraft":
        """Draft seeded with every reconciled product's remaining stock and price."""
        allocations = {
            position.product_id: ProductAllocation(
                product_id=position.product_id,
                product_name=position.product_name,
                pieces_per_box=position.pieces_per_box,
                remaining_box=position.remaining_box,
                remaining_pcs=position.remaining_pcs,
                box_price=position.box_price or Decimal("0"),
                pcs_price=position.pcs_price or Decimal("0"),
            )
            for position in result.positions
        }
        return cls(
            route_id=result.route_id,
            sale_date=result.load_date,
            stock_loaded=result.stock_loaded,
            allocations=allocations,
        )

    def _get(self, product_id: str) -> ProductAllocation:
        allocation = self.allocations.get(product_id)
        if allocation is None:
            raise ProductNotFoundError(product_id)
        return allocation

    def set_quantity(
        self,
        product_id: str,
        unit: Union[SaleUnit, str],
        requested: int
    ) -> int:
        """
        Set a pending quantity, clamped to what is left.

        Returns:
            The accepted quantity, which is also the new pending value
        """
        unit = SaleUnit(unit)
        allocation = self._get(product_id)

        accepted = clamp_quantity(requested, allocation.max_allowed(unit))
        allocation.set_pending(unit, accepted)
        if accepted != requested:
            logger.debug(
                "draft_quantity_clamped",
                product_id=product_id,
                unit=unit.value,
                requested=requested,
                accepted=accepted
            )

        self._reclamp(allocation, unit.other)
        return accepted

    def adjust_quantity(
        self,
        product_id: str,
        unit: Union[SaleUnit, str],
        delta: int
    ) -> int:
        """Step a pending quantity up or down (the +/- buttons)."""
        unit = SaleUnit(unit)
        current = self._get(product_id).pending(unit)
        return self.set_quantity(product_id, unit, current + delta)

    def set_price(
        self,
        product_id: str,
        unit: Union[SaleUnit, str],
        price
    ) -> Decimal:
        """Override the unit price for this bill; returns the stored price."""
        unit = SaleUnit(unit)
        value = _safe_price(price)
        self._get(product_id).set_price(unit, value)
        return value

    def update_remaining(
        self,
        product_id: str,
        remaining_box: int,
        remaining_pcs: int
    ) -> None:
        """
        Apply fresh remaining stock (e.g. after another bill was saved).

        Pending quantities that no longer fit are reduced.
        """
        allocation = self._get(product_id)
        allocation.remaining_box = remaining_box
        allocation.remaining_pcs = remaining_pcs
        self._reclamp(allocation, SaleUnit.PCS)
        self._reclamp(allocation, SaleUnit.BOX)

    def _reclamp(self, allocation: ProductAllocation, unit: SaleUnit) -> None:
        current = allocation.pending(unit)
        limit = allocation.max_allowed(unit)
        if current > limit:
            allocation.set_pending(unit, limit)
            logger.info(
                "draft_quantity_reduced",
                product_id=allocation.product_id,
                unit=unit.value,
                previous=current,
                accepted=limit
            )

    def lines(self) -> list[DraftLine]:
        """Non-zero lines, ordered by product name then box before pcs."""
        result = []
        ordered = sorted(self.allocations.values(), key=lambda a: a.product_name.casefold())
        for allocation in ordered:
            for unit in (SaleUnit.BOX, SaleUnit.PCS):
                quantity = allocation.pending(unit)
                if quantity <= 0:
                    continue
                price = allocation.price(unit)
                result.append(DraftLine(
                    product_id=allocation.product_id,
                    product_name=allocation.product_name,
                    unit=unit,
                    quantity=quantity,
                    unit_price=price,
                    line_total=price * quantity,
                ))
        return result

    def total(self) -> Decimal:
        return sum((line.line_total for line in self.lines()), Decimal("0"))

    def reset(self) -> None:
        """Zero every pending quantity."""
        for allocation in self.allocations.values():
            allocation.pending_box = 0
            allocation.pending_pcs = 0

    def to_sale_record(
        self,
        shop_name: str,
        shop_address: Optional[str] = None,
        shop_phone: Optional[str] = None
    ) -> SaleRecordCreate:
        """
        Bill ready for SalesService.record_sale.

        Raises:
            NoStockLoadedError: If the day has no stock load
            pydantic.ValidationError: If the draft has no lines, a price is
                below 1 or the phone number is invalid
        """
        if not self.stock_loaded:
            raise NoStockLoadedError(self.route_id, self.sale_date.isoformat())
        return SaleRecordCreate(
            route_id=self.route_id,
            sale_date=self.sale_date,
            shop_name=shop_name,
            shop_address=shop_address,
            shop_phone=shop_phone,
            lines=[
                SaleLineCreate(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    unit=line.unit,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in self.lines()
            ],
        )
