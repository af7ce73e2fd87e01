from __future__ import annotations

import logging

from cost_basis.config import SHARE_EPSILON
from cost_basis.investments.ledger import open_lots
from cost_basis.investments.models import (
    CostBasisMethod,
    InvalidOperationError,
    TaxLot,
    TaxLotSelection,
)

logger = logging.getLogger(__name__)


def resolve_method(method: CostBasisMethod | str | None) -> CostBasisMethod:
    """Coerce a method name to CostBasisMethod, falling back to FIFO."""
    if isinstance(method, CostBasisMethod):
        return method
    try:
        return CostBasisMethod(str(method).strip().upper())
    except ValueError:
        logger.warning("Unsupported cost basis method %r, using FIFO", method)
        return CostBasisMethod.FIFO


def sort_lots_by_date_asc(lots: list[TaxLot]) -> list[TaxLot]:
    return sorted(lots, key=lambda lot: lot.purchase_date)


def sort_lots_by_date_desc(lots: list[TaxLot]) -> list[TaxLot]:
    return sorted(lots, key=lambda lot: lot.purchase_date, reverse=True)


def _select_from_sorted(sorted_lots: list[TaxLot], shares_to_sell: float) -> list[TaxLotSelection]:
    selections: list[TaxLotSelection] = []
    remaining = shares_to_sell

    for lot in sorted_lots:
        if remaining <= 0:
            break
        taken = min(lot.remaining_shares, remaining)
        selections.append(TaxLotSelection(lot_id=lot.lot_id, shares_from_lot=taken))
        remaining -= taken

    if remaining > SHARE_EPSILON:
        symbol = sorted_lots[0].symbol if sorted_lots else "?"
        logger.warning(
            "Insufficient shares for SELL: %s, short %.6f shares", symbol, remaining,
        )
    return selections


def select_lots_fifo(lots, shares_to_sell: float) -> list[TaxLotSelection]:
    return _select_from_sorted(sort_lots_by_date_asc(open_lots(lots)), shares_to_sell)


def select_lots_lifo(lots, shares_to_sell: float) -> list[TaxLotSelection]:
    return _select_from_sorted(sort_lots_by_date_desc(open_lots(lots)), shares_to_sell)


def select_lots_by_method(
    lots,
    shares_to_sell: float,
    method: CostBasisMethod | str,
) -> list[TaxLotSelection]:
    """Pick lots to cover a sale automatically.

    Average cost still identifies lots in FIFO order for record-keeping; its
    cost is priced separately from the pooled average. Specific-ID has no
    automatic order and needs the caller's own selections.
    """
    method = resolve_method(method)
    if method == CostBasisMethod.SPECIFIC_ID:
        raise InvalidOperationError("Specific ID method requires manual lot selection")
    if method == CostBasisMethod.LIFO:
        return select_lots_lifo(lots, shares_to_sell)
    return select_lots_fifo(lots, shares_to_sell)


def calculate_average_cost(lots) -> float:
    """Weighted average adjusted cost per share over the open lots."""
    active = open_lots(lots)
    total_shares = sum(lot.remaining_shares for lot in active)
    if total_shares <= 0:
        return 0.0
    total_cost = sum(
        lot.adjusted_cost_basis * lot.remaining_shares / lot.shares for lot in active
    )
    return total_cost / total_shares
