from __future__ import annotations

import logging
import math
import uuid
from dataclasses import replace

from cost_basis.config import SHARE_EPSILON
from cost_basis.investments.models import (
    InvalidTransactionError,
    StockTransaction,
    TaxLot,
    TaxLotSelection,
    TxType,
)

logger = logging.getLogger(__name__)


def _check_finite(tx: StockTransaction, name: str, value: float | None) -> None:
    if value is not None and not math.isfinite(value):
        raise InvalidTransactionError(f"{tx.tx_id}: {name} is not a finite number ({value!r})")


def validate_transaction(tx: StockTransaction) -> None:
    """Reject transactions whose numbers would silently produce a wrong ledger."""
    if not tx.symbol:
        raise InvalidTransactionError(f"{tx.tx_id}: missing symbol")
    for name in ("shares", "price_per_share", "fees", "split_ratio"):
        _check_finite(tx, name, getattr(tx, name))

    if tx.tx_type == TxType.STOCK_SPLIT:
        if tx.split_ratio is None or tx.split_ratio <= 0:
            raise InvalidTransactionError(
                f"{tx.tx_id}: split ratio must be positive, got {tx.split_ratio!r}"
            )
        return

    if tx.shares <= 0:
        raise InvalidTransactionError(f"{tx.tx_id}: shares must be positive, got {tx.shares}")
    if tx.price_per_share < 0:
        raise InvalidTransactionError(
            f"{tx.tx_id}: price per share cannot be negative, got {tx.price_per_share}"
        )
    if tx.fees < 0:
        raise InvalidTransactionError(f"{tx.tx_id}: fees cannot be negative, got {tx.fees}")


def calculate_lot_cost_basis(shares: float, cost_per_share: float, fees: float) -> float:
    return shares * cost_per_share + fees


def new_lot_id() -> str:
    return uuid.uuid4().hex[:12]


def create_tax_lot(tx: StockTransaction) -> TaxLot:
    total_cost = calculate_lot_cost_basis(tx.shares, tx.price_per_share, tx.fees)
    return TaxLot(
        lot_id=new_lot_id(),
        symbol=tx.symbol,
        purchase_date=tx.trade_date,
        shares=tx.shares,
        cost_per_share=tx.price_per_share,
        fees=tx.fees,
        total_cost=total_cost,
        remaining_shares=tx.shares,
        adjusted_cost_basis=total_cost,
        wash_sale_adjustment=0.0,
        source_tx_id=tx.tx_id,
    )


def open_lots(lots: tuple[TaxLot, ...] | list[TaxLot]) -> list[TaxLot]:
    return [lot for lot in lots if lot.remaining_shares > 0]


def find_lot(lots: tuple[TaxLot, ...] | list[TaxLot], lot_id: str) -> TaxLot | None:
    for lot in lots:
        if lot.lot_id == lot_id:
            return lot
    return None


def validate_lot_selections(
    lots: tuple[TaxLot, ...] | list[TaxLot],
    selections: tuple[TaxLotSelection, ...] | list[TaxLotSelection],
    tx: StockTransaction,
) -> None:
    """Reject caller-chosen selections that don't add up to the sale.

    Every selection must name a known lot and a positive quantity, no lot may
    be drawn below zero, and the quantities must total the sale's shares.
    """
    by_id = {lot.lot_id: lot for lot in lots}
    drawn: dict[str, float] = {}
    for sel in selections:
        if sel.lot_id not in by_id:
            raise InvalidTransactionError(f"{tx.tx_id}: unknown lot {sel.lot_id}")
        if not math.isfinite(sel.shares_from_lot) or sel.shares_from_lot <= 0:
            raise InvalidTransactionError(
                f"{tx.tx_id}: shares from lot {sel.lot_id} must be positive, got {sel.shares_from_lot}"
            )
        drawn[sel.lot_id] = drawn.get(sel.lot_id, 0.0) + sel.shares_from_lot

    for lot_id, shares in drawn.items():
        available = by_id[lot_id].remaining_shares
        if shares > available + SHARE_EPSILON:
            raise InvalidTransactionError(
                f"{tx.tx_id}: lot {lot_id} has {available} shares, {shares} selected"
            )

    total = sum(drawn.values())
    if abs(total - tx.shares) > SHARE_EPSILON:
        raise InvalidTransactionError(
            f"{tx.tx_id}: selections cover {total} shares, sale is for {tx.shares}"
        )


def apply_lot_selections(
    lots: tuple[TaxLot, ...],
    selections: tuple[TaxLotSelection, ...] | list[TaxLotSelection],
) -> tuple[TaxLot, ...]:
    """Return lots with remaining shares reduced by the sold quantities.

    Lots are never removed; a fully sold lot stays with zero remaining shares.
    """
    sold: dict[str, float] = {}
    for sel in selections:
        sold[sel.lot_id] = sold.get(sel.lot_id, 0.0) + sel.shares_from_lot

    known = {lot.lot_id for lot in lots}
    for lot_id in sold.keys() - known:
        logger.warning("Ignoring selection for unknown lot %s", lot_id)

    return tuple(
        replace(lot, remaining_shares=lot.remaining_shares - sold[lot.lot_id])
        if lot.lot_id in sold else lot
        for lot in lots
    )


def apply_stock_split(
    lots: tuple[TaxLot, ...],
    symbol: str,
    ratio: float,
) -> tuple[TaxLot, ...]:
    # total_cost and adjusted_cost_basis are dollar amounts and survive a split
    return tuple(
        replace(
            lot,
            shares=lot.shares * ratio,
            remaining_shares=lot.remaining_shares * ratio,
            cost_per_share=lot.cost_per_share / ratio,
        )
        if lot.symbol == symbol else lot
        for lot in lots
    )
