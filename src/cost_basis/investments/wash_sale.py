"""Wash sale detection and basis adjustment.

A loss on a sale is disallowed when substantially identical shares are
bought within 30 days before or after it. The disallowed amount moves onto
the replacement lot's adjusted cost basis instead of being deducted.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta

from cost_basis.config import WASH_SALE_WINDOW_DAYS
from cost_basis.investments.gains import days_between
from cost_basis.investments.models import (
    ACQUISITION_TYPES,
    StockTransaction,
    TaxLot,
    TxType,
    WashSaleInfo,
    WashSaleWarning,
)

logger = logging.getLogger(__name__)


def is_within_wash_sale_window(sale_date: date, purchase_date: date) -> bool:
    return abs(days_between(sale_date, purchase_date)) <= WASH_SALE_WINDOW_DAYS


def _sale_loss(sale: StockTransaction) -> float:
    """Positive loss amount, or zero or less when the sale was not a loss."""
    return (sale.cost_basis or 0.0) - (sale.proceeds or 0.0)


def find_replacement_purchases(
    sale: StockTransaction,
    transactions,
) -> list[StockTransaction]:
    return [
        tx for tx in transactions
        if tx.tx_type in ACQUISITION_TYPES
        and tx.symbol == sale.symbol
        and tx.tx_id != sale.tx_id
        and is_within_wash_sale_window(sale.trade_date, tx.trade_date)
    ]


def find_replacement_lots(
    sale: StockTransaction,
    transactions,
    lots,
) -> list[TaxLot]:
    purchase_ids = {tx.tx_id for tx in find_replacement_purchases(sale, transactions)}
    return [
        lot for lot in lots
        if lot.source_tx_id in purchase_ids and lot.remaining_shares > 0
    ]


def _match_rank(sale_date: date, lot: TaxLot) -> tuple[int, int]:
    offset = days_between(sale_date, lot.purchase_date)
    # Purchases on or after the sale date first, then nearest in time
    return (0 if offset >= 0 else 1, abs(offset))


def detect_wash_sale(
    sale: StockTransaction,
    transactions,
    lots,
) -> WashSaleInfo:
    """Decide whether a sale is a wash sale and how much loss is disallowed.

    sale must already carry proceeds and cost_basis. transactions is the full
    history for the symbol including the sale itself.
    """
    loss = _sale_loss(sale)
    if loss <= 0:
        return WashSaleInfo(
            is_wash_sale=False,
            disallowed_loss=0.0,
            wash_sale_date=sale.trade_date,
            replacement_date=sale.trade_date,
        )

    candidates = find_replacement_lots(sale, transactions, lots)
    if not candidates:
        return WashSaleInfo(
            is_wash_sale=False,
            disallowed_loss=0.0,
            wash_sale_date=sale.trade_date,
            replacement_date=sale.trade_date,
        )

    # min() keeps the first of equally ranked lots, matching a stable sort
    match = min(candidates, key=lambda lot: _match_rank(sale.trade_date, lot))

    shares_replaced = min(sale.shares, match.remaining_shares)
    proportional_loss = loss * shares_replaced / sale.shares
    disallowed = min(loss, proportional_loss)

    return WashSaleInfo(
        is_wash_sale=True,
        disallowed_loss=disallowed,
        wash_sale_date=sale.trade_date,
        replacement_date=match.purchase_date,
        matching_lot_id=match.lot_id,
    )


def apply_wash_sale_adjustment(
    lots: tuple[TaxLot, ...],
    lot_id: str,
    amount: float,
) -> tuple[TaxLot, ...]:
    # Cumulative: a lot can absorb several wash sales over its life
    return tuple(
        replace(
            lot,
            adjusted_cost_basis=lot.adjusted_cost_basis + amount,
            wash_sale_adjustment=lot.wash_sale_adjustment + amount,
        )
        if lot.lot_id == lot_id else lot
        for lot in lots
    )


def would_trigger_wash_sale(
    symbol: str,
    purchase_date: date,
    recent_transactions,
) -> WashSaleWarning:
    """Check whether buying symbol on purchase_date lands in a losing sale's window."""
    affected = tuple(
        tx for tx in recent_transactions
        if tx.tx_type == TxType.SELL
        and tx.symbol == symbol
        and _sale_loss(tx) > 0
        and is_within_wash_sale_window(tx.trade_date, purchase_date)
    )
    return WashSaleWarning(would_trigger=bool(affected), affected_sales=affected)


def calculate_wash_sale_losses(transactions, tax_year: int) -> float:
    return sum(
        tx.wash_sale_disallowed_loss
        for tx in transactions
        if tx.tx_type == TxType.SELL
        and tx.trade_date.year == tax_year
        and tx.is_wash_sale
    )


def wash_sale_holding_period_start(
    original_purchase_date: date,
    replacement_purchase_date: date,
    sale_date: date,
) -> date:
    """Start of the replacement shares' holding period.

    The replacement inherits the days the sold shares were held, so its
    holding period starts that many days before its own purchase.
    """
    held = days_between(original_purchase_date, sale_date)
    return replacement_purchase_date - timedelta(days=held)
