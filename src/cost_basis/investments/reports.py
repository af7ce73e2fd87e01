from __future__ import annotations

import pandas as pd

from cost_basis.investments.ledger import find_lot
from cost_basis.investments.models import TxType

_LOT_COLUMNS = [
    "lot_id", "symbol", "purchase_date", "shares", "remaining_shares",
    "cost_per_share", "fees", "total_cost", "adjusted_cost_basis",
    "wash_sale_adjustment", "source_tx_id",
]

_SALE_COLUMNS = [
    "tx_id", "symbol", "trade_date", "shares", "proceeds", "cost_basis",
    "gain_loss", "term", "is_wash_sale", "wash_sale_disallowed_loss",
]

_WASH_SALE_COLUMNS = [
    "sale_date", "symbol", "shares", "proceeds_per_share", "cost_basis_per_share",
    "loss_per_share", "disallowed_loss_per_share", "replacement_date",
    "adjusted_basis_per_share",
]


def lots_frame(lots) -> pd.DataFrame:
    if not lots:
        return pd.DataFrame(columns=_LOT_COLUMNS)
    return pd.DataFrame([{col: getattr(lot, col) for col in _LOT_COLUMNS} for lot in lots])


def _sales(transactions, tax_year: int | None):
    for tx in transactions:
        if tx.tx_type != TxType.SELL:
            continue
        if tax_year is not None and tx.trade_date.year != tax_year:
            continue
        yield tx


def realized_sales_frame(transactions, tax_year: int | None = None) -> pd.DataFrame:
    """One row per sell, in the shape of a capital-gains worksheet."""
    rows = [
        {
            "tx_id": tx.tx_id,
            "symbol": tx.symbol,
            "trade_date": tx.trade_date,
            "shares": tx.shares,
            "proceeds": tx.proceeds,
            "cost_basis": tx.cost_basis,
            "gain_loss": tx.gain_loss,
            "term": "short" if tx.is_short_term else "long",
            "is_wash_sale": tx.is_wash_sale,
            "wash_sale_disallowed_loss": tx.wash_sale_disallowed_loss,
        }
        for tx in _sales(transactions, tax_year)
    ]
    if not rows:
        return pd.DataFrame(columns=_SALE_COLUMNS)
    return pd.DataFrame(rows, columns=_SALE_COLUMNS).sort_values("trade_date", ignore_index=True)


def wash_sale_report(transactions, lots, tax_year: int) -> pd.DataFrame:
    """Per-share detail of each wash sale in the tax year.

    The replacement lot is the one the disallowed loss was moved onto; when
    it can't be found, the sale date and a zero basis stand in.
    """
    rows = []
    for sale in _sales(transactions, tax_year):
        if not sale.is_wash_sale:
            continue
        proceeds = sale.proceeds or 0.0
        cost_basis = sale.cost_basis or 0.0
        replacement = find_lot(lots, sale.wash_sale_lot_id) if sale.wash_sale_lot_id else None
        rows.append({
            "sale_date": sale.trade_date,
            "symbol": sale.symbol,
            "shares": sale.shares,
            "proceeds_per_share": sale.price_per_share,
            "cost_basis_per_share": cost_basis / sale.shares,
            "loss_per_share": (cost_basis - proceeds) / sale.shares,
            "disallowed_loss_per_share": sale.wash_sale_disallowed_loss / sale.shares,
            "replacement_date": replacement.purchase_date if replacement else sale.trade_date,
            "adjusted_basis_per_share": replacement.adjusted_cost_per_share if replacement else 0.0,
        })
    if not rows:
        return pd.DataFrame(columns=_WASH_SALE_COLUMNS)
    return pd.DataFrame(rows, columns=_WASH_SALE_COLUMNS)
