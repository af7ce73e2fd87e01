from __future__ import annotations

import logging
from datetime import date

import pyxirr

from cost_basis.investments.models import ACQUISITION_TYPES, Portfolio, TxType

logger = logging.getLogger(__name__)


def investment_xirr(
    transactions,
    current_value: float,
    as_of_date: date,
) -> float | None:
    """Money-weighted annual return of a position from its own cash flows.

    Purchases are outflows at shares * price + fees, sells are inflows at
    their recorded proceeds, and the position's current value closes the
    series on as_of_date.
    """
    dates = []
    amounts = []

    for tx in transactions:
        if tx.tx_type in ACQUISITION_TYPES:
            amount = -(tx.shares * tx.price_per_share + tx.fees)
        elif tx.tx_type == TxType.SELL:
            amount = tx.proceeds if tx.proceeds is not None else tx.shares * tx.price_per_share - tx.fees
        else:
            continue
        dates.append(tx.trade_date)
        amounts.append(amount)

    if not dates:
        return None

    dates.append(as_of_date)
    amounts.append(current_value)

    try:
        return pyxirr.xirr(dates, amounts)
    except Exception:
        logger.debug("XIRR did not converge for %d cash flows", len(amounts))
        return None


def total_return(current_value: float, total_cost_basis: float) -> float | None:
    if total_cost_basis == 0:
        return None
    return (current_value - total_cost_basis) / total_cost_basis


def current_allocation(portfolio: Portfolio) -> dict[str, float]:
    """Fraction of market value per symbol, for investments with a known price.

    Returns {symbol: fraction} where fractions sum to ~1.0.
    """
    values: dict[str, float] = {}
    for symbol, inv in portfolio.investments.items():
        if inv.current_price is None or inv.total_shares <= 0:
            continue
        values[symbol] = inv.total_shares * inv.current_price

    total = sum(values.values())
    if total == 0:
        return {}
    return {sym: val / total for sym, val in values.items()}
