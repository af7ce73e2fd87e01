from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime

from cost_basis.config import Settings
from cost_basis.investments.ledger import (
    apply_lot_selections,
    apply_stock_split,
    create_tax_lot,
    open_lots,
    validate_lot_selections,
    validate_transaction,
)
from cost_basis.investments.models import (
    ACQUISITION_TYPES,
    CostBasisMethod,
    GainLossSummary,
    HoldingNotFoundError,
    InvalidTransactionError,
    Investment,
    Portfolio,
    StockTransaction,
    TaxLot,
    TaxLotSelection,
    TxType,
)
from cost_basis.investments.gains import calculate_sale_gain_loss
from cost_basis.investments.selection import resolve_method, select_lots_by_method
from cost_basis.investments.wash_sale import (
    apply_wash_sale_adjustment,
    detect_wash_sale,
    would_trigger_wash_sale,
)

logger = logging.getLogger(__name__)


def new_portfolio(settings: Settings | None = None) -> Portfolio:
    settings = settings or Settings()
    return Portfolio(default_method=resolve_method(settings.default_method))


def create_investment(
    symbol: str,
    lots: tuple[TaxLot, ...],
    transactions: tuple[StockTransaction, ...],
    is_mutual_fund: bool = False,
    name: str | None = None,
    current_price: float | None = None,
    default_method: CostBasisMethod = CostBasisMethod.FIFO,
) -> Investment:
    """Derive an investment's position summary from its lots."""
    active = open_lots(lots)
    total_shares = sum(lot.remaining_shares for lot in active)
    total_cost_basis = sum(
        lot.adjusted_cost_basis * lot.remaining_shares / lot.shares for lot in active
    )
    average_cost = total_cost_basis / total_shares if total_shares > 0 else 0.0

    unrealized = None
    if current_price is not None:
        unrealized = sum(
            (current_price - lot.adjusted_cost_per_share) * lot.remaining_shares
            for lot in active
        )

    return Investment(
        symbol=symbol,
        name=name,
        is_mutual_fund=is_mutual_fund,
        lots=tuple(lots),
        transactions=tuple(transactions),
        total_shares=total_shares,
        total_cost_basis=total_cost_basis,
        average_cost_per_share=average_cost,
        current_price=current_price,
        unrealized_gain_loss=unrealized,
        default_method=CostBasisMethod.AVERAGE_COST if is_mutual_fund else default_method,
    )


def _rebuild(
    investment: Investment,
    lots: tuple[TaxLot, ...],
    transactions: tuple[StockTransaction, ...],
) -> Investment:
    return create_investment(
        investment.symbol,
        lots,
        transactions,
        is_mutual_fund=investment.is_mutual_fund,
        name=investment.name,
        current_price=investment.current_price,
        default_method=investment.default_method,
    )


def _with_investment(portfolio: Portfolio, investment: Investment) -> Portfolio:
    return replace(
        portfolio,
        investments={**portfolio.investments, investment.symbol: investment},
        last_updated=datetime.now(),
    )


def _get_investment(portfolio: Portfolio, symbol: str) -> Investment:
    investment = portfolio.investments.get(symbol)
    if investment is None:
        raise HoldingNotFoundError(f"No holdings found for symbol {symbol}")
    return investment


def _require_type(tx: StockTransaction, *allowed: TxType) -> None:
    if tx.tx_type not in allowed:
        names = ", ".join(t.value for t in allowed)
        raise InvalidTransactionError(f"{tx.tx_id}: expected {names}, got {tx.tx_type.value}")


def add_investment(
    portfolio: Portfolio,
    symbol: str,
    name: str | None = None,
    is_mutual_fund: bool = False,
    current_price: float | None = None,
) -> Portfolio:
    """Declare an investment's metadata, keeping any lots it already has."""
    existing = portfolio.investments.get(symbol)
    investment = create_investment(
        symbol,
        existing.lots if existing else (),
        existing.transactions if existing else (),
        is_mutual_fund=is_mutual_fund,
        name=name,
        current_price=current_price,
        default_method=portfolio.default_method,
    )
    return _with_investment(portfolio, investment)


def set_current_price(portfolio: Portfolio, symbol: str, price: float) -> Portfolio:
    if not math.isfinite(price) or price < 0:
        raise InvalidTransactionError(f"{symbol}: invalid market price {price!r}")
    investment = _get_investment(portfolio, symbol)
    updated = replace(investment, current_price=price)
    return _with_investment(portfolio, _rebuild(updated, updated.lots, updated.transactions))


def process_buy(portfolio: Portfolio, tx: StockTransaction) -> Portfolio:
    validate_transaction(tx)
    _require_type(tx, *ACQUISITION_TYPES)

    lot = create_tax_lot(tx)
    investment = portfolio.investments.get(tx.symbol)

    if investment is None:
        return _with_investment(portfolio, create_investment(
            tx.symbol, (lot,), (tx,), default_method=portfolio.default_method,
        ))

    warning = would_trigger_wash_sale(tx.symbol, tx.trade_date, investment.transactions)
    if warning.would_trigger:
        logger.warning(
            "Purchase %s of %s on %s falls within the wash sale window of %d losing sale(s)",
            tx.tx_id, tx.symbol, tx.trade_date, len(warning.affected_sales),
        )

    return _with_investment(portfolio, _rebuild(
        investment, investment.lots + (lot,), investment.transactions + (tx,),
    ))


def process_sell(
    portfolio: Portfolio,
    tx: StockTransaction,
    selections: list[TaxLotSelection] | tuple[TaxLotSelection, ...] | None = None,
    method: CostBasisMethod | str | None = None,
) -> Portfolio:
    """Record a sale: pick lots, price the gain, and apply any wash sale.

    Raises HoldingNotFoundError when the symbol has no investment,
    InvalidOperationError for a Specific-ID sale without selections, and
    InvalidTransactionError when given selections don't cover the sale.
    """
    validate_transaction(tx)
    _require_type(tx, TxType.SELL)

    investment = _get_investment(portfolio, tx.symbol)
    sell_method = resolve_method(method) if method is not None else investment.default_method

    if selections is None:
        selections = select_lots_by_method(investment.lots, tx.shares, sell_method)
    else:
        selections = tuple(selections)
        validate_lot_selections(investment.lots, selections, tx)
    selections = tuple(selections)

    proceeds = tx.price_per_share * tx.shares - tx.fees
    result = calculate_sale_gain_loss(
        investment.lots, selections, tx.trade_date, proceeds, sell_method,
    )

    priced = replace(
        tx,
        proceeds=proceeds,
        cost_basis=result.cost_basis,
        gain_loss=result.total_gain,
        is_short_term=result.short_term_cost_basis > 0 and result.long_term_cost_basis == 0,
        lot_selections=selections,
    )

    # Replacement is measured against holdings as they stood before the sale
    wash = detect_wash_sale(priced, investment.transactions + (priced,), investment.lots)
    lots = apply_lot_selections(investment.lots, selections)

    annotated = replace(
        priced,
        is_wash_sale=wash.is_wash_sale,
        wash_sale_disallowed_loss=wash.disallowed_loss,
        wash_sale_lot_id=wash.matching_lot_id,
    )

    if wash.is_wash_sale and wash.matching_lot_id:
        logger.info(
            "Wash sale on %s %s: %.2f loss disallowed, moved to lot %s",
            tx.symbol, tx.trade_date, wash.disallowed_loss, wash.matching_lot_id,
        )
        lots = apply_wash_sale_adjustment(lots, wash.matching_lot_id, wash.disallowed_loss)

    return _with_investment(portfolio, _rebuild(
        investment, lots, investment.transactions + (annotated,),
    ))


def process_split(portfolio: Portfolio, tx: StockTransaction) -> Portfolio:
    validate_transaction(tx)
    _require_type(tx, TxType.STOCK_SPLIT)

    investment = portfolio.investments.get(tx.symbol)
    if investment is None:
        logger.warning("Ignoring split for %s: no holdings", tx.symbol)
        return portfolio

    lots = apply_stock_split(investment.lots, tx.symbol, tx.split_ratio)
    return _with_investment(portfolio, _rebuild(
        investment, lots, investment.transactions + (tx,),
    ))


_TX_HANDLERS = {
    TxType.BUY: process_buy,
    TxType.DIVIDEND_REINVESTMENT: process_buy,
    TxType.SELL: process_sell,
    TxType.STOCK_SPLIT: process_split,
}


def process_transaction(portfolio: Portfolio, tx: StockTransaction) -> Portfolio:
    return _TX_HANDLERS[tx.tx_type](portfolio, tx)


def build_portfolio(
    transactions,
    portfolio: Portfolio | None = None,
) -> Portfolio:
    """Replay transactions chronologically; sells use each investment's default method."""
    portfolio = portfolio or new_portfolio()
    for tx in sorted(transactions, key=lambda t: t.trade_date):
        portfolio = process_transaction(portfolio, tx)
    return portfolio


def calculate_gain_loss_summary(transactions, tax_year: int) -> GainLossSummary:
    """Total a tax year's sells into short- and long-term buckets."""
    st_proceeds = st_cost = st_gain = st_wash = 0.0
    lt_proceeds = lt_cost = lt_gain = lt_wash = 0.0

    for tx in transactions:
        if tx.tx_type != TxType.SELL or tx.trade_date.year != tax_year:
            continue
        if tx.is_short_term:
            st_proceeds += tx.proceeds or 0.0
            st_cost += tx.cost_basis or 0.0
            st_gain += tx.gain_loss or 0.0
            st_wash += tx.wash_sale_disallowed_loss
        else:
            lt_proceeds += tx.proceeds or 0.0
            lt_cost += tx.cost_basis or 0.0
            lt_gain += tx.gain_loss or 0.0
            lt_wash += tx.wash_sale_disallowed_loss

    return GainLossSummary(
        short_term_proceeds=st_proceeds,
        short_term_cost_basis=st_cost,
        short_term_gain_loss=st_gain,
        short_term_wash_sale_adjustment=st_wash,
        long_term_proceeds=lt_proceeds,
        long_term_cost_basis=lt_cost,
        long_term_gain_loss=lt_gain,
        long_term_wash_sale_adjustment=lt_wash,
    )


def portfolio_gain_loss_summary(portfolio: Portfolio, tax_year: int) -> GainLossSummary:
    summary = GainLossSummary()
    for investment in portfolio.investments.values():
        summary = summary + calculate_gain_loss_summary(investment.transactions, tax_year)
    return summary
