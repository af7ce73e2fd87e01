from __future__ import annotations

from datetime import date

from cost_basis.config import LONG_TERM_HOLDING_PERIOD_DAYS
from cost_basis.investments.ledger import find_lot, open_lots
from cost_basis.investments.models import (
    CostBasisMethod,
    SaleGainLoss,
    TaxLotPreview,
    TaxLotSelection,
    UnrealizedGains,
)
from cost_basis.investments.selection import (
    calculate_average_cost,
    resolve_method,
    sort_lots_by_date_asc,
)


def days_between(start: date, end: date) -> int:
    """Signed whole days from start to end."""
    return (end - start).days


def is_long_term_holding(purchase_date: date, sale_date: date) -> bool:
    # Strictly more than 365 days; a lot held exactly 365 days is short-term
    return days_between(purchase_date, sale_date) > LONG_TERM_HOLDING_PERIOD_DAYS


def calculate_sale_cost_basis(
    lots,
    selections: list[TaxLotSelection] | tuple[TaxLotSelection, ...],
    method: CostBasisMethod | str,
) -> float:
    if resolve_method(method) == CostBasisMethod.AVERAGE_COST:
        return calculate_average_cost(lots) * sum(s.shares_from_lot for s in selections)

    total = 0.0
    for sel in selections:
        lot = find_lot(lots, sel.lot_id)
        if lot is None:
            continue
        total += lot.adjusted_cost_per_share * sel.shares_from_lot
    return total


def calculate_sale_gain_loss(
    lots,
    selections: list[TaxLotSelection] | tuple[TaxLotSelection, ...],
    sale_date: date,
    proceeds: float,
    method: CostBasisMethod | str,
) -> SaleGainLoss:
    """Split a sale's proceeds and cost basis into short- and long-term buckets.

    Under average cost the whole sale lands in a single bucket chosen by the
    oldest open lot's holding period. Otherwise each selected lot is priced at
    its adjusted basis per original share and bucketed by its own holding
    period. Proceeds follow shares, since one sale has one price per share.
    """
    st_cost = st_shares = 0.0
    lt_cost = lt_shares = 0.0
    total_shares = sum(s.shares_from_lot for s in selections)

    if resolve_method(method) == CostBasisMethod.AVERAGE_COST:
        cost = calculate_average_cost(lots) * total_shares
        active = sort_lots_by_date_asc(open_lots(lots))
        if active and is_long_term_holding(active[0].purchase_date, sale_date):
            lt_cost, lt_shares = cost, total_shares
        else:
            st_cost, st_shares = cost, total_shares
    else:
        for sel in selections:
            lot = find_lot(lots, sel.lot_id)
            if lot is None:
                continue
            cost = lot.adjusted_cost_per_share * sel.shares_from_lot
            if is_long_term_holding(lot.purchase_date, sale_date):
                lt_cost += cost
                lt_shares += sel.shares_from_lot
            else:
                st_cost += cost
                st_shares += sel.shares_from_lot

    st_proceeds = proceeds * st_shares / total_shares if total_shares > 0 else 0.0
    lt_proceeds = proceeds * lt_shares / total_shares if total_shares > 0 else 0.0
    st_gain = st_proceeds - st_cost
    lt_gain = lt_proceeds - lt_cost

    return SaleGainLoss(
        short_term_proceeds=st_proceeds,
        short_term_cost_basis=st_cost,
        short_term_gain=st_gain,
        long_term_proceeds=lt_proceeds,
        long_term_cost_basis=lt_cost,
        long_term_gain=lt_gain,
        total_gain=st_gain + lt_gain,
    )


def calculate_unrealized_gains(
    lots,
    current_price: float,
    as_of: date | None = None,
) -> UnrealizedGains:
    as_of = as_of or date.today()
    short_term = long_term = 0.0
    for lot in open_lots(lots):
        gain = (current_price - lot.adjusted_cost_per_share) * lot.remaining_shares
        if is_long_term_holding(lot.purchase_date, as_of):
            long_term += gain
        else:
            short_term += gain
    return UnrealizedGains(short_term=short_term, long_term=long_term)


def get_tax_lot_previews(
    lots,
    current_price: float,
    as_of: date | None = None,
) -> list[TaxLotPreview]:
    """Describe each open lot for sale planning."""
    as_of = as_of or date.today()
    previews = []
    for lot in open_lots(lots):
        days_held = days_between(lot.purchase_date, as_of)
        long_term = days_held > LONG_TERM_HOLDING_PERIOD_DAYS
        previews.append(TaxLotPreview(
            lot=lot,
            is_long_term=long_term,
            unrealized_gain=(current_price - lot.adjusted_cost_per_share) * lot.remaining_shares,
            days_held=days_held,
            days_until_long_term=0 if long_term else LONG_TERM_HOLDING_PERIOD_DAYS - days_held + 1,
        ))
    return previews
