import logging
from dataclasses import replace
from datetime import date

import pytest

from cost_basis.investments.models import CostBasisMethod, InvalidOperationError
from cost_basis.investments.selection import (
    calculate_average_cost,
    resolve_method,
    select_lots_by_method,
    select_lots_fifo,
    select_lots_lifo,
)


@pytest.fixture
def three_lots(make_lot):
    # Deliberately out of date order
    lot2, _ = make_lot(trade_date=date(2024, 2, 1), shares=5.0)
    lot1, _ = make_lot(trade_date=date(2024, 1, 1), shares=10.0)
    lot3, _ = make_lot(trade_date=date(2024, 3, 1), shares=8.0)
    return lot1, lot2, lot3


def _pairs(selections):
    return [(s.lot_id, s.shares_from_lot) for s in selections]


def test_fifo_drains_earliest_first(three_lots):
    lot1, lot2, lot3 = three_lots
    selections = select_lots_fifo([lot2, lot1, lot3], 12.0)
    assert _pairs(selections) == [(lot1.lot_id, 10.0), (lot2.lot_id, 2.0)]
    assert sum(s.shares_from_lot for s in selections) == pytest.approx(12.0)


def test_lifo_drains_latest_first(three_lots):
    lot1, lot2, lot3 = three_lots
    selections = select_lots_lifo([lot2, lot1, lot3], 12.0)
    assert _pairs(selections) == [(lot3.lot_id, 8.0), (lot2.lot_id, 4.0)]


def test_closed_lots_are_skipped(three_lots):
    lot1, lot2, lot3 = three_lots
    closed = replace(lot1, remaining_shares=0.0)
    selections = select_lots_fifo([closed, lot2, lot3], 3.0)
    assert _pairs(selections) == [(lot2.lot_id, 3.0)]


def test_over_request_returns_partial_and_warns(three_lots, caplog):
    with caplog.at_level(logging.WARNING):
        selections = select_lots_fifo(list(three_lots), 30.0)
    assert sum(s.shares_from_lot for s in selections) == pytest.approx(23.0)
    assert "Insufficient shares" in caplog.text


def test_average_cost_identifies_lots_fifo(three_lots):
    lot1, lot2, lot3 = three_lots
    selections = select_lots_by_method([lot3, lot2, lot1], 11.0, CostBasisMethod.AVERAGE_COST)
    assert _pairs(selections) == [(lot1.lot_id, 10.0), (lot2.lot_id, 1.0)]


def test_by_method_lifo(three_lots):
    lot1, lot2, lot3 = three_lots
    selections = select_lots_by_method(list(three_lots), 1.0, "lifo")
    assert _pairs(selections) == [(lot3.lot_id, 1.0)]


def test_specific_id_requires_manual_selection(three_lots):
    with pytest.raises(InvalidOperationError):
        select_lots_by_method(list(three_lots), 1.0, CostBasisMethod.SPECIFIC_ID)


def test_unknown_method_falls_back_to_fifo(three_lots, caplog):
    lot1, _, _ = three_lots
    with caplog.at_level(logging.WARNING):
        selections = select_lots_by_method(list(three_lots), 1.0, "HIFO")
    assert _pairs(selections) == [(lot1.lot_id, 1.0)]
    assert "Unsupported cost basis method" in caplog.text


def test_resolve_method():
    assert resolve_method(CostBasisMethod.LIFO) is CostBasisMethod.LIFO
    assert resolve_method(" average_cost ") is CostBasisMethod.AVERAGE_COST
    assert resolve_method("bogus") is CostBasisMethod.FIFO


def test_average_cost_weighted_by_remaining(make_lot):
    lot1, _ = make_lot(shares=50.0, price_per_share=10.0)
    lot2, _ = make_lot(shares=80.0, price_per_share=11.0)
    # 500 + 880 over 130 shares
    assert calculate_average_cost([lot1, lot2]) == pytest.approx(1380.0 / 130.0)


def test_average_cost_partially_sold_lot(make_lot):
    lot1, _ = make_lot(shares=10.0, price_per_share=10.0)
    lot2, _ = make_lot(shares=10.0, price_per_share=20.0)
    lot1 = replace(lot1, remaining_shares=5.0)
    # (100 * 5/10 + 200) / 15
    assert calculate_average_cost([lot1, lot2]) == pytest.approx(250.0 / 15.0)


def test_average_cost_no_open_lots():
    assert calculate_average_cost([]) == 0.0
