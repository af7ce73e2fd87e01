from datetime import date

import pytest

from cost_basis.investments.aggregator import process_buy, process_sell
from cost_basis.investments.models import Portfolio, TxType
from cost_basis.investments.reports import lots_frame, realized_sales_frame, wash_sale_report


@pytest.fixture
def traded(make_tx):
    portfolio = Portfolio()
    for tx in (
        make_tx(symbol="ABC", trade_date=date(2024, 1, 10), shares=100.0,
                price_per_share=10.0, fees=5.0),
        make_tx(symbol="ABC", trade_date=date(2024, 6, 5), shares=100.0, price_per_share=9.0),
        make_tx(symbol="ABC", trade_date=date(2022, 3, 1), shares=10.0, price_per_share=5.0),
    ):
        portfolio = process_buy(portfolio, tx)
    # FIFO takes the 2022 lot first, then 90 shares of the January lot
    portfolio = process_sell(portfolio, make_tx(
        symbol="ABC", tx_type=TxType.SELL, trade_date=date(2024, 6, 1),
        shares=100.0, price_per_share=8.0, fees=5.0,
    ))
    return portfolio.investments["ABC"]


def test_lots_frame(traded):
    df = lots_frame(traded.lots)
    assert len(df) == 3
    assert list(df.columns)[:3] == ["lot_id", "symbol", "purchase_date"]
    assert df["remaining_shares"].sum() == pytest.approx(110.0)


def test_lots_frame_empty():
    df = lots_frame(())
    assert df.empty
    assert "adjusted_cost_basis" in df.columns


def test_realized_sales_frame(traded):
    assert len(realized_sales_frame(traded.transactions)) == 1
    assert realized_sales_frame(traded.transactions, tax_year=2023).empty

    df_2024 = realized_sales_frame(traded.transactions, tax_year=2024)
    assert len(df_2024) == 1
    row = df_2024.iloc[0]
    assert row["proceeds"] == pytest.approx(795.0)
    # Mixed short/long sale carries the single non-short flag
    assert row["term"] == "long"
    assert bool(row["is_wash_sale"]) is True


def test_realized_sales_frame_empty():
    assert realized_sales_frame((), tax_year=2024).empty


def test_wash_sale_report(traded):
    df = wash_sale_report(traded.transactions, traded.lots, 2024)
    assert len(df) == 1
    row = df.iloc[0]
    sale = next(tx for tx in traded.transactions if tx.is_wash_sale)
    assert row["symbol"] == "ABC"
    assert row["replacement_date"] == date(2024, 6, 5)
    assert row["disallowed_loss_per_share"] == pytest.approx(sale.wash_sale_disallowed_loss / 100.0)
    assert row["loss_per_share"] == pytest.approx((sale.cost_basis - 795.0) / 100.0)
    assert wash_sale_report(traded.transactions, traded.lots, 2023).empty
