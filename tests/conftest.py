import itertools
from datetime import date

import pytest

from cost_basis.investments.ledger import create_tax_lot
from cost_basis.investments.models import StockTransaction, TxType


@pytest.fixture
def make_tx():
    """Factory for transactions with sensible defaults and unique ids."""
    counter = itertools.count(1)

    def _make(**kwargs):
        defaults = dict(
            tx_id=f"tx-{next(counter)}",
            symbol="VTI",
            tx_type=TxType.BUY,
            trade_date=date(2024, 1, 15),
            shares=10.0,
            price_per_share=100.0,
            fees=0.0,
        )
        defaults.update(kwargs)
        return StockTransaction(**defaults)

    return _make


@pytest.fixture
def make_lot(make_tx):
    """Build a lot straight from a buy; returns (lot, buy_tx)."""
    def _make(**kwargs):
        tx = make_tx(**kwargs)
        return create_tax_lot(tx), tx

    return _make
