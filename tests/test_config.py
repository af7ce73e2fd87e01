from cost_basis.config import (
    LONG_TERM_HOLDING_PERIOD_DAYS,
    WASH_SALE_WINDOW_DAYS,
    Settings,
)


def test_irs_constants():
    assert LONG_TERM_HOLDING_PERIOD_DAYS == 365
    assert WASH_SALE_WINDOW_DAYS == 30


def test_default_method_is_fifo(monkeypatch):
    monkeypatch.delenv("COST_BASIS_DEFAULT_METHOD", raising=False)
    assert Settings().default_method == "FIFO"


def test_default_method_from_env(monkeypatch):
    monkeypatch.setenv("COST_BASIS_DEFAULT_METHOD", " lifo ")
    assert Settings().default_method == "LIFO"
