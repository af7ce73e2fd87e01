from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType


class CostBasisMethod(enum.Enum):
    FIFO = "FIFO"
    LIFO = "LIFO"
    SPECIFIC_ID = "SPECIFIC_ID"
    AVERAGE_COST = "AVERAGE_COST"  # mutual funds


class TxType(enum.Enum):
    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND_REINVESTMENT = "DIVIDEND_REINVESTMENT"
    STOCK_SPLIT = "STOCK_SPLIT"


ACQUISITION_TYPES = frozenset({TxType.BUY, TxType.DIVIDEND_REINVESTMENT})


# -- Errors --------------------------------------------------------------------

class CostBasisError(Exception):
    """Base class for cost-basis engine failures."""


class HoldingNotFoundError(CostBasisError, LookupError):
    """Raised when selling a symbol the portfolio holds no investment for."""


class InvalidOperationError(CostBasisError):
    """Raised when an operation cannot run with the arguments given."""


class InvalidTransactionError(CostBasisError, ValueError):
    """Raised for transactions whose numbers would produce nonsense."""


# -- Ledger records ------------------------------------------------------------

@dataclass(frozen=True)
class TaxLotSelection:
    lot_id: str
    shares_from_lot: float


@dataclass(frozen=True)
class TaxLot:
    lot_id: str
    symbol: str
    purchase_date: date
    shares: float
    cost_per_share: float
    fees: float
    total_cost: float
    remaining_shares: float
    adjusted_cost_basis: float
    wash_sale_adjustment: float
    source_tx_id: str | None

    @property
    def is_open(self) -> bool:
        return self.remaining_shares > 0

    @property
    def adjusted_cost_per_share(self) -> float:
        # Original lot size, not remaining shares
        return self.adjusted_cost_basis / self.shares if self.shares else 0.0


@dataclass(frozen=True)
class StockTransaction:
    tx_id: str
    symbol: str
    tx_type: TxType
    trade_date: date
    shares: float
    price_per_share: float
    fees: float = 0.0
    split_ratio: float | None = None
    notes: str = ""
    # Filled in for sells by the aggregator
    proceeds: float | None = None
    cost_basis: float | None = None
    gain_loss: float | None = None
    is_short_term: bool | None = None
    is_wash_sale: bool = False
    wash_sale_disallowed_loss: float = 0.0
    wash_sale_lot_id: str | None = None
    lot_selections: tuple[TaxLotSelection, ...] = ()


@dataclass(frozen=True)
class Investment:
    symbol: str
    name: str | None
    is_mutual_fund: bool
    lots: tuple[TaxLot, ...]
    transactions: tuple[StockTransaction, ...]
    total_shares: float
    total_cost_basis: float
    average_cost_per_share: float
    current_price: float | None
    unrealized_gain_loss: float | None
    default_method: CostBasisMethod


@dataclass(frozen=True)
class Portfolio:
    investments: Mapping[str, Investment] = field(default_factory=dict)
    default_method: CostBasisMethod = CostBasisMethod.FIFO
    last_updated: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        # Read-only view so a snapshot can't be changed in place
        if not isinstance(self.investments, MappingProxyType):
            object.__setattr__(self, "investments", MappingProxyType(dict(self.investments)))


# -- Calculation results -------------------------------------------------------

@dataclass(frozen=True)
class SaleGainLoss:
    short_term_proceeds: float
    short_term_cost_basis: float
    short_term_gain: float
    long_term_proceeds: float
    long_term_cost_basis: float
    long_term_gain: float
    total_gain: float
    # The calculator never decides these; the aggregator merges wash-sale info
    is_wash_sale: bool = False
    wash_sale_disallowed_loss: float = 0.0

    @property
    def cost_basis(self) -> float:
        return self.short_term_cost_basis + self.long_term_cost_basis


@dataclass(frozen=True)
class WashSaleInfo:
    is_wash_sale: bool
    disallowed_loss: float
    wash_sale_date: date
    replacement_date: date
    matching_lot_id: str | None = None

    @property
    def adjustment_to_new_lot(self) -> float:
        return self.disallowed_loss


@dataclass(frozen=True)
class WashSaleWarning:
    would_trigger: bool
    affected_sales: tuple[StockTransaction, ...]


@dataclass(frozen=True)
class GainLossSummary:
    short_term_proceeds: float = 0.0
    short_term_cost_basis: float = 0.0
    short_term_gain_loss: float = 0.0
    short_term_wash_sale_adjustment: float = 0.0
    long_term_proceeds: float = 0.0
    long_term_cost_basis: float = 0.0
    long_term_gain_loss: float = 0.0
    long_term_wash_sale_adjustment: float = 0.0

    @property
    def net_gain_loss(self) -> float:
        return self.short_term_gain_loss + self.long_term_gain_loss

    def __add__(self, other: GainLossSummary) -> GainLossSummary:
        return GainLossSummary(
            short_term_proceeds=self.short_term_proceeds + other.short_term_proceeds,
            short_term_cost_basis=self.short_term_cost_basis + other.short_term_cost_basis,
            short_term_gain_loss=self.short_term_gain_loss + other.short_term_gain_loss,
            short_term_wash_sale_adjustment=(
                self.short_term_wash_sale_adjustment + other.short_term_wash_sale_adjustment
            ),
            long_term_proceeds=self.long_term_proceeds + other.long_term_proceeds,
            long_term_cost_basis=self.long_term_cost_basis + other.long_term_cost_basis,
            long_term_gain_loss=self.long_term_gain_loss + other.long_term_gain_loss,
            long_term_wash_sale_adjustment=(
                self.long_term_wash_sale_adjustment + other.long_term_wash_sale_adjustment
            ),
        )


@dataclass(frozen=True)
class UnrealizedGains:
    short_term: float
    long_term: float

    @property
    def total(self) -> float:
        return self.short_term + self.long_term


@dataclass(frozen=True)
class TaxLotPreview:
    lot: TaxLot
    is_long_term: bool
    unrealized_gain: float
    days_held: int
    days_until_long_term: int
