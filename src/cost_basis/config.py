from __future__ import annotations

import os
from dataclasses import dataclass, field

# IRS "more than one year" approximated as a fixed day count
LONG_TERM_HOLDING_PERIOD_DAYS = 365

# 30 days before and after the sale, plus the sale date itself
WASH_SALE_WINDOW_DAYS = 30

# Residual share counts below this are float noise, not a position
SHARE_EPSILON = 1e-9

_DEFAULT_METHOD = "FIFO"


def _method_from_env() -> str:
    return os.environ.get("COST_BASIS_DEFAULT_METHOD", _DEFAULT_METHOD).strip().upper()


@dataclass(frozen=True)
class Settings:
    default_method: str = field(default_factory=_method_from_env)
