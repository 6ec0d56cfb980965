from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple, Optional

if TYPE_CHECKING:
    from barsim.backtest.core.instrument import Instrument

# barsim/backtest/core/types.py


# -------------------------
# Enums
# -------------------------
class OptionRight(Enum):
    PUT = "PUT"
    CALL = "CALL"


class OrderExecution(Enum):
    CLOSE_THIS_BAR = "CLOSE_THIS_BAR"      # prior bar close (bid/ask if quoted)
    OPEN_NEXT_BAR = "OPEN_NEXT_BAR"        # current bar open
    OPTION_EXPIRY_CLOSE = "OPTION_EXPIRY_CLOSE"


class OrderPriceSpec(Enum):
    MARKET = "MARKET"


class ReportType(Enum):
    FITNESS_VALUE = "FITNESS_VALUE"
    PLOT = "PLOT"
    EXCEL = "EXCEL"


# -------------------------
# Market data
# -------------------------
@dataclass(frozen=True)
class Bar:
    time: datetime
    open: float
    high: float
    low: float
    close: float
    bid: Optional[float] = None
    ask: Optional[float] = None

    @property
    def has_bid_ask(self) -> bool:
        return self.bid is not None and self.ask is not None


class BarRecord(NamedTuple):
    time: datetime
    symbol: str
    bar: Bar


@dataclass(frozen=True)
class InstrumentInfo:
    """
    Static instrument metadata, supplied by the data source.
    option_underlying is a symbol, never an object reference.
    """
    nickname: str
    is_option: bool = False
    option_strike: float = 0.0
    option_expiry: Optional[datetime] = None
    option_right: Optional[OptionRight] = None
    option_underlying: Optional[str] = None

    @property
    def option_is_put(self) -> bool:
        return self.option_right is OptionRight.PUT


# -------------------------
# Orders / fills
# -------------------------
@dataclass(frozen=True)
class Order:
    instrument: "Instrument"
    quantity: int                          # >0 buy / <0 sell
    execution: OrderExecution = OrderExecution.CLOSE_THIS_BAR
    price_spec: OrderPriceSpec = OrderPriceSpec.MARKET
    price: float = 0.0                     # settlement price for OPTION_EXPIRY_CLOSE


@dataclass(frozen=True)
class LogEntry:
    symbol: str
    order: Order
    bar: Bar
    net_asset_value: float
    fill_price: float
    commission: float = 0.0
