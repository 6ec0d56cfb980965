from __future__ import annotations

from datetime import datetime
from functools import cached_property
from typing import TYPE_CHECKING, Optional

from barsim.backtest.core.series import LookbackSeries, ProjectedSeries
from barsim.backtest.core.types import Bar, InstrumentInfo, OptionRight

if TYPE_CHECKING:
    from barsim.backtest.core.cache import MemoCache

# barsim/backtest/core/instrument.py

OPTION_MULTIPLIER = 100.0


class Instrument(LookbackSeries[Bar]):
    """
    Instrument (FROZEN)

    A named LookbackSeries of bars plus immutable metadata.

    - Created by the clock the first time a stream emits its symbol
    - Lives until the run context is released
    - Field views (open/high/low/close/bid/ask) are LookbackSeries of float
    """

    def __init__(self, symbol: str, info: InstrumentInfo, *, cache: Optional["MemoCache"] = None):
        super().__init__(cache=cache, name=symbol)
        self.symbol = symbol
        self.info = info

    # -------------------------
    # metadata
    # -------------------------
    @property
    def nickname(self) -> str:
        return self.info.nickname

    @property
    def is_option(self) -> bool:
        return self.info.is_option

    @property
    def option_strike(self) -> float:
        return self.info.option_strike

    @property
    def option_expiry(self) -> Optional[datetime]:
        return self.info.option_expiry

    @property
    def option_right(self) -> Optional[OptionRight]:
        return self.info.option_right

    @property
    def option_is_put(self) -> bool:
        return self.info.option_is_put

    @property
    def option_underlying(self) -> Optional[str]:
        return self.info.option_underlying

    @property
    def multiplier(self) -> float:
        return OPTION_MULTIPLIER if self.is_option else 1.0

    # -------------------------
    # field views
    # -------------------------
    @cached_property
    def open(self) -> LookbackSeries[float]:
        return ProjectedSeries(self, lambda b: b.open, name=f"{self.symbol}.open")

    @cached_property
    def high(self) -> LookbackSeries[float]:
        return ProjectedSeries(self, lambda b: b.high, name=f"{self.symbol}.high")

    @cached_property
    def low(self) -> LookbackSeries[float]:
        return ProjectedSeries(self, lambda b: b.low, name=f"{self.symbol}.low")

    @cached_property
    def close(self) -> LookbackSeries[float]:
        return ProjectedSeries(self, lambda b: b.close, name=f"{self.symbol}.close")

    @cached_property
    def bid(self) -> LookbackSeries[Optional[float]]:
        return ProjectedSeries(self, lambda b: b.bid, name=f"{self.symbol}.bid")

    @cached_property
    def ask(self) -> LookbackSeries[Optional[float]]:
        return ProjectedSeries(self, lambda b: b.ask, name=f"{self.symbol}.ask")

    @cached_property
    def time(self) -> LookbackSeries[datetime]:
        return ProjectedSeries(self, lambda b: b.time, name=f"{self.symbol}.time")

    def __repr__(self) -> str:
        return f"Instrument({self.symbol!r}, nickname={self.nickname!r}, bars={len(self)})"
