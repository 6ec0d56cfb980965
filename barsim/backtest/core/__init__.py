"""
Core World Model (FINAL / FROZEN)

Defines WHAT the world is, independent of any strategy or data source.

Invariants:
- All history lives in LookbackSeries (offset 0 = latest write).
- Instruments are named series of bars with immutable metadata.
- Derived indicators are memo nodes in a run-scoped MemoCache.

Core explicitly does NOT:
- Perform IO or data loading
- Decide how or when time advances
"""
from barsim.backtest.core.series import LookbackSeries, ProjectedSeries
from barsim.backtest.core.types import (
    Bar,
    BarRecord,
    InstrumentInfo,
    LogEntry,
    OptionRight,
    Order,
    OrderExecution,
    OrderPriceSpec,
    ReportType,
)
from barsim.backtest.core.instrument import Instrument, OPTION_MULTIPLIER
from barsim.backtest.core.cache import MemoCache, Functor, make_key, cached

__all__ = [
    "LookbackSeries", "ProjectedSeries",
    "Bar", "BarRecord", "InstrumentInfo", "LogEntry",
    "OptionRight", "Order", "OrderExecution", "OrderPriceSpec", "ReportType",
    "Instrument", "OPTION_MULTIPLIER",
    "MemoCache", "Functor", "make_key", "cached",
]
