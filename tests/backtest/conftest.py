# tests/backtest/conftest.py
from __future__ import annotations

from typing import Optional

import pytest

from barsim.backtest.context import RunContext
from barsim.backtest.core.types import Bar, InstrumentInfo, OptionRight
from barsim.backtest.replay.source import BarListSource


@pytest.fixture
def make_bar(day):
    """
    Factory fixture for Bar.

    Usage:
        make_bar(1, 50.0)                       # flat bar, close 50 on 2024-01-01
        make_bar(2, 55.0, open=52.0)
        make_bar(2, 55.0, bid=54.9, ask=55.1)
    """

    def _make(
        d: int,
        close: float,
        *,
        open: Optional[float] = None,
        high: Optional[float] = None,
        low: Optional[float] = None,
        bid: Optional[float] = None,
        ask: Optional[float] = None,
    ) -> Bar:
        o = close if open is None else open
        return Bar(
            time=day(d),
            open=o,
            high=max(o, close) if high is None else high,
            low=min(o, close) if low is None else low,
            close=close,
            bid=bid,
            ask=ask,
        )

    return _make


@pytest.fixture
def stock_source(make_bar):
    """
    stock_source("AAA", [50, 55, 60]) -> one bar per day starting 2024-01-01
    """

    def _make(symbol: str, closes, *, nickname: Optional[str] = None, first_day: int = 1, **bar_kwargs):
        bars = [make_bar(first_day + i, c, **bar_kwargs) for i, c in enumerate(closes)]
        return BarListSource.from_bars(nickname or symbol, symbol, bars)

    return _make


@pytest.fixture
def put_info(day):
    def _make(strike: float, expiry_day: int, underlying: str = "SPX", nickname: str = "SPX_OPT"):
        return InstrumentInfo(
            nickname=nickname,
            is_option=True,
            option_strike=strike,
            option_expiry=day(expiry_day),
            option_right=OptionRight.PUT,
            option_underlying=underlying,
        )

    return _make


@pytest.fixture
def make_ctx(day):
    """
    Factory fixture for RunContext (testing only).
    """

    def _make(sources, *, start: int = 1, end: int = 28, warmup: Optional[int] = None, cash: float = 100_000.0):
        return RunContext(
            start=day(start),
            warmup_start=day(warmup if warmup is not None else start),
            end=day(end),
            cash=cash,
            sources=list(sources),
        )

    return _make
