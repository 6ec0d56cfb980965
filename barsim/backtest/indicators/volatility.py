from __future__ import annotations

import math

from barsim import logs
from barsim.backtest.core.cache import Functor, cached, make_key
from barsim.backtest.core.instrument import Instrument
from barsim.backtest.core.series import LookbackSeries

"""
{#!filepath: barsim/backtest/indicators/volatility.py}

Volatility indicators (FINAL)

Each public function:
  f(series, params) -> LookbackSeries[float]

- memo key = (name, series.series_id, *params)
- recomputed at most once per bar
- insufficient history is a normal outcome: missing points end the window,
  an empty window yields 0.0; the range estimator yields 0.0 until its
  window is full
"""

TRADING_DAYS = 252.0


def _log_return(series: LookbackSeries[float], t: int) -> float | None:
    cur = series.try_read(t)
    prev = series.try_read(t + 1)
    if cur is None or prev is None or cur <= 0.0 or prev <= 0.0:
        return None
    return math.log(cur / prev)


# ==================================================
# Volatility
# ==================================================
class _Volatility(Functor):
    def __init__(self, source, key, n: int):
        super().__init__(source, key)
        self.n = max(2, n)

    def calc(self) -> None:
        total = 0.0
        total2 = 0.0
        num = 0

        # n points -> n-1 transitions
        for t in range(self.n - 1):
            r = _log_return(self.source, t)
            if r is None:
                break
            total += r
            total2 += r * r
            num += 1

        variance = (total2 - total * total / num) / (num - 1) if num > 1 else 0.0

        self.write(math.sqrt(TRADING_DAYS * max(0.0, variance)))


def volatility(series: LookbackSeries[float], n: int) -> LookbackSeries[float]:
    """
    Annualized sample standard deviation of log returns over the last n points.
    """
    key = make_key("volatility", series.series_id, int(n))
    return cached(series, key, lambda: _Volatility(series, key, int(n)))


# ==================================================
# Volatility from trading range
# ==================================================
class _VolatilityFromRange(Functor):
    def __init__(self, source, key, n: int):
        super().__init__(source, key)
        self.n = max(2, n)

    def calc(self) -> None:
        # window not full yet
        if len(self.source) < self.n:
            self.write(0.0)
            return

        window = [self.source.read(t) for t in range(self.n)]
        hi = max(window)
        lo = min(window)

        if lo <= 0.0:
            logs.debug(f"[VolatilityFromRange] non-positive low={lo} series={self.source.name}")
            self.write(0.0)
            return

        vol = 0.63 * math.sqrt(TRADING_DAYS / self.n) * math.log(hi / lo)
        self.write(vol if math.isfinite(vol) else 0.0)


def volatility_from_range(series: LookbackSeries[float], n: int) -> LookbackSeries[float]:
    """
    Annualized volatility estimate from the high/low range of the last n points.
    """
    key = make_key("volatility_from_range", series.series_id, int(n))
    return cached(series, key, lambda: _VolatilityFromRange(series, key, int(n)))


# ==================================================
# Fast (exponentially weighted) variance
# ==================================================
class _FastVariance(Functor):
    def __init__(self, source, key, n: int):
        super().__init__(source, key)
        self.n = max(2, n)
        self.alpha = 2.0 / (self.n + 1.0)
        self.average = 0.0
        self.initialized = False

    def calc(self) -> None:
        x = self.source.try_read(0)
        if x is None:
            self.write(0.0)
            return

        if not self.initialized:
            # 首次：均值 = 当前值，方差 = 0
            self.average = x
            self.initialized = True
            self.write(0.0)
            return

        # Tony Finch, incremental calculation of weighted mean and variance
        prev = self.read(0)
        diff = x - self.average
        incr = self.alpha * diff
        self.average += incr
        self.write((1.0 - self.alpha) * (prev + diff * incr))


def fast_variance(series: LookbackSeries[float], n: int) -> LookbackSeries[float]:
    key = make_key("fast_variance", series.series_id, int(n))
    return cached(series, key, lambda: _FastVariance(series, key, int(n)))


# ==================================================
# True range
# ==================================================
class _TrueRange(Functor):
    def calc(self) -> None:
        today = self.source.try_read(0)
        yesterday = self.source.try_read(1)
        if today is None or yesterday is None:
            self.write(0.0)
            return

        high = max(today.high, yesterday.close)
        low = min(today.low, yesterday.close)
        self.write(high - low)


def true_range(instrument: Instrument) -> LookbackSeries[float]:
    key = make_key("true_range", instrument.series_id)
    return cached(instrument, key, lambda: _TrueRange(instrument, key))
