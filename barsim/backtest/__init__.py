"""
Backtest System (FINAL / FROZEN)

Deterministic, bar-by-bar replay of historical data through a strategy.

Layer responsibilities:
- core       : WHAT the world is (lookback series, instruments, orders, memo cache)
- indicators : pure functions of a series, memoized per (series, params)
- replay     : HOW time advances (data streams, k-way merge clock)
- execution  : fills, option expiry, cash / position / NAV bookkeeping
- algorithm  : the strategy contract driven by the clock

Identical inputs MUST reproduce identical NAV / position / fill sequences.
"""
from barsim.backtest.algorithm import Algorithm
from barsim.backtest.context import RunContext
from barsim.backtest.execution import ExecutionEngine
from barsim.backtest.replay.clock import SimulationClock
from barsim.backtest.result import BacktestResult
from barsim.backtest.sweep import ParameterSweep

__all__ = [
    "Algorithm",
    "RunContext",
    "ExecutionEngine",
    "SimulationClock",
    "BacktestResult",
    "ParameterSweep",
]
