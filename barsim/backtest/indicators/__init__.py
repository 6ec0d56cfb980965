from barsim.backtest.indicators.volatility import (
    volatility,
    volatility_from_range,
    fast_variance,
    true_range,
)

__all__ = ["volatility", "volatility_from_range", "fast_variance", "true_range"]
