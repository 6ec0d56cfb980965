from barsim.backtest.replay.source import BarListSource, DataFrameSource, DataSource

__all__ = ["DataSource", "BarListSource", "DataFrameSource"]
