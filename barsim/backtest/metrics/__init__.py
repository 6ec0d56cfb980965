from barsim.backtest.metrics.base import BasicMetrics, MetricsCollector, MetricsPipeline

__all__ = ["BasicMetrics", "MetricsCollector", "MetricsPipeline"]
