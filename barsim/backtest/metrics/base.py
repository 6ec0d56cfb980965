from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

import numpy as np

from barsim.backtest.result import BacktestResult


class MetricsCollector(ABC):
    """
    MetricsCollector (FINAL)

    BacktestResult -> metrics dict

    Metrics are pure functions of BacktestResult.
    Metrics must not affect the simulation.
    """

    @abstractmethod
    def compute(self, result: BacktestResult) -> Dict[str, float]:
        ...


class BasicMetrics(MetricsCollector):
    def compute(self, result: BacktestResult) -> Dict[str, float]:
        eq = np.asarray(result.equity_curve, dtype=float)
        if eq.size == 0:
            return {
                "final_equity": 0.0,
                "total_return": 0.0,
                "sharpe": 0.0,
                "max_drawdown": 0.0,
            }

        ret = np.diff(eq)
        std = np.std(ret) if ret.size else 0.0
        sharpe = np.mean(ret) / std if std > 0 else 0.0

        drawdown = np.max(np.maximum.accumulate(eq) - eq)
        total_return = eq[-1] / eq[0] - 1.0 if eq[0] != 0 else 0.0

        return {
            "final_equity": float(eq[-1]),
            "total_return": float(total_return),
            "sharpe": float(sharpe),
            "max_drawdown": float(drawdown),
        }


class MetricsPipeline:
    def __init__(self, collectors: List[MetricsCollector]):
        self._collectors = collectors

    def compute(self, result: BacktestResult) -> Dict[str, float]:
        metrics: Dict[str, float] = {}
        for c in self._collectors:
            metrics.update(c.compute(result))
        return metrics
