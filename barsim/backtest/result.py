# barsim/backtest/result.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List


@dataclass(frozen=True)
class BacktestResult:
    """
    BacktestResult (FINAL / FROZEN)

    不可变事实结果，用于：
      - 结果回放
      - 回归测试（同输入 → 同 NAV / 同成交）
      - Metrics 派生
    """

    name: str
    start: datetime
    end: datetime

    # 与 equity_curve 对齐，只含 [start, end] 内的 bar
    timestamps: List[datetime]
    equity_curve: List[float]

    fills: List[Dict] = field(default_factory=list)

    @property
    def n_bars(self) -> int:
        return len(self.timestamps)
