from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from barsim.backtest.core.cache import MemoCache
from barsim.backtest.core.instrument import Instrument
from barsim.backtest.core.series import LookbackSeries
from barsim.backtest.core.types import LogEntry, Order
from barsim.backtest.replay.source import DataSource
from barsim.config.sim_config import SimConfig


@dataclass
class RunContext:
    """
    RunContext（FROZEN）

    Contract:
    - Pure runtime state for ONE simulation run.
    - Owned by one clock; never shared across parameter-sweep iterations.
    - release() drops instruments / positions / orders / cache / sources.
      log, nav and sim_time survive as the run's results.
    """

    # injected once
    start: datetime
    warmup_start: datetime
    end: datetime
    cash: float
    sources: List[DataSource]

    # run-scoped
    cache: MemoCache = field(default_factory=MemoCache)
    instruments: Dict[str, Instrument] = field(default_factory=dict)
    positions: Dict[Instrument, int] = field(default_factory=dict)
    pending_orders: List[Order] = field(default_factory=list)

    # results
    log: List[LogEntry] = field(default_factory=list)
    nav: Optional[LookbackSeries[float]] = None
    sim_time: Optional[LookbackSeries[datetime]] = None

    is_last_bar: bool = False
    released: bool = False

    def __post_init__(self) -> None:
        if self.nav is None:
            self.nav = LookbackSeries(cache=self.cache, name="nav")
        if self.sim_time is None:
            self.sim_time = LookbackSeries(cache=self.cache, name="sim_time")

    @classmethod
    def from_config(cls, cfg: SimConfig, sources: List[DataSource]) -> "RunContext":
        return cls(
            start=cfg.start,
            warmup_start=cfg.effective_warmup_start,
            end=cfg.end,
            cash=float(cfg.initial_cash),
            sources=list(sources),
        )

    # --------------------------------------------------
    @property
    def now(self) -> datetime:
        return self.sim_time.read(0)

    def release(self) -> None:
        self.instruments.clear()
        self.positions.clear()
        self.pending_orders.clear()
        self.sources.clear()
        self.cache.clear()
        self.released = True
