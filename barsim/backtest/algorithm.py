from __future__ import annotations

import os
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd

from barsim import logs
from barsim.backtest.context import RunContext
from barsim.backtest.core.cache import MemoCache
from barsim.backtest.core.instrument import Instrument
from barsim.backtest.core.series import LookbackSeries
from barsim.backtest.core.types import LogEntry, Order, OrderExecution, OrderPriceSpec, ReportType
from barsim.backtest.metrics.base import BasicMetrics
from barsim.backtest.replay.clock import SimulationClock
from barsim.backtest.replay.source import DataSource
from barsim.backtest.result import BacktestResult
from barsim.config.sim_config import SimConfig
from barsim.utils.errors import ConfigurationError, InstrumentLookupError, SimulationError


class Algorithm(ABC):
    """
    Algorithm (FINAL / FROZEN)

    Strategy contract:
      - run() is invoked once per parameter set
      - run() drives sim_times(), reads instruments / nav / positions,
        and places orders for the next bar
      - at the end, fitness_value holds the scalar result

    Phase discipline:
      the strategy acts only between two clock advances; it never sees
      warmup bars and never touches the clock's per-bar pipeline.
    """

    def __init__(self) -> None:
        self.start_time: Optional[datetime] = None
        self.warmup_start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.initial_cash: float = 100_000.0

        self.data_sources: List[DataSource] = []

        self.fitness_value: float = 0.0
        self.is_optimizing: bool = False

        self._data_path: Optional[str] = None
        self._ctx: Optional[RunContext] = None
        self._clock: Optional[SimulationClock] = None

    # ==================================================
    # for use by drivers
    # ==================================================
    @abstractmethod
    def run(self) -> None:
        ...

    def report(self, report_type: ReportType = ReportType.FITNESS_VALUE) -> Any:
        if report_type is ReportType.FITNESS_VALUE:
            return self.fitness_value

        result = self.result()

        if report_type is ReportType.PLOT:
            return pd.DataFrame(
                {"nav": result.equity_curve},
                index=pd.DatetimeIndex(result.timestamps, name="time"),
            )

        if report_type is ReportType.EXCEL:
            return pd.DataFrame(
                result.fills,
                columns=["time", "symbol", "quantity", "execution", "fill_price", "nav", "commission"],
            )

        raise ValueError(f"[Algorithm] unknown report type {report_type}")

    # ==================================================
    # configuration
    # ==================================================
    def configure(self, cfg: SimConfig) -> None:
        self.start_time = cfg.start
        self.warmup_start_time = cfg.warmup_start
        self.end_time = cfg.end
        self.initial_cash = cfg.initial_cash
        if cfg.data_path is not None:
            self.data_path = cfg.data_path

    @property
    def data_path(self) -> Optional[str]:
        return self._data_path

    @data_path.setter
    def data_path(self, value: str) -> None:
        if not os.path.isdir(value):
            raise ConfigurationError(f"invalid data path {value}")
        self._data_path = value

    def add_data_source(self, source: DataSource) -> DataSource:
        self.data_sources.append(source)
        return source

    def _sim_config(self) -> SimConfig:
        if self.start_time is None or self.end_time is None:
            raise ConfigurationError("[Algorithm] start_time / end_time not set")

        return SimConfig.create(
            start=self.start_time,
            end=self.end_time,
            warmup_start=self.warmup_start_time,
            initial_cash=self.initial_cash,
            sources=[s.nickname for s in self.data_sources],
            data_path=self._data_path,
        )

    # ==================================================
    # simulation
    # ==================================================
    def sim_times(self) -> Iterator[datetime]:
        """
        Lazy sequence of strategy timestamps. Configuration errors surface
        here, before the first bar.
        """
        cfg = self._sim_config()
        if not self.data_sources:
            raise ConfigurationError("[Algorithm] no data sources configured")

        self._ctx = RunContext.from_config(cfg, self.data_sources)
        self._clock = SimulationClock(self._ctx)
        self._clock.start()

        logs.info(
            f"[Algorithm] {type(self).__name__} run start={cfg.start} end={cfg.end} "
            f"cash={cfg.initial_cash} sources={cfg.sources}"
        )
        return self._clock.times()

    @property
    def ctx(self) -> RunContext:
        if self._ctx is None:
            raise SimulationError("[Algorithm] no simulation run started")
        return self._ctx

    @property
    def instruments(self) -> Dict[str, Instrument]:
        return self.ctx.instruments

    @property
    def positions(self) -> Dict[Instrument, int]:
        return self.ctx.positions

    @property
    def pending_orders(self) -> List[Order]:
        return self.ctx.pending_orders

    @property
    def log(self) -> List[LogEntry]:
        return self.ctx.log

    @property
    def nav(self) -> LookbackSeries[float]:
        return self.ctx.nav

    @property
    def sim_time(self) -> LookbackSeries[datetime]:
        return self.ctx.sim_time

    @property
    def cash(self) -> float:
        return self.ctx.cash

    @property
    def is_last_bar(self) -> bool:
        return self.ctx.is_last_bar

    @property
    def cache(self) -> MemoCache:
        return self.ctx.cache

    # ==================================================
    # for use by strategies
    # ==================================================
    def place_order(
        self,
        instrument: Instrument,
        quantity: int,
        execution: OrderExecution = OrderExecution.CLOSE_THIS_BAR,
        price_spec: OrderPriceSpec = OrderPriceSpec.MARKET,
    ) -> Order:
        if int(quantity) != quantity:
            raise ValueError(f"[Algorithm] order quantity must be integral, got {quantity}")

        order = Order(
            instrument=instrument,
            quantity=int(quantity),
            execution=execution,
            price_spec=price_spec,
        )
        self.ctx.pending_orders.append(order)
        return order

    def find_instrument(self, nickname: str) -> Instrument:
        matches = [i for i in self.instruments.values() if i.nickname == nickname]
        if len(matches) != 1:
            raise InstrumentLookupError(
                f"[Algorithm] nickname {nickname!r} matches {len(matches)} instruments"
            )
        return matches[0]

    def option_chain(self, nickname: str) -> List[Instrument]:
        now = self.sim_time.read(0)
        return [
            i
            for i in self.instruments.values()
            if i.nickname == nickname
            and i.is_option
            and i.read(0).time == now
            and i.option_expiry is not None
            and i.option_expiry > now
        ]

    # ==================================================
    # results
    # ==================================================
    def result(self) -> BacktestResult:
        ctx = self.ctx

        timestamps: List[datetime] = []
        equity: List[float] = []
        for offset in range(len(ctx.sim_time) - 1, -1, -1):
            t = ctx.sim_time.read(offset)
            if ctx.start <= t <= ctx.end:
                timestamps.append(t)
                equity.append(ctx.nav.read(offset))

        fills = [
            {
                "time": e.bar.time,
                "symbol": e.symbol,
                "quantity": e.order.quantity,
                "execution": e.order.execution.value,
                "fill_price": e.fill_price,
                "nav": e.net_asset_value,
                "commission": e.commission,
            }
            for e in ctx.log
        ]

        return BacktestResult(
            name=type(self).__name__,
            start=ctx.start,
            end=ctx.end,
            timestamps=timestamps,
            equity_curve=equity,
            fills=fills,
        )

    def metrics(self) -> Dict[str, float]:
        return BasicMetrics().compute(self.result())
