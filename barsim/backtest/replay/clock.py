from __future__ import annotations

import heapq
from datetime import datetime
from time import perf_counter
from typing import Callable, Iterator, List, Optional, Tuple

from barsim import logs
from barsim.backtest.context import RunContext
from barsim.backtest.core.instrument import Instrument
from barsim.backtest.core.types import BarRecord
from barsim.backtest.execution import ExecutionEngine
from barsim.backtest.replay.source import DataSource
from barsim.utils.errors import ConfigurationError, SimulationError


class _Cursor:
    """
    One open stream with a one-record lookahead.
    """

    def __init__(self, index: int, source: DataSource, it: Iterator[BarRecord]):
        self.index = index
        self.source = source
        self._it = it
        self.head: Optional[BarRecord] = next(it, None)

    def advance(self) -> None:
        self.head = next(self._it, None)


class SimulationClock:
    """
    SimulationClock (FINAL / FROZEN)

    职责：
      - N 个数据流 k-way merge 成单调的时间序列
      - 同一 ts 的全部记录（期权链）先全部吸收，再执行订单
      - 每个 bar：执行挂单 → 期权到期 → NAV
      - 预热窗口内的 bar 只更新状态，不交给策略

    Replay Ordering Semantics (Frozen)

    Bars are grouped by exact timestamp equality.
    Within one timestamp, streams are drained in registration order.
    A stream whose timestamps go backwards is a fatal error.

    Two ways to drive it:
      - advance() / now / in_simulation : one bar per call
      - times()                         : lazy sequence of strategy timestamps
    """

    def __init__(self, ctx: RunContext, execution: Optional[ExecutionEngine] = None):
        self.ctx = ctx
        self.execution = execution or ExecutionEngine(ctx)

        self._cursors: List[_Cursor] = []
        # heap item: (head ts, stream index)
        self._heap: List[Tuple[datetime, int]] = []
        self._started = False
        self._finished = False
        self._t0 = 0.0

        self.bars = 0

    # --------------------------------------------------
    def start(self) -> None:
        if self._started:
            return
        if not self.ctx.sources:
            raise ConfigurationError("[SimulationClock] no data sources configured")

        for idx, source in enumerate(self.ctx.sources):
            cursor = _Cursor(idx, source, iter(source.open(self.ctx.warmup_start, self.ctx.end)))
            self._cursors.append(cursor)

            if cursor.head is None:
                logs.warning(f"[SimulationClock] empty data stream: {source!r}")
                continue

            self._heap.append((cursor.head.time, idx))

        heapq.heapify(self._heap)

        self._started = True
        self._t0 = perf_counter()
        logs.info(
            f"[SimulationClock] start streams={len(self._cursors)} "
            f"window=[{self.ctx.warmup_start}, {self.ctx.end}] sim_start={self.ctx.start}"
        )

    # --------------------------------------------------
    @property
    def now(self) -> datetime:
        return self.ctx.now

    @property
    def has_data(self) -> bool:
        return bool(self._heap)

    @property
    def in_simulation(self) -> bool:
        return self.ctx.start <= self.now <= self.ctx.end

    # --------------------------------------------------
    def advance(self) -> bool:
        """
        Process exactly one timestamp. False once every stream is exhausted
        (the run context is released at that point).
        """
        if self._finished:
            return False

        self.start()

        if not self._heap:
            self._finish()
            return False

        now = self._heap[0][0]
        self.ctx.sim_time.write(now)
        self.ctx.cache.advance()

        # 同一 ts 的所有流，按注册顺序全部吸收
        while self._heap and self._heap[0][0] == now:
            _, idx = heapq.heappop(self._heap)
            cursor = self._cursors[idx]

            while cursor.head is not None and cursor.head.time == now:
                self._absorb(cursor.source, cursor.head)
                cursor.advance()

            if cursor.head is None:
                continue

            # 🔒 全局时间语义断言
            if cursor.head.time < now:
                raise SimulationError(
                    f"[SimulationClock] ts regression in {cursor.source!r}: "
                    f"{cursor.head.time} < {now}"
                )

            heapq.heappush(self._heap, (cursor.head.time, idx))

        self.execution.execute_pending()
        self.execution.expire_options()

        self.ctx.nav.write(self.execution.mark_to_market())
        self.ctx.is_last_bar = not self._heap
        self.bars += 1

        return True

    def times(self) -> Iterator[datetime]:
        while self.advance():
            if self.in_simulation:
                yield self.now

    def run(self, on_bar: Callable[[datetime], None]) -> int:
        n = 0
        for t in self.times():
            on_bar(t)
            n += 1
        return n

    # --------------------------------------------------
    def _absorb(self, source: DataSource, rec: BarRecord) -> None:
        inst = self.ctx.instruments.get(rec.symbol)
        if inst is None:
            inst = Instrument(rec.symbol, source.info(rec.symbol), cache=self.ctx.cache)
            self.ctx.instruments[rec.symbol] = inst
        inst.write(rec.bar)

    def _finish(self) -> None:
        self._finished = True
        nav = self.ctx.nav.try_read(0)
        logs.info(
            f"[SimulationClock] done bars={self.bars} fills={len(self.ctx.log)} "
            f"nav={nav} took={perf_counter() - self._t0:.4f}s"
        )
        self.ctx.release()
