from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional

import pandas as pd

from barsim.backtest.core.types import Bar, BarRecord, InstrumentInfo, OptionRight
from barsim.utils.errors import ConfigurationError


class DataSource(ABC):
    """
    DataSource (FROZEN)

    职责：
      - 为 [start, end] 打开一个全新的、按时间有序的 BarRecord 游标
      - 同一 ts 可以有多条记录（期权链）
      - 可重复打开（参数扫描），不残留状态
    """

    def __init__(self, nickname: str):
        self.nickname = nickname

    @abstractmethod
    def open(self, start: datetime, end: datetime) -> Iterator[BarRecord]:
        ...

    def info(self, symbol: str) -> InstrumentInfo:
        return InstrumentInfo(nickname=self.nickname)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.nickname!r})"


class BarListSource(DataSource):
    """
    In-memory records. Stable-sorted by time so same-ts records keep their
    insertion order.
    """

    def __init__(
        self,
        nickname: str,
        records: Iterable[BarRecord],
        infos: Optional[Dict[str, InstrumentInfo]] = None,
    ):
        super().__init__(nickname)
        self._records: List[BarRecord] = sorted(records, key=lambda r: r.time)
        self._infos = dict(infos or {})

    @classmethod
    def from_bars(cls, nickname: str, symbol: str, bars: Iterable[Bar], info: Optional[InstrumentInfo] = None):
        records = [BarRecord(b.time, symbol, b) for b in bars]
        return cls(nickname, records, {symbol: info} if info is not None else None)

    def open(self, start: datetime, end: datetime) -> Iterator[BarRecord]:
        return (r for r in self._records if start <= r.time <= end)

    def info(self, symbol: str) -> InstrumentInfo:
        return self._infos.get(symbol) or InstrumentInfo(nickname=self.nickname)


class DataFrameSource(DataSource):
    """
    pandas-backed source.

    Required columns: time, symbol, open, high, low, close
    Optional:         bid, ask, strike, expiry, right ("P"/"C"), underlying
    """

    REQUIRED = ("time", "symbol", "open", "high", "low", "close")

    def __init__(self, nickname: str, df: pd.DataFrame):
        super().__init__(nickname)

        missing = [c for c in self.REQUIRED if c not in df.columns]
        if missing:
            raise ConfigurationError(f"[DataFrameSource] {nickname}: missing columns {missing}")

        df = df.copy()
        df["time"] = pd.to_datetime(df["time"])
        if "expiry" in df.columns:
            df["expiry"] = pd.to_datetime(df["expiry"])

        # mergesort = stable
        self._df = df.sort_values("time", kind="mergesort").reset_index(drop=True)
        self._infos = self._build_infos(self._df)

    def _build_infos(self, df: pd.DataFrame) -> Dict[str, InstrumentInfo]:
        if "strike" not in df.columns:
            return {}

        infos: Dict[str, InstrumentInfo] = {}
        for row in df.drop_duplicates("symbol").itertuples(index=False):
            strike = getattr(row, "strike")
            if strike is None or (isinstance(strike, float) and math.isnan(strike)):
                continue

            right = str(getattr(row, "right", "C")).upper()[:1]
            underlying = getattr(row, "underlying", None)
            infos[row.symbol] = InstrumentInfo(
                nickname=self.nickname,
                is_option=True,
                option_strike=float(strike),
                option_expiry=pd.Timestamp(getattr(row, "expiry")).to_pydatetime(),
                option_right=OptionRight.PUT if right == "P" else OptionRight.CALL,
                option_underlying=underlying if isinstance(underlying, str) else None,
            )
        return infos

    def open(self, start: datetime, end: datetime) -> Iterator[BarRecord]:
        mask = (self._df["time"] >= pd.Timestamp(start)) & (self._df["time"] <= pd.Timestamp(end))
        window = self._df.loc[mask]
        has_quote = "bid" in window.columns and "ask" in window.columns

        for row in window.itertuples(index=False):
            t = pd.Timestamp(row.time).to_pydatetime()
            bid = ask = None
            if has_quote and not (pd.isna(row.bid) or pd.isna(row.ask)):
                bid, ask = float(row.bid), float(row.ask)

            bar = Bar(
                time=t,
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                bid=bid,
                ask=ask,
            )
            yield BarRecord(t, str(row.symbol), bar)

    def info(self, symbol: str) -> InstrumentInfo:
        return self._infos.get(symbol) or InstrumentInfo(nickname=self.nickname)
