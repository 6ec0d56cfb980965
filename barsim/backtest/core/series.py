from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Callable, Generic, List, Optional, TypeVar

from barsim.utils.errors import OutOfHistory

if TYPE_CHECKING:
    from barsim.backtest.core.cache import MemoCache

"""
{#!filepath: barsim/backtest/core/series.py}

LookbackSeries (FINAL / FROZEN)

The only primitive allowed to hold historical state.

Contract:
- write(value): push value as offset 0
- read(offset): value written `offset` writes ago, OutOfHistory past the start
- try_read(offset): same, but None past the start (boundary case, not an error)

Invariants:
- Append-only. No deletion API.
- Offsets are stable between writes.
- series_id is assigned at construction and never reused within a process.
"""

T = TypeVar("T")

_SERIES_IDS = itertools.count(1)


class LookbackSeries(Generic[T]):
    """
    Recency-indexed, append-only history.

    `cache` is the MemoCache of the run that owns this series. Indicator
    functions resolve their memo nodes through it.
    """

    def __init__(self, *, cache: Optional["MemoCache"] = None, name: str = ""):
        self.series_id: int = next(_SERIES_IDS)
        self.cache = cache
        self.name = name
        self._values: List[T] = []

    # --------------------------------------------------
    def write(self, value: T) -> None:
        self._values.append(value)

    def read(self, offset: int = 0) -> T:
        if offset < 0:
            raise ValueError(f"[LookbackSeries] negative offset {offset}")

        n = len(self)
        if offset >= n:
            raise OutOfHistory(offset, n, self.name)

        return self._values[n - 1 - offset]

    def try_read(self, offset: int = 0) -> Optional[T]:
        if offset < 0 or offset >= len(self):
            return None
        return self.read(offset)

    # --------------------------------------------------
    @property
    def value(self) -> T:
        return self.read(0)

    def __getitem__(self, offset: int) -> T:
        return self.read(offset)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.series_id}, name={self.name!r}, len={len(self)})"


class ProjectedSeries(LookbackSeries[T]):
    """
    Read-only view of one field of another series (e.g. Instrument.close).

    Holds no history of its own; it has its own series_id so indicators
    keyed on it stay distinct from indicators keyed on the source.
    """

    def __init__(self, source: LookbackSeries, project: Callable[[object], T], *, name: str = ""):
        super().__init__(cache=source.cache, name=name)
        self._source = source
        self._project = project

    def write(self, value: T) -> None:
        raise TypeError(f"[ProjectedSeries] {self.name} is read-only")

    def read(self, offset: int = 0) -> T:
        return self._project(self._source.read(offset))

    def __len__(self) -> int:
        return len(self._source)
