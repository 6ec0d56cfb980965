from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Dict, Hashable, Iterator, Tuple, TypeVar

from barsim.backtest.core.series import LookbackSeries

"""
{#!filepath: barsim/backtest/core/cache.py}

MemoCache (FINAL / FROZEN)

Explicit mapping: CacheKey -> Functor, owned by exactly one run.

CacheKey = (indicator name, source series_id, *params)
  - built only from primitives (str / int / float / bool / None)
  - never from object identity hashing

Bar discipline:
  - the clock calls advance() once per bar, BEFORE the strategy acts
  - a Functor recomputes at most once per epoch
"""

CacheKey = Tuple[Hashable, ...]
F = TypeVar("F", bound="Functor")

_KEY_TYPES = (str, int, float, bool, type(None))


def make_key(name: str, *parts) -> CacheKey:
    for p in parts:
        if not isinstance(p, _KEY_TYPES):
            raise TypeError(
                f"[MemoCache] key part must be a primitive, got {type(p).__name__}"
            )
    return (name, *parts)


class MemoCache:
    def __init__(self) -> None:
        self._nodes: Dict[CacheKey, Functor] = {}
        self.epoch: int = 0

    # --------------------------------------------------
    def advance(self) -> int:
        self.epoch += 1
        return self.epoch

    def get(self, key: CacheKey, factory: Callable[[], F]) -> F:
        node = self._nodes.get(key)
        if node is None:
            node = factory()
            self._nodes[key] = node
        return node  # type: ignore[return-value]

    def clear(self) -> None:
        self._nodes.clear()
        self.epoch = 0

    # --------------------------------------------------
    def __contains__(self, key: CacheKey) -> bool:
        return key in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(self._nodes)


class Functor(LookbackSeries[float], ABC):
    """
    Stateful memo node: a LookbackSeries bound to its source and parameters.

    Subclasses implement calc(), which writes exactly one value.
    """

    def __init__(self, source: LookbackSeries, key: CacheKey):
        super().__init__(cache=source.cache, name=str(key[0]))
        self.source = source
        self.key = key
        self.calc_count = 0
        self._epoch: int | None = None

    def update(self) -> "Functor":
        epoch = self.cache.epoch if self.cache is not None else None
        if self._epoch is not None and self._epoch == epoch:
            return self

        self._epoch = epoch
        self.calc_count += 1
        self.calc()
        return self

    @abstractmethod
    def calc(self) -> None:
        ...


def cached(source: LookbackSeries, key: CacheKey, factory: Callable[[], F]) -> F:
    """
    Look up (or lazily build) the node for key and bring it up to date.
    """
    cache = source.cache
    if cache is None:
        raise ValueError(
            f"[MemoCache] series {source!r} is not attached to a run cache"
        )

    node = cache.get(key, factory)
    node.update()
    return node
