#!filepath: barsim/backtest/sweep.py
from __future__ import annotations

import itertools
from typing import Any, Callable, Dict, List, Sequence

import pandas as pd

from barsim import logs
from barsim.backtest.algorithm import Algorithm


class ParameterSweep:
    """
    Sequential grid sweep.

    - one fresh Algorithm per combination (no shared run state)
    - cartesian product in grid insertion order (deterministic)
    - result: one row per combination, params + fitness
    """

    def __init__(self, factory: Callable[..., Algorithm], grid: Dict[str, Sequence[Any]]):
        if not grid:
            raise ValueError("[ParameterSweep] empty grid")
        self._factory = factory
        self._grid = grid

    def combinations(self) -> List[Dict[str, Any]]:
        names = list(self._grid)
        return [
            dict(zip(names, values))
            for values in itertools.product(*(self._grid[n] for n in names))
        ]

    @logs.catch("parameter sweep failed")
    def run(self) -> pd.DataFrame:
        rows: List[Dict[str, Any]] = []
        combos = self.combinations()

        for i, params in enumerate(combos, start=1):
            algo = self._factory(**params)
            algo.is_optimizing = True
            algo.run()

            fitness = algo.report()
            logs.info(f"[ParameterSweep] {i}/{len(combos)} params={params} fitness={fitness}")
            rows.append({**params, "fitness": fitness})

        return pd.DataFrame(rows)
