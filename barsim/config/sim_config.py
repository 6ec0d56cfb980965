from __future__ import annotations

import os
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from barsim.utils.errors import ConfigurationError


class SimConfig(BaseModel):
    """
    SimConfig（FROZEN）

    语义：
      - 一次回放的“实验定义”
      - 时间窗口 [warmup_start, end]，策略只看到 [start, end]
      - sources 只是标识符，由策略解析成 DataSource
    """

    start: datetime
    end: datetime

    # 缺省 = start（无预热）
    warmup_start: Optional[datetime] = None

    initial_cash: float = Field(default=100_000.0, ge=0.0)

    sources: List[str] = Field(default_factory=list)

    data_path: Optional[str] = None

    @field_validator("data_path")
    @classmethod
    def _data_path_exists(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not os.path.isdir(v):
            raise ValueError(f"invalid data path {v}")
        return v

    @model_validator(mode="after")
    def _window_ordered(self) -> "SimConfig":
        if self.end < self.start:
            raise ValueError(f"end {self.end} before start {self.start}")
        if self.warmup_start is not None and self.warmup_start > self.start:
            raise ValueError(
                f"warmup_start {self.warmup_start} after start {self.start}"
            )
        return self

    @classmethod
    def create(cls, **kwargs) -> "SimConfig":
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigurationError(f"invalid simulation config: {e}") from e

    @property
    def effective_warmup_start(self) -> datetime:
        return self.warmup_start if self.warmup_start is not None else self.start
