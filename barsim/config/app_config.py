#!filepath: barsim/config/app_config.py
import os

import yaml
from pydantic import BaseModel, ValidationError

from .log_config import LogConfig
from .sim_config import SimConfig
from barsim.utils.errors import ConfigurationError


def project_root() -> str:
    """
    返回项目根目录（基于当前文件位置推导）:
    barsim/config/app_config.py → barsim/config → barsim → project_root
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../"))


class AppConfig(BaseModel):
    log: LogConfig = LogConfig()
    sim: SimConfig

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """
        加载 YAML 配置
        - 默认使用 <project_root>/config/base.yml
        - 不依赖当前工作目录
        - 任何 schema 错误都在回放开始前以 ConfigurationError 抛出
        """
        if path is None:
            path = os.path.join(project_root(), "config/base.yml")

        if not os.path.exists(path):
            raise ConfigurationError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        try:
            return cls(**raw)
        except ValidationError as e:
            raise ConfigurationError(f"invalid config {path}: {e}") from e
