from .app_config import AppConfig
from .log_config import LogConfig
from .sim_config import SimConfig

__all__ = ["AppConfig", "LogConfig", "SimConfig"]
