#!filepath: barsim/__init__.py

from .utils.logger import Logging, logs
from .utils.errors import (
    SimulationError,
    OutOfHistory,
    ConfigurationError,
    InstrumentLookupError,
)

__all__ = [
    "logs", "Logging",
    "SimulationError",
    "OutOfHistory",
    "ConfigurationError",
    "InstrumentLookupError",
]
