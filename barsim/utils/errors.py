# barsim/utils/errors.py
class SimulationError(RuntimeError):
    """
    Base class for simulator failures.
    Invariant violations are raised as plain SimulationError (fatal).
    """


class OutOfHistory(SimulationError, IndexError):
    """
    Raised when a lookback offset reaches past the recorded history.
    Expected near the start of a run; use LookbackSeries.try_read to avoid it.
    """

    def __init__(self, offset: int, length: int, name: str = ""):
        self.offset = offset
        self.length = length
        super().__init__(
            f"[LookbackSeries{':' + name if name else ''}] offset={offset} beyond history length={length}"
        )


class ConfigurationError(SimulationError, ValueError):
    """
    Raised for invalid simulation setup (dates, data path, sources).
    Surfaced before any bar is processed.
    """


class InstrumentLookupError(SimulationError, LookupError):
    """
    Raised when a nickname resolves to zero or several instruments.
    """
