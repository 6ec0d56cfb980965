#!filepath: tests/utils/test_logger.py
import pytest
from loguru import logger

from barsim.config.log_config import LogConfig
from barsim.utils.logger import Logging, logs


def test_catch_passes_result_through():
    @logs.catch("boom", log_inputs=True, log_outputs=True)
    def add(a, b=0):
        return a + b

    assert add(1, b=2) == 3
    assert add.__name__ == "add"


def test_catch_reraises():
    @logs.catch("boom")
    def fail():
        raise KeyError("x")

    with pytest.raises(KeyError):
        fail()


def test_init_rebuilds_sinks(tmp_path):
    log_dir = tmp_path / "logs"
    lg = Logging(log_dir=str(tmp_path / "boot"))

    lg.init(LogConfig(dir=str(log_dir), level="DEBUG"))
    lg.debug("hello")

    assert log_dir.is_dir()
    assert lg.level == "DEBUG"


def test_reinit_replaces_sinks(tmp_path):
    log_dir = tmp_path / "logs"
    lg = Logging(log_dir=str(log_dir))
    lg.init(LogConfig(dir=str(log_dir)))
    lg.info("only-once")
    logger.complete()

    text = "".join(p.read_text(encoding="utf-8") for p in log_dir.glob("*.log"))
    assert text.count("only-once") == 1
