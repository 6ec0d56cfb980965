# tests/conftest.py
from __future__ import annotations

from datetime import datetime

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


@pytest.fixture
def day():
    """
    day(n) -> datetime(2024, 1, n)
    """

    def _day(n: int, hour: int = 0) -> datetime:
        return datetime(2024, 1, n, hour)

    return _day
