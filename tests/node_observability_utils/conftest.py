import logging
from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def logger() -> logging.Logger:
    logger = logging.getLogger("test-logger")
    logger.addHandler(logging.NullHandler())
    return logger


@pytest.fixture
def output_dir(tmp_path: Path) -> str:
    return str(tmp_path)
