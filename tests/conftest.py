# tests/conftest.py
import pytest

from depviz.core import log
from depviz.core import metrics


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging():
    log.setup("WARNING")
    yield


@pytest.fixture(autouse=True)
def _fresh_metrics():
    metrics.reset()
    yield
    metrics.reset()
