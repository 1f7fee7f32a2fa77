# tests/__init__.py

from tests.helpers.factories import mock_population
from tests.helpers.ols import ols

__all__ = [
    "mock_population",
    "ols",
]
