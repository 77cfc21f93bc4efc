"""Pytest configuration and shared fixtures."""
import os
import sys

import pytest

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import DEFAULT_CONFIG  # noqa: E402
from models import TokenRecord, TokenSource  # noqa: E402


@pytest.fixture
def test_config():
    """Config with background tasks and persistence turned off."""
    config = dict(DEFAULT_CONFIG)
    config.update({
        "ENABLE_PUMPPORTAL_WS": False,
        "REFRESH_INTERVAL_SECONDS": 0,
        "FETCH_TIMEOUT_SECONDS": 5,
        "HELIUS_API_KEY": "",
    })
    return config


@pytest.fixture
def make_record():
    """Factory for TokenRecord with sensible defaults."""
    def _make(mint="A", symbol="TKN", name="Token", source=TokenSource.JUPITER,
              last_updated=100.0, decimals=6, **kwargs):
        return TokenRecord(
            mint=mint,
            symbol=symbol,
            name=name,
            decimals=decimals,
            source=source,
            last_updated=last_updated,
            **kwargs
        )
    return _make
