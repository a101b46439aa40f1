"""Shared fixtures for the equity_analytics test suite"""

import math
from datetime import date, timedelta

import numpy as np
import polars as pl
import pytest

from equity_analytics.config import get_settings
from equity_analytics.series import OHLCVSeries


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached per process; tests that touch the environment need a clean read"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_series(closes, symbol=None, start=date(2024, 1, 1)):
    return OHLCVSeries.from_closes(closes, start=start, symbol=symbol)


@pytest.fixture
def flat_series():
    return make_series([100.0] * 60, symbol='FLAT')


@pytest.fixture
def rising_series():
    return make_series([100.0 + i for i in range(60)], symbol='UP')


@pytest.fixture
def falling_series():
    return make_series([200.0 - i for i in range(60)], symbol='DOWN')


@pytest.fixture
def short_series():
    return make_series([100.0 + i for i in range(20)], symbol='SHORT')


@pytest.fixture
def wave_series():
    """Oscillating closes that produce repeated moving-average crosses"""
    return make_series([100.0 + 10.0 * math.sin(i / 5.0) for i in range(150)], symbol='WAVE')


@pytest.fixture
def random_walk_series():
    """Deterministic OHLCV random walk with proper high/low ranges"""
    rng = np.random.default_rng(42)
    n = 250
    closes = 100.0 * np.cumprod(1.0 + rng.normal(0.0005, 0.02, n))
    opens = np.concatenate([[100.0], closes[:-1]])
    highs = np.maximum(opens, closes) * (1.0 + np.abs(rng.normal(0, 0.005, n)))
    lows = np.minimum(opens, closes) * (1.0 - np.abs(rng.normal(0, 0.005, n)))
    volumes = rng.integers(500_000, 2_000_000, n).astype(float)
    frame = pl.DataFrame({
        'date': [date(2023, 1, 2) + timedelta(days=i) for i in range(n)],
        'open': opens,
        'high': highs,
        'low': lows,
        'close': closes,
        'volume': volumes,
    })
    return OHLCVSeries(frame, symbol='RW')


@pytest.fixture
def breakout_closes():
    """25 flat bars at 100, a jump to 110, then 10 more bars at 110"""
    return [100.0] * 25 + [110.0] * 11
