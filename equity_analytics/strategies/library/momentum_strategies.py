"""
Momentum Strategies

Trend-following and oscillator policies for the Backtest Engine
"""

import math
from typing import Any, Dict, List

import numpy as np

from ...errors import InvalidConfiguration
from ...indicators.technicals import FactorVector, calculate_rsi, calculate_sma
from ...series import OHLCVSeries
from ..base import BaseStrategy, require_period


class MovingAverageCrossStrategy(BaseStrategy):
    """
    Moving Average Crossover

    Buy: fast SMA crosses above slow SMA
    Sell: fast SMA crosses below slow SMA
    A cross needs both averages defined on the previous bar as well.
    """

    entry_reason = 'golden cross'
    exit_reason = 'death cross'

    def __init__(self, fast_period: int = 5, slow_period: int = 20):
        self.fast_period = require_period('fast_period', fast_period)
        self.slow_period = require_period('slow_period', slow_period)
        if self.fast_period >= self.slow_period:
            raise InvalidConfiguration('fast_period must be shorter than slow_period')
        super().__init__(
            name="MA Cross",
            description=f"SMA {self.fast_period}/{self.slow_period} crossover strategy",
        )
        self._fast = np.zeros(0)
        self._slow = np.zeros(0)

    @property
    def parameters(self) -> Dict[str, Any]:
        return {'fast_period': self.fast_period, 'slow_period': self.slow_period}

    def prepare(self, series: OHLCVSeries, factors: List[FactorVector]) -> None:
        self._fast = calculate_sma(series.close, self.fast_period)
        self._slow = calculate_sma(series.close, self.slow_period)

    def _crossed(self, index: int) -> int:
        """+1 for a cross above, -1 for a cross below, 0 otherwise"""
        if index < self.slow_period:
            return 0
        fast, slow = self._fast, self._slow
        if fast[index] > slow[index] and fast[index - 1] <= slow[index - 1]:
            return 1
        if fast[index] < slow[index] and fast[index - 1] >= slow[index - 1]:
            return -1
        return 0

    def should_buy(self, index: int, series: OHLCVSeries, factors: List[FactorVector]) -> bool:
        self.ensure_prepared(series, factors)
        return self._crossed(index) == 1

    def should_sell(self, index: int, series: OHLCVSeries, factors: List[FactorVector]) -> bool:
        self.ensure_prepared(series, factors)
        return self._crossed(index) == -1


class RSIMeanReversionStrategy(BaseStrategy):
    """
    RSI Mean Reversion

    Buy: RSI below the oversold threshold
    Sell: RSI above the overbought threshold
    Bars without a full RSI window never signal.
    """

    entry_reason = 'rsi oversold'
    exit_reason = 'rsi overbought'

    def __init__(self, period: int = 14, oversold: float = 30, overbought: float = 70):
        self.period = require_period('period', period)
        for label, value in (('oversold', oversold), ('overbought', overbought)):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidConfiguration(f"{label} must be a number, got {value!r}")
        if not 0 <= oversold < overbought <= 100:
            raise InvalidConfiguration('thresholds must satisfy 0 <= oversold < overbought <= 100')
        self.oversold = float(oversold)
        self.overbought = float(overbought)
        super().__init__(
            name="RSI Mean Reversion",
            description=f"RSI {self.period} mean reversion ({self.oversold:g}/{self.overbought:g})",
        )
        self._rsi = np.zeros(0)

    @property
    def parameters(self) -> Dict[str, Any]:
        return {'period': self.period, 'oversold': self.oversold, 'overbought': self.overbought}

    def prepare(self, series: OHLCVSeries, factors: List[FactorVector]) -> None:
        self._rsi = calculate_rsi(series.close, self.period)

    def should_buy(self, index: int, series: OHLCVSeries, factors: List[FactorVector]) -> bool:
        self.ensure_prepared(series, factors)
        return index >= self.period and bool(self._rsi[index] < self.oversold)

    def should_sell(self, index: int, series: OHLCVSeries, factors: List[FactorVector]) -> bool:
        self.ensure_prepared(series, factors)
        return index >= self.period and bool(self._rsi[index] > self.overbought)
