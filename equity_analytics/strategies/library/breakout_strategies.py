"""
Breakout Strategies

Channel breakout policies for the Backtest Engine
"""

from typing import Any, Dict, List

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ...indicators.technicals import FactorVector
from ...series import OHLCVSeries
from ..base import BaseStrategy, require_period


class BreakoutStrategy(BaseStrategy):
    """
    N-bar Breakout

    Buy: close above the highest high of the prior N bars
    Sell: close below the lowest low of the prior N bars
    The current bar is excluded from its own channel.
    """

    entry_reason = 'breakout above prior high'
    exit_reason = 'breakdown below prior low'

    def __init__(self, lookback: int = 20):
        self.lookback = require_period('lookback', lookback)
        super().__init__(
            name="Breakout",
            description=f"{self.lookback}-bar channel breakout strategy",
        )
        self._prior_high = np.zeros(0)
        self._prior_low = np.zeros(0)

    @property
    def parameters(self) -> Dict[str, Any]:
        return {'lookback': self.lookback}

    def prepare(self, series: OHLCVSeries, factors: List[FactorVector]) -> None:
        n = len(series)
        self._prior_high = np.full(n, np.inf)
        self._prior_low = np.full(n, -np.inf)
        if n > self.lookback:
            # Row j covers bars j..j+N-1, the prior channel of bar j+N
            self._prior_high[self.lookback:] = sliding_window_view(series.high, self.lookback).max(axis=1)[:-1]
            self._prior_low[self.lookback:] = sliding_window_view(series.low, self.lookback).min(axis=1)[:-1]

    def should_buy(self, index: int, series: OHLCVSeries, factors: List[FactorVector]) -> bool:
        self.ensure_prepared(series, factors)
        return bool(series.close[index] > self._prior_high[index])

    def should_sell(self, index: int, series: OHLCVSeries, factors: List[FactorVector]) -> bool:
        self.ensure_prepared(series, factors)
        return bool(series.close[index] < self._prior_low[index])
