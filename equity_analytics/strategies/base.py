"""
Base Strategy Class

A strategy is a policy the Backtest Engine consults once per bar:
should_buy() while flat, should_sell() while long. Policies precompute
whatever arrays they need in prepare(), which the engine calls once per run.
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..errors import InvalidConfiguration
from ..indicators.technicals import FactorVector
from ..series import OHLCVSeries


class BaseStrategy(ABC):
    """
    Base class for all trading policies

    Subclasses set `entry_reason`/`exit_reason` and implement prepare(),
    should_buy() and should_sell(). Signals at index i may only use bars 0..i.
    """

    entry_reason = 'signal'
    exit_reason = 'signal'

    def __init__(self, name: str, description: Optional[str] = None):
        self.name = name
        self.description = description or name
        self._prepared_for: Optional[OHLCVSeries] = None

    @property
    @abstractmethod
    def parameters(self) -> Dict[str, Any]:
        """Policy parameters as a plain dict"""

    @abstractmethod
    def prepare(self, series: OHLCVSeries, factors: List[FactorVector]) -> None:
        """
        Precompute per-bar inputs for one run

        Args:
            series: Series about to be backtested
            factors: Indicator Engine output for the series (may be empty)
        """

    @abstractmethod
    def should_buy(self, index: int, series: OHLCVSeries, factors: List[FactorVector]) -> bool:
        """Entry check for bar `index` while flat"""

    @abstractmethod
    def should_sell(self, index: int, series: OHLCVSeries, factors: List[FactorVector]) -> bool:
        """Exit check for bar `index` while long"""

    def ensure_prepared(self, series: OHLCVSeries, factors: List[FactorVector]) -> None:
        """Run prepare() unless it already ran for this series"""
        if self._prepared_for is not series:
            self.prepare(series, factors)
            self._prepared_for = series

    def buy_reason(self, index: int) -> str:
        return self.entry_reason

    def sell_reason(self, index: int) -> str:
        return self.exit_reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'parameters': self.parameters,
        }

    def __repr__(self) -> str:
        params = ', '.join(f"{k}={v}" for k, v in self.parameters.items())
        return f"{type(self).__name__}({params})"


def require_period(name: str, value: Any) -> int:
    """Validate a look-back parameter eagerly"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")
    if not math.isfinite(value) or value <= 0 or value != int(value):
        raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")
    return int(value)
