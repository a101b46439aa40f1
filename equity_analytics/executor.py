"""
Analysis Executor

Public entry points over already-loaded series: analyze() for indicators and
risk, run_backtest() for one policy, compare() for a multi-factor ranking.
Nothing here performs I/O.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from .backtester import Backtester, BacktestResult
from .indicators.technicals import FactorVector, compute_factors
from .models import BacktestConfig, IndicatorConfig, StrategyConfig, coerce_config
from .risk import RiskAssessment, RiskMetrics, assess_risk, calculate_risk_metrics
from .scorer import compare
from .series import OHLCVSeries
from .strategies.base import BaseStrategy
from .strategies.builder import build_strategy

logger = logging.getLogger(__name__)

StrategyLike = Union[BaseStrategy, StrategyConfig, Mapping[str, Any]]


@dataclass(frozen=True)
class Analysis:
    """Indicators and risk for one series"""
    factors: List[FactorVector]
    risk: RiskMetrics

    @property
    def latest(self) -> Optional[FactorVector]:
        return self.factors[-1] if self.factors else None

    def assessment(self) -> RiskAssessment:
        return assess_risk(self.risk)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'factors': [f.to_dict() for f in self.factors],
            'risk': self.risk.to_dict(),
        }


def analyze(
    series: OHLCVSeries,
    risk_free_rate: Optional[float] = None,
    indicator_config: Union[None, IndicatorConfig, Mapping[str, Any]] = None,
) -> Analysis:
    """
    Compute every factor vector and the risk metrics for a series

    Args:
        series: OHLCV series
        risk_free_rate: Annual risk-free rate (default from settings)
        indicator_config: Indicator periods (defaults when omitted)

    Returns:
        Analysis; empty factors and a zero risk record for short series
    """
    config = coerce_config(IndicatorConfig, indicator_config)
    factors = compute_factors(series, config)
    risk = calculate_risk_metrics(series, risk_free_rate, config.min_bars)
    if not factors:
        logger.debug(f"{series.symbol or 'series'}: {len(series)} bars, below {config.min_bars}")
    return Analysis(factors=factors, risk=risk)


def resolve_strategy(strategy: StrategyLike) -> BaseStrategy:
    """Accept a policy instance or a strategy configuration record"""
    if isinstance(strategy, BaseStrategy):
        return strategy
    return build_strategy(strategy)


def run_backtest(
    series: OHLCVSeries,
    strategy: StrategyLike,
    config: Union[None, BacktestConfig, Mapping[str, Any]] = None,
) -> BacktestResult:
    """
    Backtest one policy over one series

    Configuration is validated before any simulation starts.

    Args:
        series: OHLCV series
        strategy: BaseStrategy, StrategyConfig or mapping such as
            {'policy': 'rsi', 'params': {'period': 14}}
        config: BacktestConfig or mapping (defaults from settings)

    Returns:
        BacktestResult
    """
    backtester = Backtester(config)
    policy = resolve_strategy(strategy)
    return backtester.run(policy, series)


__all__ = ['Analysis', 'analyze', 'compare', 'resolve_strategy', 'run_backtest']
