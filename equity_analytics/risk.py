"""
Risk Metrics Engine

Distributional, drawdown and risk-adjusted return statistics over a price
series or an equity curve. Short input yields an all-zero record, and any
non-finite intermediate is reported as 0.
"""

import math
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

from .config import get_settings
from .indicators.technicals import daily_returns
from .series import OHLCVSeries

TRADING_DAYS = 252
CALENDAR_DAYS = 365


def _finite(value: float) -> float:
    value = float(value)
    return value if math.isfinite(value) else 0.0


@dataclass(frozen=True)
class RiskMetrics:
    """Aggregate risk statistics for one series"""
    annual_return: float = 0.0
    annual_volatility: float = 0.0
    var_95: float = 0.0
    var_99: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0
    downside_deviation: float = 0.0
    skewness: float = 0.0
    kurtosis: float = 0.0
    # Measured against the series' own mean return, not a benchmark index
    upside_capture: float = 0.0
    downside_capture: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class RiskAssessment:
    """Qualitative reading of a RiskMetrics record"""
    risk_level: str
    return_rating: str
    advice: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def period_returns(values) -> np.ndarray:
    """Simple returns between consecutive values (length n-1)"""
    return daily_returns(values)[1:]


def annual_return(values) -> float:
    """
    Annualize the total return over len(values) calendar days

    A total loss (return at or below -100%) reads -1.
    """
    v = np.asarray(values, dtype=float)
    if len(v) < 2 or v[0] == 0:
        return 0.0
    total = v[-1] / v[0] - 1.0
    if total <= -1.0:
        return -1.0
    return _finite((1.0 + total) ** (CALENDAR_DAYS / len(v)) - 1.0)


def annual_volatility(returns) -> float:
    """Sample standard deviation of returns scaled by sqrt(252)"""
    r = np.asarray(returns, dtype=float)
    if len(r) < 2:
        return 0.0
    return _finite(r.std(ddof=1) * math.sqrt(TRADING_DAYS))


def value_at_risk(returns, confidence: float = 0.95) -> float:
    """
    Historical one-day VaR as a non-negative loss magnitude

    Args:
        returns: Daily returns
        confidence: Confidence level (e.g., 0.95)

    Returns:
        -sorted(returns)[floor(n * (1 - confidence))], floored at 0
    """
    r = np.sort(np.asarray(returns, dtype=float))
    if len(r) == 0:
        return 0.0
    index = int(len(r) * (1.0 - confidence))
    index = min(max(index, 0), len(r) - 1)
    return max(_finite(-r[index]), 0.0)


def max_drawdown(values) -> float:
    """Largest peak-to-trough decline as a fraction of the running peak, in [0, 1]"""
    v = np.asarray(values, dtype=float)
    if len(v) == 0:
        return 0.0
    peak = np.maximum.accumulate(v)
    drawdown = np.divide(peak - v, peak, out=np.zeros(len(v)), where=peak > 0)
    return float(np.clip(drawdown.max(), 0.0, 1.0))


def downside_deviation(returns, risk_free_rate: float) -> float:
    """RMS shortfall below the daily risk-free rate, annualized by sqrt(252)"""
    r = np.asarray(returns, dtype=float)
    shortfall = r[r < risk_free_rate / TRADING_DAYS] - risk_free_rate / TRADING_DAYS
    if len(shortfall) == 0:
        return 0.0
    return _finite(math.sqrt(np.mean(shortfall ** 2)) * math.sqrt(TRADING_DAYS))


def sharpe_ratio(annual_ret: float, volatility: float, risk_free_rate: float) -> float:
    if volatility == 0:
        return 0.0
    return _finite((annual_ret - risk_free_rate) / volatility)


def sortino_ratio(annual_ret: float, downside_dev: float, risk_free_rate: float) -> float:
    if downside_dev == 0:
        return 0.0
    return _finite((annual_ret - risk_free_rate) / downside_dev)


def calmar_ratio(annual_ret: float, drawdown: float) -> float:
    if drawdown == 0:
        return 0.0
    return _finite(annual_ret / drawdown)


def _central_moments(r: np.ndarray) -> Tuple[float, float, float]:
    deviations = r - r.mean()
    return (
        float(np.mean(deviations ** 2)),
        float(np.mean(deviations ** 3)),
        float(np.mean(deviations ** 4)),
    )


def skewness(returns) -> float:
    """Population third standardized moment; 0 for fewer than 3 returns"""
    r = np.asarray(returns, dtype=float)
    if len(r) < 3:
        return 0.0
    m2, m3, _ = _central_moments(r)
    if m2 == 0:
        return 0.0
    return _finite(m3 / m2 ** 1.5)


def kurtosis(returns) -> float:
    """Population excess kurtosis (normal = 0); 0 for fewer than 4 returns"""
    r = np.asarray(returns, dtype=float)
    if len(r) < 4:
        return 0.0
    m2, _, m4 = _central_moments(r)
    if m2 == 0:
        return 0.0
    return _finite(m4 / m2 ** 2 - 3.0)


def capture_ratios(returns) -> Tuple[float, float]:
    """
    Self-referential capture ratios

    Mean of the returns strictly above (upside) and strictly below
    (downside) the batch's own mean, each as a percentage of that mean.
    This is not a benchmark capture ratio; there is no external index.
    """
    r = np.asarray(returns, dtype=float)
    if len(r) == 0:
        return 0.0, 0.0
    mean = float(r.mean())
    if mean == 0:
        return 0.0, 0.0
    above = r[r > mean]
    below = r[r < mean]
    upside = above.mean() / mean * 100 if len(above) else 0.0
    downside = below.mean() / mean * 100 if len(below) else 0.0
    return _finite(upside), _finite(downside)


def risk_metrics_from_values(
    values: Union[Sequence[float], np.ndarray],
    risk_free_rate: Optional[float] = None,
    min_bars: Optional[int] = None,
) -> RiskMetrics:
    """
    Risk metrics over any value path (closes or an equity curve)

    Args:
        values: Prices or portfolio values, oldest first
        risk_free_rate: Annual risk-free rate (default from settings, 0.03)
        min_bars: Shortest input that produces metrics (default 30)

    Returns:
        RiskMetrics; all zero when the input is too short
    """
    settings = get_settings()
    rf = settings.risk_free_rate if risk_free_rate is None else risk_free_rate
    min_bars = settings.min_bars if min_bars is None else min_bars

    v = np.asarray(values, dtype=float)
    if len(v) < max(min_bars, 2):
        return RiskMetrics()

    r = period_returns(v)
    ann_ret = annual_return(v)
    vol = annual_volatility(r)
    mdd = max_drawdown(v)
    dd = downside_deviation(r, rf)
    upside, downside = capture_ratios(r)

    return RiskMetrics(
        annual_return=ann_ret,
        annual_volatility=vol,
        var_95=value_at_risk(r, 0.95),
        var_99=value_at_risk(r, 0.99),
        max_drawdown=mdd,
        sharpe_ratio=sharpe_ratio(ann_ret, vol, rf),
        sortino_ratio=sortino_ratio(ann_ret, dd, rf),
        calmar_ratio=calmar_ratio(ann_ret, mdd),
        downside_deviation=dd,
        skewness=skewness(r),
        kurtosis=kurtosis(r),
        upside_capture=upside,
        downside_capture=downside,
    )


def calculate_risk_metrics(
    series: OHLCVSeries,
    risk_free_rate: Optional[float] = None,
    min_bars: Optional[int] = None,
) -> RiskMetrics:
    """Risk metrics over the close prices of a series"""
    return risk_metrics_from_values(series.close, risk_free_rate, min_bars)


def assess_risk(metrics: RiskMetrics) -> RiskAssessment:
    """Grade drawdown risk and Sharpe-based return quality"""
    mdd = metrics.max_drawdown
    if mdd < 0.05:
        risk_level = 'low'
    elif mdd < 0.15:
        risk_level = 'medium-low'
    elif mdd < 0.25:
        risk_level = 'medium'
    elif mdd < 0.35:
        risk_level = 'medium-high'
    else:
        risk_level = 'high'

    sharpe = metrics.sharpe_ratio
    if sharpe > 1.0:
        return_rating = 'excellent'
    elif sharpe > 0.5:
        return_rating = 'good'
    elif sharpe > 0.0:
        return_rating = 'fair'
    else:
        return_rating = 'poor'

    if mdd > 0.25:
        advice = 'High risk: reduce position size or tighten stop losses'
    elif sharpe < 0.3:
        advice = 'Low risk-adjusted return: consider refining the strategy'
    else:
        advice = 'Risk/return balance is reasonable'

    return RiskAssessment(risk_level=risk_level, return_rating=return_rating, advice=advice)
