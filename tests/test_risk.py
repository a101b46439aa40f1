import math
from dataclasses import fields

import numpy as np
import pytest

from equity_analytics.config import get_settings
from equity_analytics.risk import (
    RiskMetrics,
    annual_return,
    annual_volatility,
    assess_risk,
    calculate_risk_metrics,
    calmar_ratio,
    capture_ratios,
    downside_deviation,
    kurtosis,
    max_drawdown,
    risk_metrics_from_values,
    sharpe_ratio,
    skewness,
    value_at_risk,
)
from equity_analytics.series import OHLCVSeries


def _all_finite(metrics: RiskMetrics) -> bool:
    return all(math.isfinite(getattr(metrics, f.name)) for f in fields(metrics))


def test_short_series_gives_zero_record(short_series):
    assert calculate_risk_metrics(short_series) == RiskMetrics()


def test_flat_series(flat_series):
    metrics = calculate_risk_metrics(flat_series)

    assert metrics.max_drawdown == 0.0
    assert metrics.annual_volatility == 0.0
    assert metrics.annual_return == 0.0
    assert metrics.sharpe_ratio == 0.0
    assert metrics.calmar_ratio == 0.0
    assert metrics.var_95 == 0.0
    assert _all_finite(metrics)


def test_var_of_symmetric_returns():
    returns = [-0.05 + 0.005 * k for k in range(21)]

    var_95 = value_at_risk(returns, 0.95)

    assert var_95 == pytest.approx(0.045)
    assert 0.04 <= var_95 <= 0.05


def test_var_of_whole_percent_returns():
    # 11 returns -0.05..0.05: floor(11 * 0.05) selects the worst one
    returns = [round(-0.05 + 0.01 * k, 2) for k in range(11)]

    assert value_at_risk(returns, 0.95) == pytest.approx(0.05)
    assert value_at_risk(returns[::-1], 0.95) == pytest.approx(0.05)
    assert value_at_risk(returns, 0.80) == pytest.approx(0.03)


@pytest.mark.parametrize('length,empty', [(29, True), (30, False)])
def test_minimum_length_boundary(length, empty):
    series = OHLCVSeries.from_closes([100.0 + i for i in range(length)])

    metrics = calculate_risk_metrics(series)

    assert (metrics == RiskMetrics()) is empty
    if not empty:
        assert metrics.annual_return > 0
        assert _all_finite(metrics)


def test_var_is_never_negative():
    assert value_at_risk([0.01, 0.02, 0.03], 0.95) == 0.0
    assert value_at_risk([], 0.95) == 0.0


def test_var_99_at_least_var_95(random_walk_series):
    metrics = calculate_risk_metrics(random_walk_series)

    assert metrics.var_99 >= metrics.var_95 > 0


def test_max_drawdown_from_running_peak():
    assert max_drawdown([100, 120, 90, 130]) == pytest.approx(0.25)
    assert max_drawdown([100, 110, 120]) == 0.0
    assert max_drawdown([100, 0]) == 1.0


def test_max_drawdown_non_decreasing_as_lower_bars_append(rising_series):
    closes = list(rising_series.close)
    previous = max_drawdown(closes)
    low = min(closes)
    for step in range(1, 15):
        closes.append(low - step)
        current = max_drawdown(closes)
        assert current >= previous
        previous = current


def test_annual_return_over_one_year():
    values = np.linspace(100.0, 110.0, 365)

    assert annual_return(values) == pytest.approx(0.1)


def test_annual_return_total_loss():
    assert annual_return([100.0, 50.0, 0.0]) == -1.0


def test_annual_volatility_uses_sample_stdev():
    returns = [0.01, -0.01, 0.02, -0.02]

    assert annual_volatility(returns) == pytest.approx(np.std(returns, ddof=1) * math.sqrt(252))


def test_ratios_guard_zero_denominators():
    assert sharpe_ratio(0.1, 0.0, 0.03) == 0.0
    assert calmar_ratio(0.1, 0.0) == 0.0


def test_downside_deviation_only_counts_shortfalls():
    assert downside_deviation([0.01, 0.02], 0.0) == 0.0
    assert downside_deviation([-0.01, 0.02], 0.0) == pytest.approx(0.01 * math.sqrt(252))


def test_moments():
    symmetric = [-0.02, -0.01, 0.0, 0.01, 0.02]

    assert skewness(symmetric) == pytest.approx(0.0, abs=1e-12)
    assert skewness([0.1, 0.2]) == 0.0
    assert kurtosis([0.1, 0.2, 0.3]) == 0.0
    assert kurtosis([0.0, 0.0, 0.0, 0.0]) == 0.0
    assert skewness([0.0, 0.0, 0.0, 1.0]) > 0


def test_capture_ratios_against_own_mean():
    upside, downside = capture_ratios([0.125, 0.25, 0.375])

    assert upside == pytest.approx(150.0)
    assert downside == pytest.approx(50.0)
    assert capture_ratios([0.01, -0.01]) == (0.0, 0.0)


def test_zero_prices_never_leak_nan():
    metrics = risk_metrics_from_values([100.0] * 20 + [0.0] * 20)

    assert _all_finite(metrics)
    assert metrics.max_drawdown == 1.0


def test_random_walk_metrics_are_finite(random_walk_series):
    metrics = calculate_risk_metrics(random_walk_series, risk_free_rate=0.02)

    assert _all_finite(metrics)
    assert 0.0 <= metrics.max_drawdown <= 1.0
    assert metrics.annual_volatility > 0


def test_idempotent(random_walk_series):
    assert calculate_risk_metrics(random_walk_series) == calculate_risk_metrics(random_walk_series)


def test_risk_free_rate_from_environment(monkeypatch, rising_series):
    baseline = calculate_risk_metrics(rising_series)
    monkeypatch.setenv('EQUITY_ANALYTICS_RISK_FREE_RATE', '0.10')
    get_settings.cache_clear()

    assert calculate_risk_metrics(rising_series).sharpe_ratio < baseline.sharpe_ratio


def test_equity_curve_input():
    curve = OHLCVSeries.from_closes([100.0 + (i % 5) for i in range(40)]).close

    assert _all_finite(risk_metrics_from_values(curve))


def test_assess_risk_bands():
    calm = assess_risk(RiskMetrics(max_drawdown=0.02, sharpe_ratio=1.5))
    assert (calm.risk_level, calm.return_rating) == ('low', 'excellent')
    assert calm.advice == 'Risk/return balance is reasonable'

    middling = assess_risk(RiskMetrics(max_drawdown=0.2, sharpe_ratio=0.2))
    assert (middling.risk_level, middling.return_rating) == ('medium', 'fair')
    assert middling.advice.startswith('Low risk-adjusted return')

    rough = assess_risk(RiskMetrics(max_drawdown=0.4, sharpe_ratio=-0.5))
    assert (rough.risk_level, rough.return_rating) == ('high', 'poor')
    assert rough.advice.startswith('High risk')
