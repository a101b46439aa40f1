"""
Technical Indicators Module

NumPy kernels over OHLCV series; tabular output as Polars DataFrames
"""

from .technicals import (
    FACTOR_NAMES,
    FactorVector,
    calculate_all_indicators,
    calculate_atr,
    calculate_bollinger_bands,
    calculate_cci,
    calculate_ema,
    calculate_kdj,
    calculate_macd,
    calculate_momentum,
    calculate_obv,
    calculate_rsi,
    calculate_sma,
    calculate_volatility,
    calculate_volume_ratio,
    calculate_williams_r,
    compute_factors,
    daily_returns,
    latest_factors,
)

__all__ = [
    'FACTOR_NAMES',
    'FactorVector',
    'calculate_all_indicators',
    'calculate_atr',
    'calculate_bollinger_bands',
    'calculate_cci',
    'calculate_ema',
    'calculate_kdj',
    'calculate_macd',
    'calculate_momentum',
    'calculate_obv',
    'calculate_rsi',
    'calculate_sma',
    'calculate_volatility',
    'calculate_volume_ratio',
    'calculate_williams_r',
    'compute_factors',
    'daily_returns',
    'latest_factors',
]
