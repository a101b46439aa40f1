"""
Equity Analytics - Quantitative analysis core for daily equity data

A pip-installable package containing:
- OHLCV series model (Polars-backed, strictly date-ordered)
- Technical indicators (SMA, RSI, MACD, Bollinger, KDJ, CCI, ATR, OBV, etc.)
- Risk metrics (VaR, drawdown, Sharpe/Sortino/Calmar, skew/kurtosis)
- Strategy framework and reference policies (MA cross, breakout, RSI)
- Backtester engine (fees, slippage, stops, trade ledger, equity curve)
- Multi-factor scorer (cross-sectional ranking of instruments)
- Data loading utilities (CSV/Parquet files, RDS, S3)

Used by:
- Batch jobs: compare many instruments
- Request handlers: analyze or backtest one instrument
"""

__version__ = "0.1.0"

from .backtester import Backtester, BacktestResult, RoundTrip, Trade
from .config import Settings, configure_logging, get_settings
from .errors import AnalyticsError, DataUnavailable, InsufficientData, InvalidConfiguration, InvalidSeries
from .executor import Analysis, analyze, compare, run_backtest
from .indicators import FACTOR_NAMES, FactorVector, calculate_all_indicators, compute_factors
from .inputs import (
    FileSeriesProvider, RDSSeriesProvider, S3SeriesProvider, SeriesProvider,
    fetch_many, load_ohlcv_from_file, load_ohlcv_from_rds, load_ohlcv_from_s3,
)
from .models import BacktestConfig, IndicatorConfig, ScoreBoard, ScoreEntry, ScoringConfig, StrategyConfig
from .risk import RiskAssessment, RiskMetrics, assess_risk, calculate_risk_metrics, risk_metrics_from_values
from .scorer import DEFAULT_FACTOR_WEIGHTS, MultiFactorScorer
from .series import Bar, OHLCVSeries
from .strategies import (
    BaseStrategy, BreakoutStrategy, MovingAverageCrossStrategy, RSIMeanReversionStrategy, build_strategy,
)

__all__ = [
    # Public operations
    'analyze',
    'run_backtest',
    'compare',
    'Analysis',
    # Core classes
    'Bar',
    'OHLCVSeries',
    'FactorVector',
    'FACTOR_NAMES',
    'RiskMetrics',
    'RiskAssessment',
    'Backtester',
    'BacktestResult',
    'Trade',
    'RoundTrip',
    'MultiFactorScorer',
    'DEFAULT_FACTOR_WEIGHTS',
    # Engines as functions
    'compute_factors',
    'calculate_all_indicators',
    'calculate_risk_metrics',
    'risk_metrics_from_values',
    'assess_risk',
    # Strategies
    'BaseStrategy',
    'MovingAverageCrossStrategy',
    'BreakoutStrategy',
    'RSIMeanReversionStrategy',
    'build_strategy',
    # Data loading
    'SeriesProvider',
    'FileSeriesProvider',
    'RDSSeriesProvider',
    'S3SeriesProvider',
    'fetch_many',
    'load_ohlcv_from_file',
    'load_ohlcv_from_rds',
    'load_ohlcv_from_s3',
    # Models
    'IndicatorConfig',
    'BacktestConfig',
    'StrategyConfig',
    'ScoringConfig',
    'ScoreEntry',
    'ScoreBoard',
    # Settings and errors
    'Settings',
    'get_settings',
    'configure_logging',
    'AnalyticsError',
    'InsufficientData',
    'DataUnavailable',
    'InvalidConfiguration',
    'InvalidSeries',
]
