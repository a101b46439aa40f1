"""
Technical Indicators

Per-bar factor calculations over an OHLCV series. Every reading at index i
uses bars 0..i only. Readings whose window is not yet full carry a sentinel
(0, 50 or -50) instead of NaN, and every division is guarded the same way.
"""

from dataclasses import asdict, dataclass, fields
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np
import polars as pl
from numpy.lib.stride_tricks import sliding_window_view

from ..models import IndicatorConfig, coerce_config
from ..series import OHLCVSeries

SMA_WINDOWS = (5, 10, 20, 30, 60)

KDJ_WEIGHT_PRIOR = 0.67
KDJ_WEIGHT_NEW = 0.33
KDJ_SEED = 50.0


@dataclass(frozen=True)
class FactorVector:
    """Full set of indicator readings for one bar"""
    date: date
    close: float
    volume: float
    sma_5: float
    sma_10: float
    sma_20: float
    sma_30: float
    sma_60: float
    momentum: float
    volatility: float
    volume_ratio: float
    rsi: float
    macd: float
    macd_signal: float
    macd_histogram: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    bb_width: float
    bb_position: float
    kdj_k: float
    kdj_d: float
    kdj_j: float
    williams_r: float
    cci: float
    atr: float
    obv: float

    def value(self, name: str) -> float:
        """Numeric reading by factor name"""
        if name not in FACTOR_NAMES:
            raise KeyError(f"Unknown factor: {name}")
        return getattr(self, name)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


FACTOR_NAMES = tuple(f.name for f in fields(FactorVector) if f.name != 'date')


def _as_array(values) -> np.ndarray:
    return np.asarray(values, dtype=float)


def calculate_sma(closes, period: int) -> np.ndarray:
    """
    Simple Moving Average

    Args:
        closes: Close prices
        period: Window length

    Returns:
        Array aligned to closes; 0 until `period` bars are available
    """
    c = _as_array(closes)
    out = np.zeros(len(c))
    if period <= 0 or len(c) < period:
        return out
    out[period - 1:] = sliding_window_view(c, period).mean(axis=1)
    return out


def calculate_momentum(closes, period: int = 10) -> np.ndarray:
    """Percent change versus `period` bars ago; 0 until i >= period"""
    c = _as_array(closes)
    out = np.zeros(len(c))
    if period <= 0 or len(c) <= period:
        return out
    base = c[:-period]
    change = np.divide(c[period:] - base, base, out=np.zeros(len(base)), where=base != 0)
    out[period:] = change * 100
    return out


def daily_returns(closes) -> np.ndarray:
    """Simple returns aligned to closes (r[0] = 0, zero prior close gives 0)"""
    c = _as_array(closes)
    out = np.zeros(len(c))
    if len(c) < 2:
        return out
    prev = c[:-1]
    out[1:] = np.divide(c[1:] - prev, prev, out=np.zeros(len(prev)), where=prev != 0)
    return out


def calculate_volatility(closes, window: int = 20) -> np.ndarray:
    """
    Rolling volatility of daily returns

    Population standard deviation of the trailing `window` returns, in
    percent. Not annualized; callers scale as they need.

    Returns:
        Array aligned to closes; 0 until i >= window
    """
    c = _as_array(closes)
    out = np.zeros(len(c))
    if window <= 1 or len(c) <= window:
        return out
    r = daily_returns(c)[1:]
    out[window:] = sliding_window_view(r, window).std(axis=1) * 100
    return out


def calculate_volume_ratio(volumes, window: int = 20) -> np.ndarray:
    """Current volume over its trailing mean; 0 when the mean is 0"""
    v = _as_array(volumes)
    out = np.zeros(len(v))
    if window <= 0 or len(v) < window:
        return out
    avg = sliding_window_view(v, window).mean(axis=1)
    cur = v[window - 1:]
    out[window - 1:] = np.divide(cur, avg, out=np.zeros(len(avg)), where=avg > 0)
    return out


def calculate_rsi(closes, period: int = 14) -> np.ndarray:
    """
    Relative Strength Index

    Simple averages of the last `period` close-to-close gains and losses.
    A window with no losses reads 100; a window with no movement at all
    reads 50.

    Args:
        closes: Close prices
        period: RSI period (default: 14)

    Returns:
        Array aligned to closes; 50 until i >= period
    """
    c = _as_array(closes)
    n = len(c)
    out = np.full(n, 50.0)
    if period <= 0 or n <= period:
        return out

    deltas = sliding_window_view(np.diff(c), period)
    gains = np.clip(deltas, 0, None).sum(axis=1)
    losses = np.clip(-deltas, 0, None).sum(axis=1)

    rsi = np.full(len(gains), 50.0)
    moved = (gains + losses) > 0
    no_loss = moved & (losses == 0)
    rsi[no_loss] = 100.0
    mixed = moved & (losses > 0)
    rs = (gains[mixed] / period) / (losses[mixed] / period)
    rsi[mixed] = 100.0 - 100.0 / (1.0 + rs)

    out[period:] = rsi
    return out


def _windowed_ema(values: np.ndarray, period: int, first_valid: int = 0) -> np.ndarray:
    """
    EMA over a trailing window, seeded with the first value inside the window

    `values` are meaningful from `first_valid` onward. Output is 0 until a
    full window of meaningful values exists.
    """
    n = len(values)
    out = np.zeros(n)
    alpha = 2.0 / (period + 1)
    for i in range(first_valid + period - 1, n):
        ema = values[i - period + 1]
        for k in range(i - period + 2, i + 1):
            ema = values[k] * alpha + ema * (1 - alpha)
        out[i] = ema
    return out


def calculate_ema(closes, period: int) -> np.ndarray:
    """Windowed EMA with smoothing 2/(period+1); 0 until period bars exist"""
    c = _as_array(closes)
    if period <= 0:
        return np.zeros(len(c))
    return _windowed_ema(c, period)


def calculate_macd(
    closes,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> Dict[str, np.ndarray]:
    """
    MACD (Moving Average Convergence Divergence)

    Args:
        closes: Close prices
        fast_period: Fast EMA period (default: 12)
        slow_period: Slow EMA period (default: 26)
        signal_period: Signal line period (default: 9)

    Returns:
        Dict with 'macd', 'macd_signal', 'macd_histogram' arrays. The MACD
        line is 0 until the slow EMA exists; signal and histogram are 0 until
        `signal_period` MACD values exist.
    """
    c = _as_array(closes)
    n = len(c)
    macd = np.zeros(n)
    signal = np.zeros(n)
    histogram = np.zeros(n)

    start = slow_period - 1
    if n > start:
        fast = _windowed_ema(c, fast_period)
        slow = _windowed_ema(c, slow_period)
        macd[start:] = fast[start:] - slow[start:]

        signal = _windowed_ema(macd, signal_period, first_valid=start)
        ready = start + signal_period - 1
        if n > ready:
            histogram[ready:] = macd[ready:] - signal[ready:]

    return {'macd': macd, 'macd_signal': signal, 'macd_histogram': histogram}


def calculate_bollinger_bands(closes, period: int = 20, std_dev: float = 2.0) -> Dict[str, np.ndarray]:
    """
    Bollinger Bands

    Middle = SMA(period); bands at +/- std_dev population standard deviations.
    Width is the band spread as a percent of the middle; position is where the
    close sits inside the bands (50 when the bands collapse).

    Returns:
        Dict with 'bb_upper', 'bb_middle', 'bb_lower', 'bb_width', 'bb_position'
    """
    c = _as_array(closes)
    n = len(c)
    result = {k: np.zeros(n) for k in ('bb_upper', 'bb_middle', 'bb_lower', 'bb_width')}
    result['bb_position'] = np.full(n, 50.0)
    if period <= 0 or n < period:
        return result

    windows = sliding_window_view(c, period)
    middle = windows.mean(axis=1)
    band = std_dev * windows.std(axis=1)
    upper = middle + band
    lower = middle - band
    spread = upper - lower
    cur = c[period - 1:]

    width = np.divide(spread, middle, out=np.zeros(len(middle)), where=middle != 0) * 100
    position = np.full(len(middle), 50.0)
    open_bands = spread != 0
    position[open_bands] = (cur[open_bands] - lower[open_bands]) / spread[open_bands] * 100

    result['bb_upper'][period - 1:] = upper
    result['bb_middle'][period - 1:] = middle
    result['bb_lower'][period - 1:] = lower
    result['bb_width'][period - 1:] = width
    result['bb_position'][period - 1:] = position
    return result


def _rolling_extremes(highs: np.ndarray, lows: np.ndarray, period: int):
    return (
        sliding_window_view(highs, period).max(axis=1),
        sliding_window_view(lows, period).min(axis=1),
    )


def calculate_kdj(highs, lows, closes, period: int = 9, mode: str = 'simplified') -> Dict[str, np.ndarray]:
    """
    KDJ stochastic oscillator

    RSV = (close - low_n) / (high_n - low_n) * 100, 50 for a flat range.
    K = 0.67 * prior_K + 0.33 * RSV and D = 0.67 * prior_D + 0.33 * K.

    In 'simplified' mode the prior K/D are the neutral seed 50 on every bar,
    so each bar depends only on its own RSV. In 'recursive' mode the prior
    values are the previous bar's K/D (seeded at 50).

    Returns:
        Dict with 'kdj_k', 'kdj_d', 'kdj_j'; all 50 until `period` bars exist
    """
    h, l, c = _as_array(highs), _as_array(lows), _as_array(closes)
    n = len(c)
    k_out = np.full(n, KDJ_SEED)
    d_out = np.full(n, KDJ_SEED)
    j_out = np.full(n, KDJ_SEED)
    if period <= 0 or n < period:
        return {'kdj_k': k_out, 'kdj_d': d_out, 'kdj_j': j_out}

    high_n, low_n = _rolling_extremes(h, l, period)
    span = high_n - low_n
    cur = c[period - 1:]
    rsv = np.full(len(span), 50.0)
    ranged = span != 0
    rsv[ranged] = (cur[ranged] - low_n[ranged]) / span[ranged] * 100
    rsv = np.clip(rsv, 0.0, 100.0)

    if mode == 'recursive':
        k = np.empty(len(rsv))
        d = np.empty(len(rsv))
        prev_k = prev_d = KDJ_SEED
        for idx, value in enumerate(rsv):
            prev_k = KDJ_WEIGHT_PRIOR * prev_k + KDJ_WEIGHT_NEW * value
            prev_d = KDJ_WEIGHT_PRIOR * prev_d + KDJ_WEIGHT_NEW * prev_k
            k[idx] = prev_k
            d[idx] = prev_d
    else:
        k = KDJ_WEIGHT_PRIOR * KDJ_SEED + KDJ_WEIGHT_NEW * rsv
        d = KDJ_WEIGHT_PRIOR * KDJ_SEED + KDJ_WEIGHT_NEW * k

    k = np.clip(k, 0.0, 100.0)
    d = np.clip(d, 0.0, 100.0)
    k_out[period - 1:] = k
    d_out[period - 1:] = d
    j_out[period - 1:] = 3 * k - 2 * d
    return {'kdj_k': k_out, 'kdj_d': d_out, 'kdj_j': j_out}


def calculate_williams_r(highs, lows, closes, period: int = 14) -> np.ndarray:
    """Williams %R in [-100, 0]; -50 until period bars exist or for a flat range"""
    h, l, c = _as_array(highs), _as_array(lows), _as_array(closes)
    n = len(c)
    out = np.full(n, -50.0)
    if period <= 0 or n < period:
        return out

    high_n, low_n = _rolling_extremes(h, l, period)
    span = high_n - low_n
    cur = c[period - 1:]
    wr = np.full(len(span), -50.0)
    ranged = span != 0
    wr[ranged] = (high_n[ranged] - cur[ranged]) / span[ranged] * -100
    out[period - 1:] = np.clip(wr, -100.0, 0.0)
    return out


def calculate_cci(highs, lows, closes, period: int = 20) -> np.ndarray:
    """Commodity Channel Index; 0 until period bars exist or when deviation is 0"""
    h, l, c = _as_array(highs), _as_array(lows), _as_array(closes)
    n = len(c)
    out = np.zeros(n)
    if period <= 0 or n < period:
        return out

    typical = (h + l + c) / 3
    windows = sliding_window_view(typical, period)
    mean_tp = windows.mean(axis=1)
    mad = np.abs(windows - mean_tp[:, None]).mean(axis=1)
    cur = typical[period - 1:]
    out[period - 1:] = np.divide(cur - mean_tp, 0.015 * mad, out=np.zeros(len(mad)), where=mad != 0)
    return out


def true_range(highs, lows, closes) -> np.ndarray:
    """TR[0] = high - low; afterwards max of the range and both gaps to the prior close"""
    h, l, c = _as_array(highs), _as_array(lows), _as_array(closes)
    tr = h - l
    if len(c) > 1:
        prev_close = c[:-1]
        tr[1:] = np.maximum.reduce([
            h[1:] - l[1:],
            np.abs(h[1:] - prev_close),
            np.abs(prev_close - l[1:]),
        ])
    return tr


def calculate_atr(highs, lows, closes, period: int = 14) -> np.ndarray:
    """Average True Range as the simple mean of the trailing `period` TRs"""
    tr = true_range(highs, lows, closes)
    out = np.zeros(len(tr))
    if period <= 0 or len(tr) < period:
        return out
    out[period - 1:] = sliding_window_view(tr, period).mean(axis=1)
    return out


def calculate_obv(closes, volumes) -> np.ndarray:
    """On-Balance Volume; OBV[0] = volume[0]"""
    c, v = _as_array(closes), _as_array(volumes)
    out = np.zeros(len(c))
    if len(c) == 0:
        return out
    signed = np.sign(np.diff(c)) * v[1:]
    out[0] = v[0]
    out[1:] = v[0] + np.cumsum(signed)
    return out


def _indicator_arrays(series: OHLCVSeries, config: IndicatorConfig) -> Dict[str, np.ndarray]:
    h, l, c, v = series.high, series.low, series.close, series.volume
    arrays: Dict[str, np.ndarray] = {
        'close': np.array(c, dtype=float),
        'volume': np.array(v, dtype=float),
    }
    for window in SMA_WINDOWS:
        arrays[f'sma_{window}'] = calculate_sma(c, window)
    arrays['momentum'] = calculate_momentum(c, config.momentum_period)
    arrays['volatility'] = calculate_volatility(c, config.volatility_window)
    arrays['volume_ratio'] = calculate_volume_ratio(v, config.volume_window)
    arrays['rsi'] = calculate_rsi(c, config.rsi_period)
    arrays.update(calculate_macd(c, config.macd_fast, config.macd_slow, config.macd_signal))
    arrays.update(calculate_bollinger_bands(c, config.bollinger_period, config.bollinger_std))
    arrays.update(calculate_kdj(h, l, c, config.kdj_period, config.kdj_mode))
    arrays['williams_r'] = calculate_williams_r(h, l, c, config.williams_period)
    arrays['cci'] = calculate_cci(h, l, c, config.cci_period)
    arrays['atr'] = calculate_atr(h, l, c, config.atr_period)
    arrays['obv'] = calculate_obv(c, v)
    return arrays


ConfigLike = Union[None, IndicatorConfig, Mapping[str, Any]]


def calculate_all_indicators(series: OHLCVSeries, config: ConfigLike = None) -> pl.DataFrame:
    """
    Calculate every factor for every bar

    Args:
        series: OHLCV series
        config: IndicatorConfig (or mapping); defaults apply when omitted

    Returns:
        DataFrame with a 'date' column plus one column per factor. Empty
        (zero rows, full schema) when the series is shorter than min_bars.
    """
    config = coerce_config(IndicatorConfig, config)
    if len(series) < config.min_bars:
        schema = {'date': pl.Date, **{name: pl.Float64 for name in FACTOR_NAMES}}
        return pl.DataFrame(schema=schema)

    arrays = _indicator_arrays(series, config)
    return pl.DataFrame({'date': series.dates, **{name: arrays[name] for name in FACTOR_NAMES}})


def compute_factors(series: OHLCVSeries, config: ConfigLike = None) -> List[FactorVector]:
    """
    Factor vectors for every bar

    Returns an empty list when the series is shorter than min_bars (no
    partial output).
    """
    config = coerce_config(IndicatorConfig, config)
    if len(series) < config.min_bars:
        return []

    arrays = _indicator_arrays(series, config)
    columns = [arrays[name] for name in FACTOR_NAMES]
    return [
        FactorVector(series.dates[i], *(float(col[i]) for col in columns))
        for i in range(len(series))
    ]


def latest_factors(series: OHLCVSeries, config: ConfigLike = None) -> Optional[FactorVector]:
    """Factor vector for the last bar, or None for an insufficient series"""
    factors = compute_factors(series, config)
    return factors[-1] if factors else None
