"""
OHLCV Series

Immutable, strictly date-ordered daily bars backed by a Polars DataFrame.
Every engine in the package consumes this type.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import numpy as np
import polars as pl

from .errors import InvalidSeries

OHLCV_COLUMNS = ('date', 'open', 'high', 'low', 'close', 'volume')
PRICE_COLUMNS = ('open', 'high', 'low', 'close', 'volume')


@dataclass(frozen=True)
class Bar:
    """One OHLCV record for a single trading day"""
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float


def _normalize_frame(df: pl.DataFrame) -> pl.DataFrame:
    """Coerce a raw OHLCV frame to the canonical schema, sorted by date"""
    if 'date' not in df.columns:
        # Loader frames often carry the bar time as ts/timestamp
        source = next((c for c in ('ts', 'timestamp') if c in df.columns), None)
        if source is None:
            raise InvalidSeries("OHLCV data needs a 'date', 'ts' or 'timestamp' column")
        df = df.with_columns(pl.col(source).alias('date'))

    missing = [c for c in PRICE_COLUMNS if c not in df.columns]
    if missing:
        raise InvalidSeries(f"OHLCV data is missing columns: {missing}")

    dtype = df.schema['date']
    if dtype == pl.Utf8:
        date_expr = pl.col('date').str.to_date(strict=False)
    elif isinstance(dtype, pl.Datetime):
        date_expr = pl.col('date').dt.date()
    else:
        date_expr = pl.col('date').cast(pl.Date, strict=False)

    try:
        df = df.select(
            [date_expr.alias('date')]
            + [pl.col(c).cast(pl.Float64, strict=False) for c in PRICE_COLUMNS]
        )
    except pl.exceptions.PolarsError as e:
        raise InvalidSeries(f"OHLCV data could not be parsed: {e}") from e

    null_counts = df.null_count().row(0, named=True)
    bad = [c for c, n in null_counts.items() if n]
    if bad:
        raise InvalidSeries(f"OHLCV data has null or unparseable values in: {bad}")

    non_finite = df.select(
        [(pl.col(c).is_nan() | pl.col(c).is_infinite()).any() for c in PRICE_COLUMNS]
    ).row(0, named=True)
    bad = [c for c, flagged in non_finite.items() if flagged]
    if bad:
        raise InvalidSeries(f"OHLCV data has NaN or infinite values in: {bad}")

    df = df.sort('date')
    if df.height and df['date'].is_duplicated().any():
        raise InvalidSeries("OHLCV data has duplicate bar dates")
    return df


class OHLCVSeries:
    """
    Ordered sequence of daily bars for one instrument

    The backing frame is never mutated; slicing and appending return new
    series. Column arrays are exposed read-only for the numeric kernels.
    """

    def __init__(self, data: pl.DataFrame, symbol: Optional[str] = None):
        self._frame = _normalize_frame(data)
        self.symbol = symbol
        self._columns: Dict[str, np.ndarray] = {}
        for name in PRICE_COLUMNS:
            arr = self._frame[name].to_numpy().astype(float, copy=True)
            arr.flags.writeable = False
            self._columns[name] = arr
        self._dates: List[date] = self._frame['date'].to_list()

    @classmethod
    def from_bars(cls, bars: Iterable[Bar], symbol: Optional[str] = None) -> 'OHLCVSeries':
        rows = [
            {'date': b.date, 'open': b.open, 'high': b.high, 'low': b.low,
             'close': b.close, 'volume': b.volume}
            for b in bars
        ]
        return cls.from_records(rows, symbol=symbol)

    @classmethod
    def from_records(
        cls,
        rows: Iterable[Mapping[str, Any]],
        symbol: Optional[str] = None,
    ) -> 'OHLCVSeries':
        rows = list(rows)
        if not rows:
            return cls(_empty_frame(), symbol=symbol)
        return cls(pl.DataFrame(rows), symbol=symbol)

    @classmethod
    def from_closes(
        cls,
        closes: Iterable[float],
        start: Union[date, datetime] = date(2024, 1, 1),
        volume: float = 1_000_000.0,
        symbol: Optional[str] = None,
    ) -> 'OHLCVSeries':
        """Build a close-only series (open=high=low=close) on consecutive days"""
        closes = [float(c) for c in closes]
        if not closes:
            return cls(_empty_frame(), symbol=symbol)
        if isinstance(start, datetime):
            start = start.date()
        frame = pl.DataFrame({
            'date': [start + timedelta(days=i) for i in range(len(closes))],
            'open': closes,
            'high': closes,
            'low': closes,
            'close': closes,
            'volume': [float(volume)] * len(closes),
        })
        return cls(frame, symbol=symbol)

    # Accessors

    @property
    def frame(self) -> pl.DataFrame:
        return self._frame

    @property
    def dates(self) -> List[date]:
        return self._dates

    @property
    def open(self) -> np.ndarray:
        return self._columns['open']

    @property
    def high(self) -> np.ndarray:
        return self._columns['high']

    @property
    def low(self) -> np.ndarray:
        return self._columns['low']

    @property
    def close(self) -> np.ndarray:
        return self._columns['close']

    @property
    def volume(self) -> np.ndarray:
        return self._columns['volume']

    def __len__(self) -> int:
        return self._frame.height

    def __getitem__(self, index: int) -> Bar:
        if index < 0:
            index += len(self)
        if not 0 <= index < len(self):
            raise IndexError(f"bar index {index} out of range")
        return Bar(
            date=self._dates[index],
            open=float(self.open[index]),
            high=float(self.high[index]),
            low=float(self.low[index]),
            close=float(self.close[index]),
            volume=float(self.volume[index]),
        )

    def __iter__(self) -> Iterator[Bar]:
        for i in range(len(self)):
            yield self[i]

    def __repr__(self) -> str:
        span = f"{self._dates[0]}..{self._dates[-1]}" if self._dates else "empty"
        return f"OHLCVSeries(symbol={self.symbol!r}, bars={len(self)}, {span})"

    # Derived series

    def head(self, n: int) -> 'OHLCVSeries':
        """First n bars (what the market looked like at bar n-1)"""
        return OHLCVSeries(self._frame.head(max(n, 0)), symbol=self.symbol)

    def append(self, bars: Iterable[Bar]) -> 'OHLCVSeries':
        extra = OHLCVSeries.from_bars(bars)
        if len(extra) and len(self) and extra.dates[0] <= self._dates[-1]:
            raise InvalidSeries("appended bars must be dated after the last bar")
        return OHLCVSeries(pl.concat([self._frame, extra.frame]), symbol=self.symbol)


def _empty_frame() -> pl.DataFrame:
    return pl.DataFrame(
        schema={
            'date': pl.Date, 'open': pl.Float64, 'high': pl.Float64,
            'low': pl.Float64, 'close': pl.Float64, 'volume': pl.Float64,
        }
    )
