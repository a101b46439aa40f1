"""
Data Input Utilities

Load OHLCV data from local files, RDS (PostgreSQL) or S3 into OHLCVSeries.
These are the data-provider collaborators; the engines never call them.
Fetch failures raise DataUnavailable and are not retried here.
"""

import logging
import os
import re
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, Union

import boto3
import polars as pl

from .config import get_settings
from .errors import AnalyticsError, DataUnavailable, InsufficientData, InvalidConfiguration
from .series import OHLCVSeries

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$')


def _to_series(
    df: pl.DataFrame,
    symbol: Optional[str],
    start_date: Optional[date],
    end_date: Optional[date],
) -> OHLCVSeries:
    """Filter a raw loader frame to one symbol and date range and normalize it"""
    if symbol is not None and 'symbol' in df.columns:
        df = df.filter(pl.col('symbol') == symbol)
    series = OHLCVSeries(df, symbol=symbol)
    if start_date is None and end_date is None:
        return series

    frame = series.frame
    if start_date is not None:
        frame = frame.filter(pl.col('date') >= start_date)
    if end_date is not None:
        frame = frame.filter(pl.col('date') <= end_date)
    return OHLCVSeries(frame, symbol=symbol)


def load_ohlcv_from_file(
    path: Union[str, Path],
    symbol: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> OHLCVSeries:
    """
    Load OHLCV data from a CSV or Parquet file

    Args:
        path: File path (.csv or .parquet)
        symbol: Keep only rows for this symbol when the file has a 'symbol' column
        start_date: Filter start date (inclusive, optional)
        end_date: Filter end date (inclusive, optional)

    Returns:
        OHLCVSeries

    Raises:
        DataUnavailable: missing or unreadable file, or no rows left
    """
    path = Path(path)
    try:
        if path.suffix.lower() == '.parquet':
            df = pl.read_parquet(path)
        else:
            df = pl.read_csv(path, try_parse_dates=True)
    except (OSError, pl.exceptions.PolarsError) as e:
        raise DataUnavailable(f"Error reading {path}: {str(e)}") from e

    series = _to_series(df, symbol, start_date, end_date)
    if len(series) == 0:
        raise DataUnavailable(f"No OHLCV data found in {path} for {symbol or 'any symbol'}")
    return series


def load_ohlcv_from_rds(
    symbol: str,
    connection_string: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    table_name: str = 'raw_ohlcv',
) -> OHLCVSeries:
    """
    Load OHLCV data from RDS PostgreSQL

    Args:
        symbol: Stock symbol (e.g., 'AAPL')
        connection_string: SQLAlchemy URL (postgresql+psycopg2://... in production)
        start_date: Filter start date (optional)
        end_date: Filter end date (optional)
        table_name: Table with symbol, timestamp, open, high, low, close, volume

    Returns:
        OHLCVSeries ordered by date

    Raises:
        InvalidConfiguration: table_name is not a plain identifier
        DataUnavailable: connection or query failure, or no rows
    """
    from sqlalchemy import create_engine, text

    if not _IDENTIFIER.match(table_name):
        raise InvalidConfiguration(f"Invalid table name: {table_name!r}")

    try:
        engine = create_engine(connection_string)
    except Exception as e:
        raise DataUnavailable(f"Error connecting to RDS: {str(e)}") from e

    query = f"SELECT * FROM {table_name} WHERE symbol = :symbol"
    params: Dict[str, object] = {'symbol': symbol}
    if start_date:
        query += " AND timestamp >= :start_date"
        params['start_date'] = start_date
    if end_date:
        query += " AND timestamp <= :end_date"
        params['end_date'] = end_date
    query += " ORDER BY timestamp ASC"

    try:
        with engine.connect() as conn:
            df = pl.read_database(text(query), conn, execute_options={'parameters': params})
    except Exception as e:
        raise DataUnavailable(f"Error loading {symbol} from RDS: {str(e)}") from e
    finally:
        engine.dispose()

    if df.is_empty():
        raise DataUnavailable(f"No OHLCV data found in RDS for {symbol}")
    return _to_series(df, symbol, None, None)


def _s3_storage_options(aws_region: Optional[str]) -> Dict[str, str]:
    """Resolve boto3 credentials into polars object-store options"""
    session = boto3.Session()
    storage_options = {
        'aws_region': aws_region or session.region_name or os.environ.get('AWS_REGION', 'us-east-1')
    }
    creds = session.get_credentials()
    if creds:
        frozen = creds.get_frozen_credentials()
        storage_options['aws_access_key_id'] = frozen.access_key
        storage_options['aws_secret_access_key'] = frozen.secret_key
        if frozen.token:
            storage_options['aws_session_token'] = frozen.token
    return storage_options


def load_ohlcv_from_s3(
    bucket: str,
    symbol: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    s3_prefix: str = 'ohlcv/daily',
    aws_region: Optional[str] = None,
) -> OHLCVSeries:
    """
    Load daily OHLCV data from S3 Parquet using a lazy scan with predicate pushdown

    Path structure: s3://{bucket}/{s3_prefix}/**/*.parquet, with a 'symbol'
    column and a 'ts', 'date' or 'timestamp' column.

    Raises:
        DataUnavailable: scan failure or no rows for the symbol and range
    """
    prefix = s3_prefix.strip('/')
    s3_path = f"s3://{bucket}/{prefix}/**/*.parquet" if prefix else f"s3://{bucket}/**/*.parquet"

    try:
        q = pl.scan_parquet(s3_path, storage_options=_s3_storage_options(aws_region))
        names = q.collect_schema().names()
        if 'symbol' in names:
            q = q.filter(pl.col('symbol') == symbol)
        date_col = next((c for c in ('ts', 'date', 'timestamp') if c in names), None)
        if date_col:
            col = pl.col(date_col).dt.date() if date_col in ('ts', 'timestamp') else pl.col(date_col)
            if start_date:
                q = q.filter(col >= start_date)
            if end_date:
                q = q.filter(col <= end_date)
        df = q.collect()
    except Exception as e:
        raise DataUnavailable(f"Error loading {symbol} from {s3_path}: {str(e)}") from e

    if df.is_empty():
        raise DataUnavailable(
            f"No OHLCV data found in S3 for {symbol} from {start_date} to {end_date}. Path: {s3_path}"
        )
    return _to_series(df, symbol, None, None)


# ============================================================================
# Series providers
# ============================================================================


class SeriesProvider(Protocol):
    """Anything that can fetch one instrument's daily series"""

    def fetch_series(
        self,
        instrument_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> OHLCVSeries:
        ...


class _MinBarsProvider:
    """Shared minimum-length check for the concrete providers"""

    def __init__(self, min_bars: Optional[int] = None):
        self.min_bars = min_bars

    def _check(self, instrument_id: str, series: OHLCVSeries) -> OHLCVSeries:
        if self.min_bars is not None and len(series) < self.min_bars:
            raise InsufficientData(instrument_id, len(series), self.min_bars)
        return series


class FileSeriesProvider(_MinBarsProvider):
    """Reads {directory}/{instrument_id}{suffix}"""

    def __init__(self, directory: Union[str, Path], suffix: str = '.csv', min_bars: Optional[int] = None):
        super().__init__(min_bars)
        self.directory = Path(directory)
        self.suffix = suffix

    def fetch_series(self, instrument_id: str, start: Optional[date] = None, end: Optional[date] = None) -> OHLCVSeries:
        path = self.directory / f"{instrument_id}{self.suffix}"
        series = load_ohlcv_from_file(path, symbol=instrument_id, start_date=start, end_date=end)
        return self._check(instrument_id, series)


class RDSSeriesProvider(_MinBarsProvider):
    """Reads daily bars from a PostgreSQL table"""

    def __init__(
        self,
        connection_string: Optional[str] = None,
        table_name: str = 'raw_ohlcv',
        min_bars: Optional[int] = None,
    ):
        super().__init__(min_bars)
        self.connection_string = connection_string or get_settings().database_url
        if not self.connection_string:
            raise InvalidConfiguration("connection_string is required (or set EQUITY_ANALYTICS_DATABASE_URL)")
        self.table_name = table_name

    def fetch_series(self, instrument_id: str, start: Optional[date] = None, end: Optional[date] = None) -> OHLCVSeries:
        series = load_ohlcv_from_rds(
            symbol=instrument_id,
            connection_string=self.connection_string,
            start_date=start,
            end_date=end,
            table_name=self.table_name,
        )
        return self._check(instrument_id, series)


class S3SeriesProvider(_MinBarsProvider):
    """Reads daily bars from Parquet files in S3"""

    def __init__(
        self,
        bucket: Optional[str] = None,
        s3_prefix: str = 'ohlcv/daily',
        aws_region: Optional[str] = None,
        min_bars: Optional[int] = None,
    ):
        super().__init__(min_bars)
        settings = get_settings()
        self.bucket = bucket or settings.s3_bucket
        if not self.bucket:
            raise InvalidConfiguration("bucket is required (or set EQUITY_ANALYTICS_S3_BUCKET)")
        self.s3_prefix = s3_prefix
        self.aws_region = aws_region or settings.aws_region

    def fetch_series(self, instrument_id: str, start: Optional[date] = None, end: Optional[date] = None) -> OHLCVSeries:
        series = load_ohlcv_from_s3(
            bucket=self.bucket,
            symbol=instrument_id,
            start_date=start,
            end_date=end,
            s3_prefix=self.s3_prefix,
            aws_region=self.aws_region,
        )
        return self._check(instrument_id, series)


def fetch_many(
    provider: SeriesProvider,
    instrument_ids: Iterable[str],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Dict[str, OHLCVSeries]:
    """
    Fetch several instruments, skipping the ones that fail

    Returns a mapping in input order, ready for compare(). Failures are
    logged and left out.
    """
    loaded: Dict[str, OHLCVSeries] = {}
    for instrument_id in instrument_ids:
        try:
            loaded[instrument_id] = provider.fetch_series(instrument_id, start, end)
        except (DataUnavailable, InsufficientData) as e:
            logger.warning(f"Skipping {instrument_id}: {str(e)}")
        except AnalyticsError as e:
            logger.error(f"Error loading {instrument_id}: {str(e)}")
            raise
    return loaded
