from datetime import date, datetime

import polars as pl
import pytest

from equity_analytics.errors import InvalidSeries
from equity_analytics.series import Bar, OHLCVSeries


def _rows(dates):
    return [
        {'date': d, 'open': 10.0, 'high': 11.0, 'low': 9.0, 'close': 10.5, 'volume': 1000}
        for d in dates
    ]


def test_unsorted_records_are_sorted_by_date():
    series = OHLCVSeries.from_records(_rows([date(2024, 1, 3), date(2024, 1, 1), date(2024, 1, 2)]))

    assert series.dates == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]


def test_duplicate_dates_rejected():
    with pytest.raises(InvalidSeries):
        OHLCVSeries.from_records(_rows([date(2024, 1, 1), date(2024, 1, 1)]))


def test_missing_column_rejected():
    frame = pl.DataFrame({'date': [date(2024, 1, 1)], 'close': [1.0]})
    with pytest.raises(InvalidSeries, match='missing columns'):
        OHLCVSeries(frame)


def test_null_price_rejected():
    rows = _rows([date(2024, 1, 1), date(2024, 1, 2)])
    rows[1]['close'] = None
    with pytest.raises(InvalidSeries):
        OHLCVSeries.from_records(rows)


@pytest.mark.parametrize('value', [float('nan'), float('inf'), float('-inf')])
def test_non_finite_price_rejected(value):
    closes = [100.0 + i for i in range(40)]
    closes[35] = value
    with pytest.raises(InvalidSeries, match='NaN or infinite'):
        OHLCVSeries.from_closes(closes)


def test_non_finite_volume_rejected():
    rows = _rows([date(2024, 1, 1), date(2024, 1, 2)])
    rows[0]['volume'] = float('nan')
    with pytest.raises(InvalidSeries, match='volume'):
        OHLCVSeries.from_records(rows)


def test_string_dates_are_parsed():
    series = OHLCVSeries.from_records(_rows(['2024-01-02', '2024-01-01']))

    assert series.dates == [date(2024, 1, 1), date(2024, 1, 2)]


def test_unparseable_dates_rejected():
    with pytest.raises(InvalidSeries):
        OHLCVSeries.from_records(_rows(['not-a-date']))


def test_timestamp_column_becomes_date():
    frame = pl.DataFrame({
        'timestamp': [datetime(2024, 1, 1, 16, 0), datetime(2024, 1, 2, 16, 0)],
        'open': [1.0, 2.0], 'high': [1.0, 2.0], 'low': [1.0, 2.0],
        'close': [1.0, 2.0], 'volume': [10, 20],
    })
    series = OHLCVSeries(frame)

    assert series.dates == [date(2024, 1, 1), date(2024, 1, 2)]
    assert series.volume.tolist() == [10.0, 20.0]


def test_column_arrays_are_read_only(rising_series):
    with pytest.raises(ValueError):
        rising_series.close[0] = 0.0


def test_indexing_returns_bars(rising_series):
    first = rising_series[0]
    last = rising_series[-1]

    assert isinstance(first, Bar)
    assert first.close == 100.0
    assert last.close == 159.0
    with pytest.raises(IndexError):
        rising_series[60]


def test_from_closes_uses_consecutive_days():
    series = OHLCVSeries.from_closes([1.0, 2.0, 3.0], start=date(2024, 2, 28))

    assert series.dates == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]
    assert series.high.tolist() == series.close.tolist()


def test_head_and_append(rising_series):
    head = rising_series.head(10)
    assert len(head) == 10
    assert len(rising_series) == 60

    extended = head.append([Bar(date(2024, 1, 11), 1.0, 1.0, 1.0, 1.0, 1.0)])
    assert len(extended) == 11
    assert extended[-1].date == date(2024, 1, 11)

    with pytest.raises(InvalidSeries):
        head.append([Bar(date(2024, 1, 5), 1.0, 1.0, 1.0, 1.0, 1.0)])


def test_empty_series():
    series = OHLCVSeries.from_records([])

    assert len(series) == 0
    assert list(series) == []
    assert 'empty' in repr(series)
