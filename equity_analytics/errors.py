"""
Error Taxonomy

Numeric edge cases never raise: engines return empty or zero-valued results
for sparse input. Exceptions are reserved for bad configuration, malformed
input and data-provider failures.
"""


class AnalyticsError(Exception):
    """Base class for all equity_analytics errors"""


class InsufficientData(AnalyticsError):
    """A loader was asked for more bars than the source could provide"""

    def __init__(self, instrument_id: str, available: int, required: int):
        self.instrument_id = instrument_id
        self.available = available
        self.required = required
        super().__init__(
            f"{instrument_id}: {available} bars available, {required} required"
        )


class DataUnavailable(AnalyticsError):
    """Market data could not be fetched from a provider"""


class InvalidConfiguration(AnalyticsError, ValueError):
    """Configuration rejected before any computation started"""


class InvalidSeries(AnalyticsError, ValueError):
    """OHLCV input is malformed (missing columns, duplicate dates, ...)"""
