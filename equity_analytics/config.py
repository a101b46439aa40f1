"""
Runtime Settings

Defaults come from EQUITY_ANALYTICS_* environment variables so batch jobs and
handlers can tune the engines without code changes. Malformed values fall
back to the built-in default.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

ENV_PREFIX = 'EQUITY_ANALYTICS_'

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def _env(key: str) -> Optional[str]:
    value = os.environ.get(ENV_PREFIX + key)
    return value if value not in (None, '') else None


def _env_float(key: str, default: float) -> float:
    value = _env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = _env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_positive_int(key: str, default: int) -> int:
    value = _env_int(key, default)
    return value if value > 0 else default


def _env_bool(key: str, default: bool) -> bool:
    value = _env(key)
    if value is None:
        return default
    return value.strip().lower() not in ('0', 'false', 'no', 'off')


def _env_str(key: str, default: Optional[str]) -> Optional[str]:
    value = _env(key)
    return value if value is not None else default


@dataclass(frozen=True)
class Settings:
    # Risk
    risk_free_rate: float = 0.03
    min_bars: int = 30

    # Backtest
    initial_capital: float = 100000.0
    fee_rate: float = 0.0003
    slippage: float = 0.0
    compounding: bool = True

    # Data collaborators
    database_url: Optional[str] = None
    s3_bucket: Optional[str] = None
    aws_region: Optional[str] = None

    log_level: str = 'INFO'


def load_settings() -> Settings:
    """Read settings from the environment (no caching)"""
    defaults = Settings()
    return Settings(
        risk_free_rate=_env_float('RISK_FREE_RATE', defaults.risk_free_rate),
        min_bars=_env_positive_int('MIN_BARS', defaults.min_bars),
        initial_capital=_env_float('INITIAL_CAPITAL', defaults.initial_capital),
        fee_rate=_env_float('FEE_RATE', defaults.fee_rate),
        slippage=_env_float('SLIPPAGE', defaults.slippage),
        compounding=_env_bool('COMPOUNDING', defaults.compounding),
        database_url=_env_str('DATABASE_URL', defaults.database_url),
        s3_bucket=_env_str('S3_BUCKET', defaults.s3_bucket),
        aws_region=_env_str('AWS_REGION', os.environ.get('AWS_REGION')),
        log_level=(_env_str('LOG_LEVEL', defaults.log_level) or 'INFO').upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for scripts and jobs that embed the engines"""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=LOG_FORMAT,
    )
