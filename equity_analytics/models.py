"""
Pydantic Models for Engine Configuration

Validates indicator, backtest, strategy and scoring configuration supplied by
callers (dicts from JSON payloads or model instances). Validation failures
surface as InvalidConfiguration before any computation starts.
"""

import math
from typing import Any, Dict, List, Literal, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .config import get_settings
from .errors import InvalidConfiguration


class IndicatorConfig(BaseModel):
    """Periods for the Indicator Engine (SMA windows are fixed at 5/10/20/30/60)"""
    model_config = ConfigDict(frozen=True)

    min_bars: int = Field(default_factory=lambda: get_settings().min_bars, gt=0, description="Shortest series that produces output")
    momentum_period: int = Field(10, gt=0)
    volatility_window: int = Field(20, gt=1, description="Daily returns per volatility window")
    volume_window: int = Field(20, gt=0)
    rsi_period: int = Field(14, gt=0)
    macd_fast: int = Field(12, gt=0)
    macd_slow: int = Field(26, gt=0)
    macd_signal: int = Field(9, gt=0)
    bollinger_period: int = Field(20, gt=0)
    bollinger_std: float = Field(2.0, gt=0)
    kdj_period: int = Field(9, gt=0)
    kdj_mode: Literal['simplified', 'recursive'] = Field(
        'simplified',
        description="'simplified' re-seeds prior K/D at 50 every bar; 'recursive' carries them forward",
    )
    williams_period: int = Field(14, gt=0)
    cci_period: int = Field(20, gt=0)
    atr_period: int = Field(14, gt=0)

    @model_validator(mode='after')
    def fast_shorter_than_slow(self):
        if self.macd_fast >= self.macd_slow:
            raise ValueError('macd_fast must be shorter than macd_slow')
        return self


class BacktestConfig(BaseModel):
    """Execution settings for the Backtest Engine"""
    model_config = ConfigDict(frozen=True)

    initial_capital: float = Field(default_factory=lambda: get_settings().initial_capital, gt=0)
    fee_rate: float = Field(default_factory=lambda: get_settings().fee_rate, ge=0, lt=1, description="Fee as a fraction of notional, each side")
    slippage: float = Field(default_factory=lambda: get_settings().slippage, ge=0, lt=1, description="Fill price offset as a fraction of close")
    position_size: float = Field(1.0, gt=0, le=1, description="Fraction of cash committed per entry")
    stop_loss_pct: Optional[float] = Field(None, gt=0, lt=1, description="Stop loss (e.g., 0.05 = 5%)")
    take_profit_pct: Optional[float] = Field(None, gt=0, description="Take profit (e.g., 0.10 = 10%)")
    compounding: bool = Field(
        default_factory=lambda: get_settings().compounding,
        description="When False, cash resets to initial_capital after each round trip",
    )


PolicyName = Literal['ma_cross', 'breakout', 'rsi']


class StrategyConfig(BaseModel):
    """Validated strategy record: policy name plus numeric parameters"""
    model_config = ConfigDict(frozen=True)

    policy: PolicyName = Field(..., description="Reference policy to run")
    params: Dict[str, float] = Field(default_factory=dict, description="Policy parameters (e.g., {'fast_period': 5})")
    name: Optional[str] = Field(None, description="Display name override")

    @field_validator('policy', mode='before')
    @classmethod
    def normalize_policy(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class ScoringConfig(BaseModel):
    """Factor weights for the Multi-Factor Scorer"""
    model_config = ConfigDict(frozen=True)

    weights: Dict[str, float] = Field(..., description="Factor name -> weight")

    @field_validator('weights')
    @classmethod
    def weights_usable(cls, v):
        if not v:
            raise ValueError('at least one weighted factor is required')
        for name, weight in v.items():
            if not math.isfinite(weight):
                raise ValueError(f'weight for {name} must be finite')
            if weight < 0:
                raise ValueError(f'weight for {name} must be non-negative')
        if sum(v.values()) <= 0:
            raise ValueError('factor weights must not sum to zero')
        return v

    def normalized(self) -> Dict[str, float]:
        """Weights rescaled to sum to 1 (input order preserved)"""
        total = sum(self.weights.values())
        if abs(total - 1.0) < 1e-12:
            return dict(self.weights)
        return {name: weight / total for name, weight in self.weights.items()}


class ScoreEntry(BaseModel):
    """One ranked instrument"""
    instrument_id: str
    composite_score: float = Field(..., description="Weighted normalized score on a 0-100 scale")
    rank: int = Field(..., ge=1)
    as_of: Optional[str] = None
    factors: Dict[str, float] = Field(default_factory=dict, description="Latest raw factor readings")
    normalized: Dict[str, float] = Field(default_factory=dict, description="Cross-sectional min-max values")
    recommendation: str = ''


class ScoreBoard(BaseModel):
    """Ranked comparison output; built per call"""
    entries: List[ScoreEntry] = Field(default_factory=list)
    weights: Dict[str, float] = Field(default_factory=dict, description="Normalized weights used")
    excluded: List[str] = Field(default_factory=list, description="Instruments skipped for insufficient data")

    def top(self, k: int) -> List[ScoreEntry]:
        return self.entries[:k]

    def instrument_ids(self) -> List[str]:
        return [e.instrument_id for e in self.entries]

    def get(self, instrument_id: str) -> Optional[ScoreEntry]:
        return next((e for e in self.entries if e.instrument_id == instrument_id), None)


ModelT = TypeVar('ModelT', bound=BaseModel)


def coerce_config(
    model_cls: Type[ModelT],
    value: Union[None, ModelT, Mapping[str, Any]],
) -> ModelT:
    """Accept a model, a mapping or None and return a validated model"""
    if value is None:
        value = {}
    if isinstance(value, model_cls):
        return value
    if not isinstance(value, Mapping):
        raise InvalidConfiguration(
            f"{model_cls.__name__} expects a mapping or model, got {type(value).__name__}"
        )
    try:
        return model_cls(**value)
    except ValidationError as e:
        raise InvalidConfiguration(f"Invalid {model_cls.__name__}: {e}") from e
