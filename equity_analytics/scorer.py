"""
Multi-Factor Scorer

Ranks instruments by a weighted composite of their latest indicator
readings. Each factor is min-max normalized across the batch, so scores are
relative to the instruments compared together.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidConfiguration
from .indicators.technicals import FACTOR_NAMES, FactorVector, latest_factors
from .models import IndicatorConfig, ScoreBoard, ScoreEntry, ScoringConfig, coerce_config
from .series import OHLCVSeries

logger = logging.getLogger(__name__)

DEFAULT_FACTOR_WEIGHTS: Dict[str, float] = {
    'momentum': 0.25,
    'rsi': 0.25,
    'macd_histogram': 0.25,
    'volume_ratio': 0.15,
    'bb_position': 0.10,
}

WeightsLike = Union[None, ScoringConfig, Mapping[str, float], Sequence[Tuple[str, float]]]


def recommendation_for(score: float) -> str:
    """Map a 0-100 composite score to a recommendation band"""
    if score >= 80:
        return 'strong buy'
    if score >= 60:
        return 'buy'
    if score >= 40:
        return 'hold'
    return 'caution'


def _scoring_config(weighted_factors: WeightsLike) -> ScoringConfig:
    if weighted_factors is None:
        return ScoringConfig(weights=DEFAULT_FACTOR_WEIGHTS)
    if isinstance(weighted_factors, ScoringConfig):
        config = weighted_factors
    elif isinstance(weighted_factors, Mapping):
        config = coerce_config(ScoringConfig, {'weights': dict(weighted_factors)})
    else:
        weights: Dict[str, float] = {}
        for pair in weighted_factors:
            if not isinstance(pair, (tuple, list)) or len(pair) != 2:
                raise InvalidConfiguration(f"Expected (factor, weight) pairs, got {pair!r}")
            name, weight = pair
            if name in weights:
                raise InvalidConfiguration(f"Factor listed twice: {name}")
            weights[name] = weight
        config = coerce_config(ScoringConfig, {'weights': weights})

    unknown = [name for name in config.weights if name not in FACTOR_NAMES]
    if unknown:
        raise InvalidConfiguration(f"Unknown factors: {unknown}")
    return config


def _min_max(values: List[float]) -> List[float]:
    lo, hi = min(values), max(values)
    if hi == lo:
        return [0.5] * len(values)
    return [(v - lo) / (hi - lo) for v in values]


class MultiFactorScorer:
    """
    Cross-sectional multi-factor ranking

    Weights are renormalized to sum to 1. Instruments too short to produce
    indicator output are left out of the ranking and listed in
    ScoreBoard.excluded.
    """

    def __init__(
        self,
        weighted_factors: WeightsLike = None,
        indicator_config: Union[None, IndicatorConfig, Mapping[str, Any]] = None,
    ):
        """
        Args:
            weighted_factors: {factor: weight}, (factor, weight) pairs or a
                ScoringConfig; DEFAULT_FACTOR_WEIGHTS when omitted
            indicator_config: Indicator periods used for the latest readings

        Raises:
            InvalidConfiguration: unknown factors or unusable weights
        """
        self.config = _scoring_config(weighted_factors)
        self.weights = self.config.normalized()
        self.indicator_config = coerce_config(IndicatorConfig, indicator_config)

    @classmethod
    def from_lists(cls, factors: Sequence[str], weights: Sequence[float], **kwargs) -> 'MultiFactorScorer':
        """Build from parallel factor and weight lists"""
        if len(factors) != len(weights):
            raise InvalidConfiguration(
                f"{len(factors)} factors but {len(weights)} weights"
            )
        return cls(list(zip(factors, weights)), **kwargs)

    def score(self, series_by_instrument: Mapping[str, OHLCVSeries]) -> ScoreBoard:
        """
        Score and rank instruments

        Args:
            series_by_instrument: instrument id -> series, in input order

        Returns:
            ScoreBoard ranked by composite score, ties in input order
        """
        latest: Dict[str, FactorVector] = {}
        excluded: List[str] = []
        for instrument_id, series in series_by_instrument.items():
            vector: Optional[FactorVector] = latest_factors(series, self.indicator_config)
            if vector is None:
                logger.debug(f"Skipping {instrument_id}: {len(series)} bars")
                excluded.append(instrument_id)
                continue
            latest[instrument_id] = vector

        ids = list(latest)
        if not ids:
            return ScoreBoard(entries=[], weights=self.weights, excluded=excluded)

        normalized: Dict[str, List[float]] = {
            name: _min_max([latest[i].value(name) for i in ids])
            for name in self.weights
        }

        composites: List[float] = []
        for k in range(len(ids)):
            total = sum(normalized[name][k] * weight for name, weight in self.weights.items())
            composites.append(min(max(total * 100, 0.0), 100.0))

        # sorted() is stable, so equal scores keep input order
        order = sorted(range(len(ids)), key=lambda k: composites[k], reverse=True)

        entries = []
        for rank, k in enumerate(order, start=1):
            vector = latest[ids[k]]
            entries.append(ScoreEntry(
                instrument_id=ids[k],
                composite_score=composites[k],
                rank=rank,
                as_of=str(vector.date),
                factors={name: vector.value(name) for name in self.weights},
                normalized={name: normalized[name][k] for name in self.weights},
                recommendation=recommendation_for(composites[k]),
            ))

        return ScoreBoard(entries=entries, weights=self.weights, excluded=excluded)


def compare(
    series_by_instrument: Mapping[str, OHLCVSeries],
    weighted_factors: WeightsLike = None,
    indicator_config: Union[None, IndicatorConfig, Mapping[str, Any]] = None,
) -> ScoreBoard:
    """Rank instruments with a one-off MultiFactorScorer"""
    return MultiFactorScorer(weighted_factors, indicator_config).score(series_by_instrument)
