"""
Strategy Framework

Policies decide entries and exits bar by bar:
1. prepare(): precompute per-bar inputs once per run
2. should_buy(): entry check while flat
3. should_sell(): exit check while long
"""

from .base import BaseStrategy
from .builder import STRATEGY_REGISTRY, build_strategy
from .library import BreakoutStrategy, MovingAverageCrossStrategy, RSIMeanReversionStrategy

__all__ = [
    'BaseStrategy',
    'BreakoutStrategy',
    'MovingAverageCrossStrategy',
    'RSIMeanReversionStrategy',
    'STRATEGY_REGISTRY',
    'build_strategy',
]
