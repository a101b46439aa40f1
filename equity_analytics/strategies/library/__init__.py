"""
Pre-built Strategy Library

Reference policies:
- Moving average crossover (fast/slow SMA)
- N-bar channel breakout
- RSI mean reversion
"""

from .breakout_strategies import BreakoutStrategy
from .momentum_strategies import MovingAverageCrossStrategy, RSIMeanReversionStrategy

__all__ = [
    'BreakoutStrategy',
    'MovingAverageCrossStrategy',
    'RSIMeanReversionStrategy',
]
