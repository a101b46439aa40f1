"""
Strategy Builder

Builds a reference policy from a validated StrategyConfig record
(policy name plus numeric parameters), e.g. a JSON payload such as
{"policy": "ma_cross", "params": {"fast_period": 5, "slow_period": 20}}.
"""

from typing import Any, Dict, Mapping, Type, Union

from ..errors import InvalidConfiguration
from ..models import StrategyConfig, coerce_config
from .base import BaseStrategy
from .library import BreakoutStrategy, MovingAverageCrossStrategy, RSIMeanReversionStrategy

STRATEGY_REGISTRY: Dict[str, Type[BaseStrategy]] = {
    'ma_cross': MovingAverageCrossStrategy,
    'breakout': BreakoutStrategy,
    'rsi': RSIMeanReversionStrategy,
}

# Accepted parameter names per policy
POLICY_PARAMETERS: Dict[str, tuple] = {
    'ma_cross': ('fast_period', 'slow_period'),
    'breakout': ('lookback',),
    'rsi': ('period', 'oversold', 'overbought'),
}


def build_strategy(config: Union[StrategyConfig, Mapping[str, Any]]) -> BaseStrategy:
    """
    Build a strategy from configuration

    Args:
        config: StrategyConfig or an equivalent mapping

    Returns:
        Configured BaseStrategy instance

    Raises:
        InvalidConfiguration: unknown parameter names or invalid values
    """
    config = coerce_config(StrategyConfig, config)

    strategy_cls = STRATEGY_REGISTRY.get(config.policy)
    if strategy_cls is None:
        raise InvalidConfiguration(f"Unknown policy: {config.policy}")

    accepted = POLICY_PARAMETERS[config.policy]
    unknown = sorted(set(config.params) - set(accepted))
    if unknown:
        raise InvalidConfiguration(
            f"Unknown parameters for {config.policy}: {unknown} (accepted: {list(accepted)})"
        )

    strategy = strategy_cls(**config.params)
    if config.name:
        strategy.name = config.name
    return strategy
