"""
Backtester Engine

Simulates one policy over one series with a single long position at a time.
Supports fees, slippage, fractional sizing, stop loss and take profit, and
records a trade ledger and a per-bar equity curve.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .indicators.technicals import FactorVector, compute_factors
from .models import BacktestConfig, coerce_config
from .risk import RiskMetrics, max_drawdown, risk_metrics_from_values
from .series import OHLCVSeries
from .strategies.base import BaseStrategy

logger = logging.getLogger(__name__)

FORCED_LIQUIDATION = 'forced liquidation'
STOP_LOSS = 'stop loss'
TAKE_PROFIT = 'take profit'


@dataclass(frozen=True)
class Trade:
    """One fill in the ledger"""
    date: date
    type: str  # 'buy' or 'sell'
    price: float
    size: float
    reason: str
    fee: float = 0.0

    @property
    def notional(self) -> float:
        return self.price * self.size


@dataclass(frozen=True)
class RoundTrip:
    """A buy paired with its sell"""
    entry_date: date
    entry_price: float
    exit_date: date
    exit_price: float
    size: float
    pnl: float
    pnl_pct: float
    holding_days: int
    exit_reason: str

    @property
    def is_win(self) -> bool:
        return self.exit_price > self.entry_price


@dataclass
class Position:
    """Open long position"""
    entry_date: date
    entry_price: float
    size: float
    cost: float  # notional plus entry fee


@dataclass
class BacktestResult:
    """Backtest performance results"""
    trades: List[Trade]
    equity_curve: List[float]
    final_return: float
    max_drawdown: float
    win_rate: float
    strategy_description: str
    parameters: Dict[str, Any]
    round_trips: List[RoundTrip] = field(default_factory=list)
    initial_capital: float = 0.0
    final_capital: float = 0.0
    total_fees: float = 0.0

    @property
    def total_trades(self) -> int:
        return len(self.round_trips)

    @property
    def winning_trades(self) -> int:
        return sum(1 for rt in self.round_trips if rt.is_win)

    @property
    def losing_trades(self) -> int:
        return self.total_trades - self.winning_trades

    @property
    def profit_factor(self) -> float:
        """Gross profit over gross loss; 0 when nothing was lost"""
        gross_profit = sum(rt.pnl for rt in self.round_trips if rt.pnl > 0)
        gross_loss = -sum(rt.pnl for rt in self.round_trips if rt.pnl < 0)
        return gross_profit / gross_loss if gross_loss > 0 else 0.0

    def risk(self, risk_free_rate: Optional[float] = None) -> RiskMetrics:
        """Risk metrics over the equity curve"""
        return risk_metrics_from_values(self.equity_curve, risk_free_rate)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'strategy_description': self.strategy_description,
            'parameters': self.parameters,
            'final_return': self.final_return,
            'max_drawdown': self.max_drawdown,
            'win_rate': self.win_rate,
            'total_trades': self.total_trades,
            'winning_trades': self.winning_trades,
            'losing_trades': self.losing_trades,
            'profit_factor': self.profit_factor,
            'total_fees': self.total_fees,
            'initial_capital': self.initial_capital,
            'final_capital': self.final_capital,
            'equity_curve': self.equity_curve,
            'trades': [
                {
                    'date': str(t.date),
                    'type': t.type,
                    'price': t.price,
                    'size': t.size,
                    'fee': t.fee,
                    'reason': t.reason,
                }
                for t in self.trades
            ],
            'round_trips': [
                {
                    'entry_date': str(rt.entry_date),
                    'entry_price': rt.entry_price,
                    'exit_date': str(rt.exit_date),
                    'exit_price': rt.exit_price,
                    'size': rt.size,
                    'pnl': rt.pnl,
                    'pnl_pct': rt.pnl_pct,
                    'holding_days': rt.holding_days,
                    'exit_reason': rt.exit_reason,
                }
                for rt in self.round_trips
            ],
        }


class Backtester:
    """
    Backtest engine for strategy validation

    States are FLAT and LONG with at most one transition per bar. Entries fill
    at close x (1 + slippage), exits at close x (1 - slippage), and both sides
    pay fee_rate on their notional. A position still open on the last bar is
    closed there, so every run ends flat.
    """

    def __init__(self, config: Union[None, BacktestConfig, Mapping[str, Any]] = None):
        """
        Initialize backtester

        Args:
            config: BacktestConfig or mapping (defaults from settings)

        Raises:
            InvalidConfiguration: invalid capital, fee, slippage or sizing
        """
        self.config = coerce_config(BacktestConfig, config)

    def run(self, strategy: BaseStrategy, series: OHLCVSeries) -> BacktestResult:
        """
        Run backtest on strategy

        Args:
            strategy: Policy to simulate
            series: OHLCV series, oldest bar first

        Returns:
            BacktestResult with ledger, equity curve and summary statistics
        """
        cfg = self.config
        factors: List[FactorVector] = compute_factors(series)
        strategy.ensure_prepared(series, factors)

        cash = cfg.initial_capital
        position: Optional[Position] = None
        trades: List[Trade] = []
        round_trips: List[RoundTrip] = []
        equity_curve: List[float] = []
        total_fees = 0.0

        closes = series.close
        dates = series.dates

        for i in range(len(series)):
            price = float(closes[i])

            if position is None:
                if price > 0 and strategy.should_buy(i, series, factors):
                    position, trade = self._open(cash, dates[i], price, strategy.buy_reason(i))
                    cash = max(cash - position.cost, 0.0)
                    total_fees += trade.fee
                    trades.append(trade)
            else:
                should_exit, reason = self._check_exit_conditions(strategy, position, i, price, series, factors)
                if should_exit:
                    proceeds, trade, round_trip = self._close(position, dates[i], price, reason)
                    cash = self._settle(cash, proceeds)
                    total_fees += trade.fee
                    trades.append(trade)
                    round_trips.append(round_trip)
                    position = None

            equity_curve.append(cash + position.size * price if position is not None else cash)

        if position is not None:
            price = float(closes[-1])
            proceeds, trade, round_trip = self._close(position, dates[-1], price, FORCED_LIQUIDATION)
            cash = self._settle(cash, proceeds)
            total_fees += trade.fee
            trades.append(trade)
            round_trips.append(round_trip)
            equity_curve[-1] = cash

        return self._calculate_metrics(strategy, trades, round_trips, equity_curve, cash, total_fees)

    def _open(self, cash: float, on: date, price: float, reason: str) -> Tuple[Position, Trade]:
        cfg = self.config
        fill = price * (1 + cfg.slippage)
        budget = cash * cfg.position_size
        notional = budget / (1 + cfg.fee_rate)
        fee = notional * cfg.fee_rate
        size = notional / fill

        logger.debug(f"BUY {size:.4f} @ {fill:.4f} on {on} ({reason})")
        position = Position(entry_date=on, entry_price=fill, size=size, cost=notional + fee)
        return position, Trade(date=on, type='buy', price=fill, size=size, reason=reason, fee=fee)

    def _close(
        self,
        position: Position,
        on: date,
        price: float,
        reason: str,
    ) -> Tuple[float, Trade, RoundTrip]:
        """Returns net proceeds, the sell trade and the closed round trip"""
        cfg = self.config
        fill = price * (1 - cfg.slippage)
        gross = position.size * fill
        fee = gross * cfg.fee_rate
        proceeds = gross - fee
        pnl = proceeds - position.cost

        logger.debug(f"SELL {position.size:.4f} @ {fill:.4f} on {on} ({reason}), pnl {pnl:.2f}")
        trade = Trade(date=on, type='sell', price=fill, size=position.size, reason=reason, fee=fee)
        round_trip = RoundTrip(
            entry_date=position.entry_date,
            entry_price=position.entry_price,
            exit_date=on,
            exit_price=fill,
            size=position.size,
            pnl=pnl,
            pnl_pct=pnl / position.cost if position.cost > 0 else 0.0,
            holding_days=(on - position.entry_date).days,
            exit_reason=reason,
        )
        return proceeds, trade, round_trip

    def _settle(self, cash: float, proceeds: float) -> float:
        """Cash after an exit; without compounding every round trip restarts from initial capital"""
        if not self.config.compounding:
            return self.config.initial_capital
        return max(cash + proceeds, 0.0)

    def _check_exit_conditions(
        self,
        strategy: BaseStrategy,
        position: Position,
        index: int,
        price: float,
        series: OHLCVSeries,
        factors: List[FactorVector],
    ) -> Tuple[bool, str]:
        """Check if position should be exited"""
        cfg = self.config

        # Protective exits pre-empt the policy
        if cfg.stop_loss_pct is not None and price <= position.entry_price * (1 - cfg.stop_loss_pct):
            return True, STOP_LOSS

        if cfg.take_profit_pct is not None and price >= position.entry_price * (1 + cfg.take_profit_pct):
            return True, TAKE_PROFIT

        if strategy.should_sell(index, series, factors):
            return True, strategy.sell_reason(index)

        return False, ''

    def _calculate_metrics(
        self,
        strategy: BaseStrategy,
        trades: List[Trade],
        round_trips: List[RoundTrip],
        equity_curve: List[float],
        final_capital: float,
        total_fees: float,
    ) -> BacktestResult:
        """Calculate performance metrics"""
        initial = self.config.initial_capital
        wins = sum(1 for rt in round_trips if rt.is_win)

        logger.debug(
            f"{strategy.name}: {len(round_trips)} round trips, final capital {final_capital:.2f}"
        )

        return BacktestResult(
            trades=trades,
            equity_curve=equity_curve,
            final_return=(final_capital - initial) / initial,
            max_drawdown=max_drawdown(equity_curve),
            win_rate=wins / len(round_trips) if round_trips else 0.0,
            strategy_description=strategy.description,
            parameters=dict(strategy.parameters),
            round_trips=round_trips,
            initial_capital=initial,
            final_capital=final_capital,
            total_fees=total_fees,
        )
