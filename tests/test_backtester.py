import pytest

from equity_analytics.backtester import FORCED_LIQUIDATION, STOP_LOSS, TAKE_PROFIT, Backtester
from equity_analytics.errors import InvalidConfiguration
from equity_analytics.risk import RiskMetrics
from equity_analytics.series import OHLCVSeries
from equity_analytics.strategies import BaseStrategy, BreakoutStrategy, MovingAverageCrossStrategy

NO_COSTS = {'initial_capital': 10_000.0, 'fee_rate': 0.0, 'slippage': 0.0}


class AlwaysTrade(BaseStrategy):
    """Wants to buy and sell on every bar"""

    def __init__(self):
        super().__init__(name='Always', description='always in, always out')

    @property
    def parameters(self):
        return {}

    def prepare(self, series, factors):
        pass

    def should_buy(self, index, series, factors):
        return True

    def should_sell(self, index, series, factors):
        return True


def _assert_paired(result):
    types = [t.type for t in result.trades]
    assert types == ['buy', 'sell'] * (len(types) // 2)
    assert len(result.round_trips) == len(types) // 2


def test_flat_series_makes_no_trades(flat_series):
    result = Backtester({'initial_capital': 100_000.0}).run(MovingAverageCrossStrategy(), flat_series)

    assert result.trades == []
    assert result.equity_curve == [100_000.0] * 60
    assert result.final_return == 0.0
    assert result.max_drawdown == 0.0
    assert result.win_rate == 0.0


def test_rising_series_keeps_capital(rising_series):
    result = Backtester({'initial_capital': 100_000.0}).run(MovingAverageCrossStrategy(), rising_series)

    assert result.equity_curve[-1] >= 100_000.0 - result.total_fees


def test_every_buy_pairs_with_one_sell(wave_series, random_walk_series):
    for series in (wave_series, random_walk_series):
        result = Backtester().run(MovingAverageCrossStrategy(), series)
        _assert_paired(result)
        assert len(result.equity_curve) == len(series)
        assert min(result.equity_curve) >= 0.0


def test_forced_liquidation_when_series_ends_long(breakout_closes):
    series = OHLCVSeries.from_closes(breakout_closes)
    result = Backtester(NO_COSTS).run(BreakoutStrategy(), series)

    _assert_paired(result)
    assert result.trades[-1].reason == FORCED_LIQUIDATION
    assert result.trades[-1].date == series.dates[-1]
    assert result.equity_curve[-1] == result.final_capital


def test_no_forced_liquidation_when_flat_at_end(breakout_closes):
    series = OHLCVSeries.from_closes(breakout_closes + [90.0])
    result = Backtester(NO_COSTS).run(BreakoutStrategy(), series)

    assert [t.reason for t in result.trades] == ['breakout above prior high', 'breakdown below prior low']
    assert result.round_trips[0].pnl == pytest.approx(10_000.0 * (90.0 / 110.0 - 1.0))
    assert result.win_rate == 0.0


def test_stop_loss_preempts_policy(breakout_closes):
    series = OHLCVSeries.from_closes(breakout_closes + [90.0])
    result = Backtester({**NO_COSTS, 'stop_loss_pct': 0.05}).run(BreakoutStrategy(), series)

    assert result.trades[-1].reason == STOP_LOSS


def test_take_profit(breakout_closes):
    series = OHLCVSeries.from_closes(breakout_closes + [125.0])
    result = Backtester({**NO_COSTS, 'take_profit_pct': 0.1}).run(BreakoutStrategy(), series)

    assert result.trades[1].reason == TAKE_PROFIT
    assert result.trades[1].price == 125.0
    assert result.win_rate == 1.0
    assert result.final_return == pytest.approx(125.0 / 110.0 - 1.0)


def test_fees_and_slippage_on_entry(breakout_closes):
    series = OHLCVSeries.from_closes(breakout_closes)
    config = {'initial_capital': 10_000.0, 'fee_rate': 0.001, 'slippage': 0.01}
    result = Backtester(config).run(BreakoutStrategy(), series)

    buy, sell = result.trades
    notional = 10_000.0 / 1.001
    assert buy.price == pytest.approx(110.0 * 1.01)
    assert buy.fee == pytest.approx(notional * 0.001)
    assert buy.size == pytest.approx(notional / (110.0 * 1.01))
    assert sell.price == pytest.approx(110.0 * 0.99)
    assert sell.fee == pytest.approx(buy.size * sell.price * 0.001)
    assert result.total_fees == pytest.approx(buy.fee + sell.fee)
    assert result.final_capital == pytest.approx(buy.size * sell.price - sell.fee)
    assert result.final_return < 0


def test_position_size_keeps_cash_back(breakout_closes):
    series = OHLCVSeries.from_closes(breakout_closes)
    result = Backtester({**NO_COSTS, 'position_size': 0.5}).run(BreakoutStrategy(), series)

    assert result.trades[0].size == pytest.approx(5_000.0 / 110.0)
    assert result.equity_curve[25] == pytest.approx(10_000.0)


def test_one_transition_per_bar():
    series = OHLCVSeries.from_closes([100.0 + i for i in range(10)])
    result = Backtester(NO_COSTS).run(AlwaysTrade(), series)

    assert [t.type for t in result.trades] == ['buy', 'sell'] * 5
    assert len({t.date for t in result.trades}) == 10
    assert result.trades[-1].reason == 'signal'


def test_win_rate_uses_fill_prices():
    series = OHLCVSeries.from_closes([100.0 + i for i in range(10)])
    result = Backtester({'initial_capital': 10_000.0, 'fee_rate': 0.01, 'slippage': 0.0}).run(AlwaysTrade(), series)

    assert result.win_rate == 1.0
    assert result.winning_trades == 5
    assert result.losing_trades == 0
    assert result.profit_factor == 0.0


def test_non_compounding_resets_cash():
    series = OHLCVSeries.from_closes([100.0 - i for i in range(10)])
    result = Backtester({**NO_COSTS, 'compounding': False}).run(AlwaysTrade(), series)

    sell_bars = [series.dates.index(t.date) for t in result.trades if t.type == 'sell']
    assert all(result.equity_curve[i] == 10_000.0 for i in sell_bars)
    assert result.final_capital == 10_000.0
    assert all(rt.pnl < 0 for rt in result.round_trips)


def test_compounding_carries_losses():
    series = OHLCVSeries.from_closes([100.0 - i for i in range(10)])
    result = Backtester({**NO_COSTS, 'compounding': True}).run(AlwaysTrade(), series)

    assert result.final_capital < 10_000.0
    assert result.max_drawdown > 0


def test_result_serialization_and_risk(wave_series):
    result = Backtester().run(MovingAverageCrossStrategy(), wave_series)
    payload = result.to_dict()

    assert payload['total_trades'] == result.total_trades
    assert payload['parameters'] == {'fast_period': 5, 'slow_period': 20}
    assert payload['strategy_description'] == 'SMA 5/20 crossover strategy'
    assert len(payload['trades']) == len(result.trades)
    assert isinstance(result.risk(), RiskMetrics)
    assert 0.0 <= result.max_drawdown <= 1.0


@pytest.mark.parametrize('config', [
    {'position_size': 0},
    {'fee_rate': -0.1},
    {'initial_capital': 0},
    {'stop_loss_pct': 1.5},
    {'slippage': 'lots'},
])
def test_invalid_config_rejected(config):
    with pytest.raises(InvalidConfiguration):
        Backtester(config)
