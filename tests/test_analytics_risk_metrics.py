"""
Tests for risk and performance metrics.

Tests use simple, hand-calculated examples where the expected values can be
verified manually. Each test documents the expected calculation.
"""

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from src.analytics.risk_metrics import (
    BacktestSummary,
    compute_buy_hold_return_pct,
    compute_drawdown_series,
    compute_max_drawdown_pct,
    compute_outperformance,
    compute_sharpe_ratio,
    compute_total_return_pct,
    compute_win_rate_pct,
    count_round_trips,
    summarize_backtest,
)
from src.execution.paper_broker import DailyRecord, Trade, TradeType


def _trade(kind: TradeType, pnl: float | None = None) -> Trade:
    return Trade(
        date=date(2024, 1, 2),
        type=kind,
        price=10.0,
        shares=10,
        cash_value=100.0,
        portfolio_value_after=100.0,
        rationale="",
        realized_pnl=pnl,
    )


def _record(day: int, value: float, cash: float, shares: int = 0, drawdown: float = 0.0) -> DailyRecord:
    return DailyRecord(
        date=date(2024, 1, 1) + timedelta(days=day),
        price=10.0,
        moving_average=None,
        shares_held=shares,
        cash=cash,
        portfolio_value=value,
        signal=None,
        drawdown_pct=drawdown,
    )


def test_compute_total_return_pct():
    """(110,000 - 100,000) / 100,000 = 10%."""
    assert compute_total_return_pct(110_000, 100_000) == pytest.approx(10.0)
    assert compute_total_return_pct(90_000, 100_000) == pytest.approx(-10.0)


def test_compute_drawdown_series_simple():
    """
    Values: 100, 120, 90, 130
    Peaks:  100, 120, 120, 130
    DD:     0, 0, 25, 0
    """
    dd = compute_drawdown_series(pd.Series([100.0, 120.0, 90.0, 130.0]))
    assert np.allclose(dd.values, [0.0, 0.0, 25.0, 0.0])


def test_compute_drawdown_series_with_initial_peak():
    """Peak seeded at 100: a first value of 80 is already a 20% drawdown."""
    dd = compute_drawdown_series(pd.Series([80.0, 90.0]), initial_peak=100.0)
    assert np.allclose(dd.values, [20.0, 10.0])


def test_compute_max_drawdown_pct():
    values = pd.Series([100.0, 150.0, 75.0, 120.0])
    # Peak 150, trough 75 -> 50%
    assert compute_max_drawdown_pct(values) == pytest.approx(50.0)


def test_compute_max_drawdown_pct_empty_and_monotonic():
    assert compute_max_drawdown_pct(pd.Series([], dtype=float)) == 0.0
    assert compute_max_drawdown_pct(pd.Series([1.0, 2.0, 3.0])) == 0.0


def test_compute_sharpe_ratio_known_values():
    """
    Returns alternate +1% / -0.5%: mean 0.25%, sample std known.
    Sharpe = mean / std * sqrt(252).
    """
    returns = pd.Series([0.01, -0.005] * 10)
    expected = returns.mean() / returns.std(ddof=1) * np.sqrt(252)
    assert compute_sharpe_ratio(returns) == pytest.approx(expected)


def test_compute_sharpe_ratio_undefined_cases():
    assert np.isnan(compute_sharpe_ratio(pd.Series([0.01])))
    assert np.isnan(compute_sharpe_ratio(pd.Series([0.0, 0.0, 0.0])))
    assert np.isnan(compute_sharpe_ratio(pd.Series([np.nan, 0.01])))


def test_compute_win_rate_pct():
    assert compute_win_rate_pct(3, 1) == pytest.approx(75.0)
    assert compute_win_rate_pct(0, 0) == 0.0
    assert compute_win_rate_pct(0, 2) == 0.0


def test_compute_buy_hold_return_pct():
    assert compute_buy_hold_return_pct(10.0, 13.0) == pytest.approx(30.0)


def test_count_round_trips_zero_profit_is_loss():
    trades = [
        _trade(TradeType.BUY),
        _trade(TradeType.SELL, 50.0),
        _trade(TradeType.BUY),
        _trade(TradeType.SELL, 0.0),
        _trade(TradeType.BUY),
        _trade(TradeType.SELL, -10.0),
    ]
    assert count_round_trips(trades) == (1, 2)


def test_summarize_backtest_values_final_position_at_last_price():
    """
    The last record still holds 10 shares (liquidation happens after it).
    final = 50 cash + 10 * 12 = 170.
    """
    trace = [
        _record(0, 100.0, cash=100.0),
        _record(1, 150.0, cash=50.0, shares=10, drawdown=0.0),
        _record(2, 170.0, cash=50.0, shares=10, drawdown=0.0),
    ]
    trades = [_trade(TradeType.BUY), _trade(TradeType.SELL, 70.0)]

    summary = summarize_backtest(trades, trace, initial_capital=100.0, first_usable_price=10.0, last_price=12.0)

    assert summary.final_value == pytest.approx(170.0)
    assert summary.total_return_pct == pytest.approx(70.0)
    assert summary.total_trades == 2
    assert summary.winning_trades == 1
    assert summary.losing_trades == 0
    assert summary.win_rate_pct == pytest.approx(100.0)
    assert summary.buy_hold_return_pct == pytest.approx(20.0)


def test_summarize_backtest_max_drawdown_from_trace():
    trace = [
        _record(0, 100.0, cash=100.0, drawdown=0.0),
        _record(1, 80.0, cash=80.0, drawdown=20.0),
        _record(2, 90.0, cash=90.0, drawdown=10.0),
    ]
    summary = summarize_backtest([], trace, 100.0, 10.0, 10.0)

    assert summary.max_drawdown_pct == pytest.approx(20.0)
    assert summary.total_trades == 0
    assert summary.win_rate_pct == 0.0


def test_summarize_backtest_drawdown_peak_seeded_with_capital():
    """Never above the 100 starting capital: the 80 low is a 20% drawdown."""
    trace = [
        _record(0, 90.0, cash=90.0),
        _record(1, 80.0, cash=80.0),
        _record(2, 95.0, cash=95.0),
    ]
    summary = summarize_backtest([], trace, 100.0, 10.0, 10.0)

    assert summary.max_drawdown_pct == pytest.approx(20.0)


def test_summarize_backtest_empty_trace():
    summary = summarize_backtest([], [], 100.0, 10.0, 10.0)

    assert summary.final_value == 100.0
    assert summary.max_drawdown_pct == 0.0
    assert summary.sharpe_ratio is None


def test_summarize_backtest_is_idempotent():
    trace = [
        _record(0, 100.0, cash=100.0),
        _record(1, 110.0, cash=10.0, shares=10, drawdown=0.0),
        _record(2, 95.0, cash=10.0, shares=10, drawdown=13.636),
        _record(3, 120.0, cash=10.0, shares=10, drawdown=0.0),
    ]
    trades = [_trade(TradeType.BUY), _trade(TradeType.SELL, 20.0)]

    first = summarize_backtest(trades, trace, 100.0, 10.0, 11.0)
    second = summarize_backtest(trades, trace, 100.0, 10.0, 11.0)

    assert first == second
    assert first.sharpe_ratio is not None


def test_summarize_backtest_flat_trace_has_no_sharpe():
    trace = [_record(i, 100.0, cash=100.0) for i in range(5)]
    summary = summarize_backtest([], trace, 100.0, 10.0, 10.0)

    assert summary.sharpe_ratio is None
    assert summary.final_value == 100.0
    assert summary.total_return_pct == 0.0


def test_compute_outperformance():
    summary = BacktestSummary(
        final_value=110.0,
        total_return_pct=10.0,
        total_trades=2,
        winning_trades=1,
        losing_trades=0,
        win_rate_pct=100.0,
        max_drawdown_pct=0.0,
        buy_hold_return_pct=4.0,
    )
    assert compute_outperformance(summary) == pytest.approx(6.0)
