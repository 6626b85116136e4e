"""
JSON-shaped views of backtest results.

The web client that consumes these payloads expects camelCase keys and
percentages pre-formatted as strings ("12.34%"), so the shaping lives here
rather than on the dataclasses themselves. Every function returns plain
dicts/lists of str, int, float, bool and None, ready for json.dumps.
"""

from datetime import date, datetime

from src.backtesting.engine import BacktestResult
from src.execution.paper_broker import DailyRecord, Trade


def format_pct(value: float) -> str:
    """Render a percentage with two decimals, e.g. 12.3456 -> "12.35%"."""
    return f"{value:.2f}%"


def format_date(value: date | datetime) -> str:
    """ISO 8601 string for a date or datetime."""
    return value.isoformat()


def trade_to_payload(trade: Trade) -> dict:
    """
    One ledger row as `{date, type, price, shares, value, portfolioValue, signal}`.

    `type` is "buy" or "sell"; `signal` carries the rationale text.
    """
    return {
        "date": format_date(trade.date),
        "type": trade.type.value,
        "price": trade.price,
        "shares": trade.shares,
        "value": trade.cash_value,
        "portfolioValue": trade.portfolio_value_after,
        "signal": trade.rationale,
    }


def daily_record_to_payload(record: DailyRecord) -> dict:
    """One chart point: `{date, price, ma, position, cash, portfolioValue, signal, drawdown}`."""
    return {
        "date": format_date(record.date),
        "price": record.price,
        "ma": record.moving_average,
        "position": record.shares_held,
        "cash": record.cash,
        "portfolioValue": record.portfolio_value,
        "signal": record.signal.value if record.signal is not None else None,
        "drawdown": record.drawdown_pct,
    }


def build_backtest_payload(
    result: BacktestResult,
    symbol: str,
    years: int,
    window_start: datetime,
    window_end: datetime,
) -> dict:
    """
    Full success payload for one run.

    Shape:
        {success, symbol,
         strategy{name, description, maPeriod},
         period{years, startDate, endDate, tradingDays},
         results{initialCapital, finalValue, totalReturn, totalTrades,
                 winningTrades, losingTrades, winRate, maxDrawdown,
                 buyHoldReturn, outperformance, sharpeRatio},
         trades[...], chartData[...]}
    """
    summary = result.summary
    return {
        "success": True,
        "symbol": symbol.upper(),
        "strategy": {
            "name": result.strategy.name,
            "description": result.strategy.description,
            "maPeriod": result.params.ma_period,
        },
        "period": {
            "years": years,
            "startDate": format_date(window_start),
            "endDate": format_date(window_end),
            "tradingDays": result.trading_days,
        },
        "results": {
            "initialCapital": result.params.initial_capital,
            "finalValue": summary.final_value,
            "totalReturn": format_pct(summary.total_return_pct),
            "totalTrades": summary.total_trades,
            "winningTrades": summary.winning_trades,
            "losingTrades": summary.losing_trades,
            "winRate": format_pct(summary.win_rate_pct),
            "maxDrawdown": format_pct(summary.max_drawdown_pct),
            "buyHoldReturn": format_pct(summary.buy_hold_return_pct),
            "outperformance": format_pct(result.outperformance_pct),
            "sharpeRatio": summary.sharpe_ratio,
        },
        "trades": [trade_to_payload(t) for t in result.trades],
        "chartData": [daily_record_to_payload(r) for r in result.daily_trace],
    }
