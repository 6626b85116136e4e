"""
Performance metrics and synthetic price generation.

Includes total return, drawdown, win rate, buy-and-hold comparison and Sharpe
ratio for a finished backtest, plus the synthetic series used when no market
data is available.
"""
