"""
Strategy interfaces and implementations for signal generation.

Defines the strategy protocol and the moving-average crossover strategy,
which emits BUY, SELL or no signal from one day's close and moving average.
"""
