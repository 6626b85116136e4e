"""
Backtest engine, request service, response payloads and results store.

Runs the crossover strategy day by day through the paper broker and turns the
outcome into a trade ledger, a daily chart trace and summary statistics.
"""
