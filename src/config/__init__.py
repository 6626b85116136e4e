"""
Configuration loading and validation.

Provides typed settings objects for the market-data API, storage paths,
backtest defaults and logging, read from environment variables (.env).
"""
