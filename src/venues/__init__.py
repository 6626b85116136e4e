"""
Market-data provider interfaces and adapters.

Defines the DataProvider protocol and its Finnhub and synthetic
implementations, plus the response cache and request throttle the Finnhub
client uses.
"""
