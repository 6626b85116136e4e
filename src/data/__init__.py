"""
Price data I/O, schema enforcement and the per-symbol price store.

Handles reading and writing canonical price CSVs with strict schema
validation and ordering, and syncing them from a market-data provider.
"""
