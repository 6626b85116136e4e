"""
Paper broker simulation.

Holds cash and a single long position, fills all-in buys and full sells at
the close, and records the daily portfolio trace.
"""
