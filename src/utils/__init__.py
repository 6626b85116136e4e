"""
Generic utility functions shared across modules.

Includes time/clock abstractions, mathematical helpers and logging setup.
"""
