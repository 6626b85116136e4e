"""
Tests for src/utils/math.py

These tests verify the correctness of math utilities using small, hand-crafted
datasets where expected values are easy to reason about.
"""

import numpy as np
import pandas as pd
import pytest

from src.backtesting.errors import ConfigurationError
from src.utils.math import compute_moving_average_simple, compute_simple_returns


def test_compute_simple_returns_constant_prices():
    """Test simple returns on constant prices (should be all zeros)."""
    prices = pd.Series([100.0, 100.0, 100.0, 100.0, 100.0])
    returns = compute_simple_returns(prices)

    # First return is NaN, rest should be 0
    assert pd.isna(returns.iloc[0])
    assert np.allclose(returns.iloc[1:], 0.0)


def test_compute_simple_returns_linear_growth():
    """Test simple returns on linearly growing prices."""
    # Prices growing by 10 each period: 100, 110, 120, 130
    prices = pd.Series([100.0, 110.0, 120.0, 130.0])
    returns = compute_simple_returns(prices)

    assert pd.isna(returns.iloc[0])
    assert np.isclose(returns.iloc[1], 0.10)
    assert np.isclose(returns.iloc[2], 10.0 / 110.0)
    assert np.isclose(returns.iloc[3], 10.0 / 120.0)


def test_compute_moving_average_simple_known_values():
    """SMA over a falling series: [12, 11, 10, 9, 8] with period 3."""
    sma = compute_moving_average_simple([12.0, 11.0, 10.0, 9.0, 8.0], 3)

    assert sma[:2] == [None, None]
    assert sma[2:] == pytest.approx([11.0, 10.0, 9.0])


def test_compute_moving_average_simple_warm_up_length():
    """Exactly period - 1 leading Nones, floats afterwards."""
    prices = [float(p) for p in range(1, 21)]
    sma = compute_moving_average_simple(prices, 5)

    assert len(sma) == len(prices)
    assert all(v is None for v in sma[:4])
    assert all(isinstance(v, float) for v in sma[4:])


def test_compute_moving_average_simple_period_one_returns_prices():
    prices = [10.0, 12.5, 9.75]
    assert compute_moving_average_simple(prices, 1) == prices


def test_compute_moving_average_simple_period_equals_length():
    """Only the last entry is defined when period == len(prices)."""
    sma = compute_moving_average_simple([10.0, 20.0, 30.0], 3)
    assert sma == [None, None, pytest.approx(20.0)]


def test_compute_moving_average_simple_flat_window_is_exact():
    """
    A window of identical closes averages to exactly that close.

    10.1 * 3 / 3 is not 10.1 in floating point; the strategy treats
    price == MA as no signal, so this must hold exactly.
    """
    sma = compute_moving_average_simple([10.1, 10.1, 10.1, 10.1], 3)
    assert sma[2] == 10.1
    assert sma[3] == 10.1


def test_compute_moving_average_simple_does_not_mutate_input():
    prices = [5.0, 6.0, 7.0, 8.0]
    original = list(prices)
    compute_moving_average_simple(prices, 2)
    assert prices == original


def test_compute_moving_average_simple_accepts_series():
    prices = pd.Series([1.0, 2.0, 3.0, 4.0])
    sma = compute_moving_average_simple(prices, 2)
    assert sma[1:] == pytest.approx([1.5, 2.5, 3.5])


@pytest.mark.parametrize("period", [0, -3])
def test_compute_moving_average_simple_rejects_non_positive_period(period):
    with pytest.raises(ConfigurationError, match="positive"):
        compute_moving_average_simple([1.0, 2.0, 3.0], period)


@pytest.mark.parametrize("period", [2.5, "3", True, None])
def test_compute_moving_average_simple_rejects_non_integer_period(period):
    with pytest.raises(ConfigurationError, match="integer"):
        compute_moving_average_simple([1.0, 2.0, 3.0], period)


def test_compute_moving_average_simple_rejects_period_longer_than_series():
    with pytest.raises(ConfigurationError, match="longer than the price series"):
        compute_moving_average_simple([1.0, 2.0], 3)
