"""
Pytest configuration file.

Puts the repo root on sys.path (so 'import src...' and 'import actions...'
work without installing) and provides shared price-series fixtures.
"""
import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.data.schemas import PricePoint


@pytest.fixture
def price_points():
    """Factory: closes -> PricePoints on consecutive days from 2024-01-01."""
    def _make(closes, start: date = date(2024, 1, 1)) -> list[PricePoint]:
        return [PricePoint(start + timedelta(days=i), float(c)) for i, c in enumerate(closes)]
    return _make
