from typing import List, Sequence

import pytest

from ewimpulse.data.bars import Bar, BarSeries

TF_MS = 60_000


def _path_prices(points: Sequence[float], steps: Sequence[int]) -> List[float]:
    """Piecewise-linear prices: ``steps[i]`` bars from ``points[i]`` to ``points[i+1]``."""
    prices = [float(points[0])]
    for a, b, n in zip(points, points[1:], steps):
        for j in range(1, n + 1):
            prices.append(float(b) if j == n else a + (b - a) * j / n)
    return prices


def _series(prices: Sequence[float]) -> BarSeries:
    bars = [Bar(ts=i * TF_MS, open=p, high=p, low=p, close=p) for i, p in enumerate(prices)]
    return BarSeries(bars, timeframe_ms=TF_MS)


@pytest.fixture
def path_bars():
    def make(points, steps):
        return _series(_path_prices(points, steps))
    return make


@pytest.fixture
def series_from_prices():
    return _series
