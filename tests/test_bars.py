import pandas as pd
import pytest

from ewimpulse.data.bars import Bar, BarSeries, BarsProvider

T0 = 1_700_000_000_000


def _frame(n=5, step=60_000):
    return pd.DataFrame(
        {
            "ts": [T0 + i * step for i in range(n)],
            "open": [10.0 + i for i in range(n)],
            "high": [11.0 + i for i in range(n)],
            "low": [9.0 + i for i in range(n)],
            "close": [10.5 + i for i in range(n)],
        }
    )


def test_from_df_contract():
    bars = BarSeries.from_df(_frame())
    assert isinstance(bars, BarsProvider)
    assert bars.count == 5
    assert bars.high(2) == 13.0
    assert bars.low(2) == 11.0
    assert bars.open_time(1) == T0 + 60_000
    assert bars.timeframe_ms == 60_000
    assert bars.close_time(1) == T0 + 120_000


def test_from_df_sorts_and_accepts_seconds():
    df = _frame().iloc[::-1].copy()
    df["ts"] = df["ts"] // 1000
    bars = BarSeries.from_df(df)
    assert [b.ts for b in bars] == [T0 + i * 60_000 for i in range(5)]


def test_from_df_datetime_index():
    idx = pd.date_range("2024-01-01", periods=4, freq="5min", tz="UTC")
    df = pd.DataFrame({"High": [2.0, 3.0, 4.0, 5.0], "Low": [1.0, 2.0, 3.0, 4.0]}, index=idx)
    bars = BarSeries.from_df(df)
    assert bars.timeframe_ms == 300_000
    assert bars.open_time(0) == int(idx[0].value // 1_000_000)
    assert bars.high(3) == 5.0


def test_from_df_missing_columns():
    with pytest.raises(ValueError):
        BarSeries.from_df(pd.DataFrame({"ts": [1, 2], "close": [1.0, 2.0]}))
    with pytest.raises(ValueError):
        BarSeries.from_df(pd.DataFrame({"high": [1.0], "low": [0.5]}))


def test_read_csv(tmp_path):
    p = tmp_path / "bars.csv"
    _frame().to_csv(p, index=False)
    bars = BarSeries.read_csv(str(p))
    assert bars.count == 5
    assert bars.df["high"].tolist() == [11.0, 12.0, 13.0, 14.0, 15.0]


def test_index_by_time():
    bars = BarSeries.from_df(_frame())
    assert bars.index_by_time(T0) == 0
    assert bars.index_by_time(T0 + 90_000) == 1
    assert bars.index_by_time(T0 + 4 * 60_000 + 59_999) == 4
    assert bars.index_by_time(T0 - 1) == -1
    assert bars.index_by_time(T0 + 5 * 60_000) == -1


def test_append_keeps_order():
    bars = BarSeries([Bar(ts=0, open=1, high=2, low=0.5, close=1.5)], timeframe_ms=60_000)
    bars.append(Bar(ts=60_000, open=1.5, high=3, low=1, close=2))
    assert bars.count == 2
    assert bars.index_by_time(61_000) == 1
    with pytest.raises(ValueError):
        bars.append(Bar(ts=60_000, open=1, high=1, low=1, close=1))
