"""OHLCV bar models and the bar-data contract used by the detection core.

The core only needs, per integer position: high, low, open time and close time,
plus the bar count and a time -> position lookup. ``BarSeries`` provides that on
top of a plain list of ``Bar`` and keeps a pandas view for loading/exporting.

Times are milliseconds since epoch (UTC).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Protocol, Sequence, runtime_checkable

import pandas as pd

_TIME_COLUMNS = ("ts", "time", "timestamp", "open_time", "date", "datetime")


@dataclass(frozen=True)
class Bar:
    ts: int  # open time, milliseconds since epoch (UTC)
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@runtime_checkable
class BarsProvider(Protocol):
    """What ExtremumFinder / PatternFinder / SetupFinder read from a bar source."""

    @property
    def count(self) -> int: ...

    def high(self, index: int) -> float: ...

    def low(self, index: int) -> float: ...

    def open_time(self, index: int) -> int: ...

    def close_time(self, index: int) -> int: ...

    def index_by_time(self, ts: int) -> int: ...


def _to_ms(values: Sequence) -> List[int]:
    """Normalize timestamps (epoch ms/s numbers, strings or datetimes) to epoch ms."""
    s = pd.Series(list(values))
    if pd.api.types.is_numeric_dtype(s):
        ms = s.astype("int64")
        # epoch seconds look like 1.7e9, epoch milliseconds like 1.7e12
        if len(ms) and 100_000_000 <= int(ms.min()) and int(ms.max()) < 100_000_000_000:
            ms = ms * 1000
        return [int(x) for x in ms]
    dt = pd.to_datetime(s, utc=True)
    return [int(x.value // 1_000_000) for x in dt]


class BarSeries:
    def __init__(self, bars: List[Bar], timeframe_ms: Optional[int] = None):
        self.bars: List[Bar] = list(bars)
        self._timeframe_ms: Optional[int] = int(timeframe_ms) if timeframe_ms else None
        self._df: Optional[pd.DataFrame] = None
        self._index: Optional[pd.Index] = None
        self._inferred_tf: Optional[int] = None

    @staticmethod
    def from_bars(bars: List[Bar], timeframe_ms: Optional[int] = None) -> "BarSeries":
        return BarSeries(bars, timeframe_ms=timeframe_ms)

    @staticmethod
    def from_df(df: pd.DataFrame, timeframe_ms: Optional[int] = None) -> "BarSeries":
        """Build from a DataFrame with high/low (open/close/volume optional).

        The time comes from the first known time column, or from a DatetimeIndex.
        """
        cols = {c.lower(): c for c in df.columns}
        missing = {"high", "low"} - set(cols)
        if missing:
            raise ValueError(f"bars frame missing columns: {sorted(missing)}")

        tcol = next((cols[c] for c in _TIME_COLUMNS if c in cols), None)
        if tcol is not None:
            ts = _to_ms(df[tcol].tolist())
        elif isinstance(df.index, pd.DatetimeIndex):
            ts = _to_ms(df.index.tolist())
        else:
            raise ValueError("bars frame needs a time column (ts/time/timestamp/open_time) or a DatetimeIndex")

        high = df[cols["high"]].astype(float).tolist()
        low = df[cols["low"]].astype(float).tolist()
        open_ = df[cols["open"]].astype(float).tolist() if "open" in cols else high
        close = df[cols["close"]].astype(float).tolist() if "close" in cols else low
        volume = df[cols["volume"]].astype(float).tolist() if "volume" in cols else [0.0] * len(df)

        rows = sorted(zip(ts, open_, high, low, close, volume), key=lambda r: r[0])
        bars = [Bar(ts=t, open=o, high=h, low=lo, close=c, volume=v) for t, o, h, lo, c, v in rows]
        return BarSeries(bars, timeframe_ms=timeframe_ms)

    @staticmethod
    def read_csv(path: str, timeframe_ms: Optional[int] = None) -> "BarSeries":
        return BarSeries.from_df(pd.read_csv(path), timeframe_ms=timeframe_ms)

    def __len__(self) -> int:
        return len(self.bars)

    def __iter__(self) -> Iterator[Bar]:
        return iter(self.bars)

    def __getitem__(self, index: int) -> Bar:
        return self.bars[index]

    def append(self, bar: Bar) -> None:
        if self.bars and bar.ts <= self.bars[-1].ts:
            raise ValueError(f"bar at {bar.ts} is not after the last bar ({self.bars[-1].ts})")
        self.bars.append(bar)
        self._df = None
        self._index = None
        self._inferred_tf = None

    # --- bar-data contract ---

    @property
    def count(self) -> int:
        return len(self.bars)

    @property
    def timeframe_ms(self) -> int:
        if self._timeframe_ms is not None:
            return self._timeframe_ms
        if self._inferred_tf is None:
            if len(self.bars) < 2:
                return 0
            diffs = pd.Series([b.ts for b in self.bars]).diff().dropna()
            self._inferred_tf = int(diffs.median())
        return self._inferred_tf

    def high(self, index: int) -> float:
        return self.bars[index].high

    def low(self, index: int) -> float:
        return self.bars[index].low

    def open_time(self, index: int) -> int:
        return self.bars[index].ts

    def close_time(self, index: int) -> int:
        return self.bars[index].ts + self.timeframe_ms

    def index_by_time(self, ts: int) -> int:
        """Position of the bar whose [open, close) span holds ``ts``, or -1."""
        if not self.bars:
            return -1
        if self._index is None:
            self._index = pd.Index([b.ts for b in self.bars])
        pos = int(self._index.searchsorted(int(ts), side="right")) - 1
        if pos < 0:
            return -1
        if pos == len(self.bars) - 1 and self.timeframe_ms and ts >= self.close_time(pos):
            return -1
        return pos

    # --- pandas view ---

    @property
    def df(self) -> pd.DataFrame:
        if self._df is None:
            idx = pd.to_datetime([int(b.ts) for b in self.bars], unit="ms", utc=True)
            self._df = pd.DataFrame(
                {
                    "ts": [int(b.ts) for b in self.bars],
                    "open": [float(b.open) for b in self.bars],
                    "high": [float(b.high) for b in self.bars],
                    "low": [float(b.low) for b in self.bars],
                    "close": [float(b.close) for b in self.bars],
                    "volume": [float(b.volume) for b in self.bars],
                },
                index=idx,
            )
        return self._df

    def to_df(self) -> pd.DataFrame:
        return self.df.copy()

    @property
    def start_time(self):
        if not self.bars:
            return None
        return pd.to_datetime(int(self.bars[0].ts), unit="ms", utc=True)

    @property
    def end_time(self):
        if not self.bars:
            return None
        return pd.to_datetime(int(self.bars[-1].ts), unit="ms", utc=True)
