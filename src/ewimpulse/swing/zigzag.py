"""ZigZag / extremum extraction.

``ExtremumFinder`` walks bars one at a time and keeps an alternating series of
confirmed pivots:

- while the trend is up it tracks the highest high (a new high *moves* the
  pivot forward), while down it tracks the lowest low;
- once price retraces ``deviation_percent`` from the tracked pivot a new pivot
  of the opposite kind is appended and the trend *flips*.

The same finder runs in streaming mode (``calculate(index)`` once per new bar,
used by the setup state machine) and in batch mode over a sub-interval
(``calculate_range`` / ``extract_extrema``), which the pattern finder uses to
re-read a move at finer sensitivities.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Union, overload

from ewimpulse.data.bars import BarsProvider
from ewimpulse.logging import get_logger

log = get_logger("ewimpulse.zigzag")


class SwingType(str, Enum):
    HIGH = "high"
    LOW = "low"


@dataclass(frozen=True)
class Extremum:
    """A confirmed pivot: bar position, price and the bar's open/close time (ms)."""
    index: int
    value: float
    open_time: int
    close_time: int
    kind: SwingType


class ExtremumSeries:
    """Pivots ordered by bar index.

    Only two mutations exist: ``move`` replaces the last entry with a pivot of
    the same kind, ``flip`` appends a pivot of the opposite kind. Everything
    before the last entry is final.
    """

    def __init__(self, items: Iterable[Extremum] = ()):
        self._items: List[Extremum] = []
        self._pos: Dict[int, int] = {}
        for e in items:
            self.flip(e)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Extremum]:
        return iter(self._items)

    @overload
    def __getitem__(self, key: int) -> Extremum: ...

    @overload
    def __getitem__(self, key: slice) -> List[Extremum]: ...

    def __getitem__(self, key: Union[int, slice]):
        return self._items[key]

    def __contains__(self, index: object) -> bool:
        return index in self._pos

    def __repr__(self) -> str:
        pts = ", ".join(f"{e.kind.value[0].upper()}@{e.index}:{e.value:g}" for e in self._items)
        return f"ExtremumSeries([{pts}])"

    @property
    def last(self) -> Optional[Extremum]:
        return self._items[-1] if self._items else None

    def get(self, index: int, default: Optional[Extremum] = None) -> Optional[Extremum]:
        """Pivot recorded at bar ``index``."""
        pos = self._pos.get(index)
        return self._items[pos] if pos is not None else default

    def indices(self) -> List[int]:
        return [e.index for e in self._items]

    def values(self) -> List[float]:
        return [e.value for e in self._items]

    def move(self, ext: Extremum) -> None:
        if not self._items:
            self.flip(ext)
            return
        old = self._items[-1]
        if ext.kind != old.kind:
            raise ValueError(f"move must keep the pivot kind ({old.kind.value} -> {ext.kind.value})")
        if ext.index < old.index:
            raise ValueError(f"move cannot go back in time ({old.index} -> {ext.index})")
        del self._pos[old.index]
        self._items[-1] = ext
        self._pos[ext.index] = len(self._items) - 1

    def flip(self, ext: Extremum) -> None:
        if self._items:
            old = self._items[-1]
            if ext.kind == old.kind:
                raise ValueError(f"flip must alternate the pivot kind (got two {ext.kind.value})")
            if ext.index <= old.index:
                raise ValueError(f"pivot indices must increase ({old.index} -> {ext.index})")
        self._items.append(ext)
        self._pos[ext.index] = len(self._items) - 1

    def _truncate(self, size: int, last: Optional[Extremum]) -> None:
        for e in self._items[size:]:
            self._pos.pop(e.index, None)
        del self._items[size:]
        if size and last is not None:
            self._pos.pop(self._items[-1].index, None)
            self._items[-1] = last
            self._pos[last.index] = size - 1


class _Memento(NamedTuple):
    price: Optional[float]
    index: int
    is_up: bool
    size: int
    last: Optional[Extremum]


@dataclass
class ZigZagState:
    """Streaming state of one finder; owned by whoever drives it."""
    extrema: ExtremumSeries = field(default_factory=ExtremumSeries)
    price: Optional[float] = None
    index: int = -1
    is_up: bool = False

    def snapshot(self) -> _Memento:
        return _Memento(self.price, self.index, self.is_up, len(self.extrema), self.extrema.last)

    def restore(self, m: _Memento) -> None:
        # a bar can only move the last pivot or append one, so this is exact
        self.extrema._truncate(m.size, m.last)
        self.price = m.price
        self.index = m.index
        self.is_up = m.is_up


class ExtremumFinder:
    def __init__(self, bars: BarsProvider, deviation_percent: float, state: Optional[ZigZagState] = None):
        if not deviation_percent > 0:
            raise ValueError(f"deviation_percent must be > 0, got {deviation_percent!r}")
        self.bars = bars
        self.deviation_percent = float(deviation_percent)
        self.state = state if state is not None else ZigZagState()

    @property
    def extrema(self) -> ExtremumSeries:
        return self.state.extrema

    @property
    def deviation_price(self) -> float:
        """Price the bar must reach (against the trend) to confirm the tracked pivot."""
        rate = -0.01 if self.state.is_up else 0.01
        return float(self.state.price) * (1.0 + self.deviation_percent * rate)

    def snapshot(self) -> _Memento:
        return self.state.snapshot()

    def restore(self, memento: _Memento) -> None:
        self.state.restore(memento)

    def seed(self, start: Extremum) -> None:
        """Restart from a known pivot, tracking it as the current extremum."""
        self.state = ZigZagState(
            extrema=ExtremumSeries([start]),
            price=start.value,
            index=start.index,
            is_up=start.kind is SwingType.HIGH,
        )

    def _make(self, index: int, price: float, kind: SwingType) -> Extremum:
        return Extremum(
            index=index,
            value=float(price),
            open_time=int(self.bars.open_time(index)),
            close_time=int(self.bars.close_time(index)),
            kind=kind,
        )

    def _move(self, index: int, price: float) -> None:
        st = self.state
        st.extrema.move(self._make(index, price, SwingType.HIGH if st.is_up else SwingType.LOW))
        st.index = index
        st.price = price

    def _flip(self, index: int, price: float) -> None:
        st = self.state
        st.extrema.flip(self._make(index, price, SwingType.LOW if st.is_up else SwingType.HIGH))
        st.index = index
        st.price = price
        st.is_up = not st.is_up

    def calculate(self, index: int) -> None:
        """Advance by the bar at ``index``."""
        low = float(self.bars.low(index))
        high = float(self.bars.high(index))
        st = self.state
        if st.price is None:
            st.price = high
            st.index = index

        if (high >= st.price) if st.is_up else (low <= st.price):
            self._move(index, high if st.is_up else low)
            return

        if (low <= self.deviation_price) if st.is_up else (high >= self.deviation_price):
            self._flip(index, low if st.is_up else high)

    def calculate_range(self, start_index: int, end_index: int) -> ExtremumSeries:
        """Replay bars ``start_index..end_index`` (inclusive)."""
        for i in range(start_index, end_index + 1):
            self.calculate(i)
        return self.extrema

    def calculate_between(self, start_time: int, end_time: int) -> ExtremumSeries:
        """Replay the bars holding ``start_time`` .. ``end_time`` (epoch ms)."""
        start_index = self.bars.index_by_time(start_time)
        end_index = self.bars.index_by_time(end_time)
        if start_index < 0 or end_index < 0:
            raise ValueError(f"time range {start_time}..{end_time} is outside the bar series")
        return self.calculate_range(start_index, end_index)


def extract_extrema(bars: BarsProvider, start: Extremum, end_index: int, deviation_percent: float) -> ExtremumSeries:
    """Pivots of ``(start.index, end_index]`` at ``deviation_percent``, seeded with ``start``.

    Builds a fresh finder, so the result depends only on the bars, the interval
    and the deviation.
    """
    finder = ExtremumFinder(bars, deviation_percent)
    finder.seed(start)
    return finder.calculate_range(start.index + 1, end_index)


def find_extrema(bars: BarsProvider, deviation_percent: float, start_index: int = 0,
                 end_index: Optional[int] = None) -> ExtremumSeries:
    """Streaming-equivalent pivots over a whole bar range."""
    last = bars.count - 1 if end_index is None else end_index
    finder = ExtremumFinder(bars, deviation_percent)
    out = finder.calculate_range(start_index, last)
    log.debug("zigzag extracted", extra={"bars": last - start_index + 1, "pivots": len(out), "deviation": deviation_percent})
    return out
