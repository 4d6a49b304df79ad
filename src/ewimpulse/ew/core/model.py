"""Wave / Impulse models built on zigzag extrema."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ewimpulse.swing.zigzag import Extremum


@dataclass(frozen=True)
class Wave:
    """A single leg between two pivots."""
    start: Extremum
    end: Extremum

    @property
    def direction(self) -> int:
        if self.end.value > self.start.value:
            return 1
        if self.end.value < self.start.value:
            return -1
        return 0

    def length(self, direction: int) -> float:
        """Price travel measured along ``direction`` (+1 up, -1 down); negative when against it."""
        return (self.end.value - self.start.value) * direction

    @property
    def abs_move(self) -> float:
        return abs(self.end.value - self.start.value)

    @property
    def duration(self) -> int:
        return self.end.open_time - self.start.open_time


def waves_of(points: Sequence[Extremum]) -> List[Wave]:
    return [Wave(a, b) for a, b in zip(points, points[1:])]


@dataclass(frozen=True)
class Impulse:
    """A confirmed impulse: its pivots and the deviation they were read at.

    ``extrema`` holds the origin plus every wave end (6 + 4k pivots), or just
    the two endpoints for a move that never subdivided.
    """
    extrema: Tuple[Extremum, ...]
    deviation_percent: float

    @property
    def start(self) -> Extremum:
        return self.extrema[0]

    @property
    def end(self) -> Extremum:
        return self.extrema[-1]

    @property
    def is_up(self) -> bool:
        return self.end.value > self.start.value

    @property
    def is_degenerate(self) -> bool:
        return len(self.extrema) == 2

    @property
    def waves(self) -> List[Wave]:
        return waves_of(self.extrema)
