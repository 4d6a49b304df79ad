"""Pattern finder: is the move between two pivots a five-wave impulse?

The move is re-read by the zigzag at a descending grid of deviations
(``ImpulseOptions.deviation_grid``). At each deviation:

- 2 pivots: no visible structure at this scale, try a finer one;
- 4 pivots: a three-wave zigzag, rejected at this scale;
- 6 + 4k pivots: checked against the impulse rules for every way of
  grouping the pivots into waves (extended waves carry their own count);
- anything else is rejected at this scale.

Waves 1, 3 and 5 are validated recursively. An extended wave must itself be an
impulse at the same deviation. A single-segment wave is re-scanned at strictly
finer deviations where the first scale that subdivides it decides; a wave that
never subdivides is accepted as a degenerate (straight) move.

Results are memoised per call by (start, end, grid level).
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple, Union

from ewimpulse.data.bars import BarsProvider
from ewimpulse.ew.core.model import Impulse
from ewimpulse.ew.core.options import ImpulseOptions
from ewimpulse.ew.core.rules import (
    ImpulseRules,
    impulse_groupings,
    impulse_violation,
    is_extreme_span,
    is_impulse_count,
)
from ewimpulse.logging import get_logger
from ewimpulse.swing.zigzag import Extremum, extract_extrema

log = get_logger("ewimpulse.pattern")

_Cache = Dict[Tuple[int, int, int], Tuple[Extremum, ...]]


class PatternFinder:
    def __init__(self, bars: BarsProvider, options: Optional[ImpulseOptions] = None):
        self.bars = bars
        self.options = options or ImpulseOptions()
        self.rules = ImpulseRules.from_options(self.options)
        self.grid: List[float] = self.options.deviation_grid()

    def find_impulse(self, start: Extremum, end: Extremum, allow_degenerate: bool = False) -> Optional[Impulse]:
        if end.index <= start.index or end.value == start.value:
            return None
        cache: _Cache = {}
        found = self._scan(start, end, 0, cache, nested=False, allow_degenerate=allow_degenerate)
        log.debug(
            "impulse scan done",
            extra={"start": start.index, "end": end.index, "found": found is not None, "cached": len(cache)},
        )
        if found is None:
            return None
        extrema, deviation = found
        return Impulse(extrema=extrema, deviation_percent=deviation)

    def is_impulse(
        self,
        start: Extremum,
        end: Extremum,
        return_extrema: bool = False,
        allow_degenerate: bool = False,
    ) -> Union[bool, Tuple[bool, Tuple[Extremum, ...]]]:
        imp = self.find_impulse(start, end, allow_degenerate=allow_degenerate)
        if return_extrema:
            return imp is not None, (imp.extrema if imp is not None else ())
        return imp is not None

    # --- internals ---

    def _extrema(self, start: Extremum, end: Extremum, level: int, cache: _Cache) -> Tuple[Extremum, ...]:
        key = (start.index, end.index, level)
        got = cache.get(key)
        if got is None:
            got = tuple(extract_extrema(self.bars, start, end.index, self.grid[level]))
            cache[key] = got
        return got

    def _scan(
        self,
        start: Extremum,
        end: Extremum,
        level: int,
        cache: _Cache,
        nested: bool,
        allow_degenerate: bool,
    ) -> Optional[Tuple[Tuple[Extremum, ...], float]]:
        subdivided = False
        for lv in range(level, len(self.grid)):
            ext = self._extrema(start, end, lv, cache)
            spans = ext[0].index == start.index and ext[-1].index == end.index
            if len(ext) == 2 and spans:
                continue
            subdivided = True
            if spans and is_impulse_count(len(ext)) and self._validate(ext, lv, cache):
                return ext, self.grid[lv]
            log.debug(
                "impulse rejected at deviation",
                extra={"start": start.index, "end": end.index, "deviation": self.grid[lv], "pivots": len(ext)},
            )
            if nested:
                # the first scale showing structure decides a sub-wave
                return None
        if allow_degenerate and not subdivided:
            return (start, end), self.grid[-1]
        return None

    def _validate(self, extrema: Sequence[Extremum], level: int, cache: _Cache) -> bool:
        for g in impulse_groupings(len(extrema)):
            if impulse_violation([extrema[i] for i in g], self.rules) is not None:
                continue
            if all(self._motive_ok(extrema[g[j]:g[j + 1] + 1], level, cache) for j in (0, 2, 4)):
                return True
        return False

    def _motive_ok(self, sub: Sequence[Extremum], level: int, cache: _Cache) -> bool:
        if len(sub) > 2:
            # extended wave: its own pivots at the same scale
            is_up = sub[-1].value > sub[0].value
            return is_extreme_span(sub, is_up) and self._validate(sub, level, cache)
        return self._scan(sub[0], sub[-1], level + 1, cache, nested=True, allow_degenerate=True) is not None
