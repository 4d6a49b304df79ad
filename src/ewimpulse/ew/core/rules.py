from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ewimpulse.ew.core.model import Wave
from ewimpulse.swing.zigzag import Extremum


class Wave3Rule(str, Enum):
    NOT_SHORTEST = "not_shortest"  # reject when shorter than both 1 and 5
    LONGEST = "longest"  # reject when shorter than either 1 or 5


@dataclass(frozen=True)
class ImpulseRules:
    """Impulse rules applied to six pivots (origin + five wave ends).

    - wave 4 does not overlap wave 1 price territory (strict)
    - wave 4 / wave 2 durations stay within the correction allowance band
    - waves 1, 3, 5 travel in the impulse direction
    - wave 3 is not the shortest (or, with ``LONGEST``, is the longest)
    """

    correction_allowance_percent: float = 250.0
    wave3_rule: Wave3Rule = Wave3Rule.NOT_SHORTEST

    @staticmethod
    def from_options(opts) -> "ImpulseRules":
        return ImpulseRules(
            correction_allowance_percent=float(opts.correction_allowance_percent),
            wave3_rule=Wave3Rule(opts.wave3_rule),
        )


def is_impulse_count(n: int) -> bool:
    return n >= 6 and (n - 6) % 4 == 0


def impulse_groupings(n: int) -> List[Tuple[int, ...]]:
    """Ways to read ``n`` alternating pivots as one impulse.

    Waves 2 and 4 are single segments; waves 1, 3, 5 span 1, 5, 9, ...
    segments (an extended wave carries its own five-wave count). Each grouping
    is the six pivot positions: origin and the ends of waves 1..5.
    """
    if not is_impulse_count(n):
        return []
    motive = n - 3  # segments left for waves 1, 3, 5
    out: List[Tuple[int, ...]] = []
    for a in range(1, motive, 4):
        for b in range(1, motive - a, 4):
            c = motive - a - b
            if c >= 1 and (c - 1) % 4 == 0:
                out.append((0, a, a + 1, a + 1 + b, a + 2 + b, n - 1))
    return out


def impulse_violation(points: Sequence[Extremum], rules: ImpulseRules) -> Optional[str]:
    """First rule broken by six pivots, or None."""
    if len(points) != 6:
        return "count"
    p0, p1, p2, p3, p4, p5 = points
    if p5.value == p0.value:
        return "flat"
    d = 1 if p5.value > p0.value else -1

    if (p4.value - p1.value) * d <= 0:
        return "overlap"

    d2 = Wave(p1, p2).duration
    d4 = Wave(p3, p4).duration
    if d2 <= 0 or d4 <= 0:
        return "duration"
    r = d4 / d2
    allowance = float(rules.correction_allowance_percent)
    if not (100.0 / allowance <= r <= allowance / 100.0):
        return "harmony"

    w1 = Wave(p0, p1).length(d)
    w3 = Wave(p2, p3).length(d)
    w5 = Wave(p4, p5).length(d)
    if w1 <= 0 or w3 <= 0 or w5 <= 0:
        return "direction"

    if rules.wave3_rule is Wave3Rule.LONGEST:
        if w3 < w1 or w3 < w5:
            return "wave3"
    elif w3 < w1 and w3 < w5:
        return "wave3"
    return None


def check_impulse(points: Sequence[Extremum], rules: ImpulseRules) -> bool:
    return impulse_violation(points, rules) is None


def is_extreme_span(points: Sequence[Extremum], is_up: bool) -> bool:
    """True when the first/last pivots bound every pivot in between."""
    lo, hi = (points[0].value, points[-1].value) if is_up else (points[-1].value, points[0].value)
    return all(lo <= p.value <= hi for p in points)
