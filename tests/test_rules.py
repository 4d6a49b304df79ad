import pytest

from ewimpulse.ew.core.model import Impulse, Wave
from ewimpulse.ew.core.rules import (
    ImpulseRules,
    Wave3Rule,
    check_impulse,
    impulse_groupings,
    impulse_violation,
    is_extreme_span,
    is_impulse_count,
)
from ewimpulse.swing.zigzag import Extremum, SwingType

MIN = 60_000


def _pts(values, bars, up=True):
    kinds = [SwingType.LOW, SwingType.HIGH] if up else [SwingType.HIGH, SwingType.LOW]
    return [
        Extremum(index=b, value=float(v), open_time=b * MIN, close_time=(b + 1) * MIN, kind=kinds[i % 2])
        for i, (v, b) in enumerate(zip(values, bars))
    ]


GOOD_UP = ([1000, 1100, 1062, 1223, 1185, 1285], [0, 10, 15, 27, 32, 42])


def test_impulse_counts():
    assert [n for n in range(2, 20) if is_impulse_count(n)] == [6, 10, 14, 18]


def test_groupings():
    assert impulse_groupings(6) == [(0, 1, 2, 3, 4, 5)]
    assert impulse_groupings(10) == [
        (0, 1, 2, 3, 4, 9),
        (0, 1, 2, 7, 8, 9),
        (0, 5, 6, 7, 8, 9),
    ]
    assert impulse_groupings(8) == []
    assert len(impulse_groupings(14)) == 6


def test_valid_up_and_down():
    rules = ImpulseRules()
    assert check_impulse(_pts(*GOOD_UP), rules)
    down = [2000 - v for v in GOOD_UP[0]]
    assert check_impulse(_pts(down, GOOD_UP[1], up=False), rules)


def test_overlap_is_strict():
    vals = [1000, 1100, 1062, 1223, 1100, 1285]
    assert impulse_violation(_pts(vals, GOOD_UP[1]), ImpulseRules()) == "overlap"


def test_harmony_band():
    # wave 2 lasts 5 bars, wave 4 lasts 15 -> ratio 3.0 > 2.5
    bars = [0, 10, 15, 27, 42, 52]
    assert impulse_violation(_pts(GOOD_UP[0], bars), ImpulseRules()) == "harmony"
    assert check_impulse(_pts(GOOD_UP[0], bars), ImpulseRules(correction_allowance_percent=300.0))
    # allowance below 100 leaves no valid ratio
    assert impulse_violation(_pts(*GOOD_UP), ImpulseRules(correction_allowance_percent=50.0)) == "harmony"


def test_zero_duration_correction():
    bars = [0, 10, 10, 27, 32, 42]
    assert impulse_violation(_pts(GOOD_UP[0], bars), ImpulseRules()) == "duration"


def test_wave_against_direction():
    vals = [1000, 1100, 1062, 1050, 1185, 1285]
    assert impulse_violation(_pts(vals, GOOD_UP[1]), ImpulseRules()) == "direction"


def test_wave3_rules():
    # w1=100, w3=150, w5=200: not the shortest, but not the longest either
    vals = [1000, 1100, 1062, 1212, 1180, 1380]
    pts = _pts(vals, GOOD_UP[1])
    assert check_impulse(pts, ImpulseRules(wave3_rule=Wave3Rule.NOT_SHORTEST))
    assert impulse_violation(pts, ImpulseRules(wave3_rule=Wave3Rule.LONGEST)) == "wave3"

    # w3 shorter than both
    vals = [1000, 1100, 1090, 1150, 1110, 1220]
    assert impulse_violation(_pts(vals, GOOD_UP[1]), ImpulseRules()) == "wave3"


def test_extreme_span():
    pts = _pts([1000, 1100, 1062, 1223], [0, 1, 2, 3])
    assert is_extreme_span(pts, is_up=True)
    assert not is_extreme_span(_pts([1000, 1300, 1062, 1223], [0, 1, 2, 3]), is_up=True)


def test_wave_and_impulse_models():
    pts = _pts(*GOOD_UP)
    w = Wave(pts[0], pts[1])
    assert w.direction == 1
    assert w.length(1) == 100.0
    assert w.length(-1) == -100.0
    assert w.duration == 10 * MIN

    imp = Impulse(extrema=tuple(pts), deviation_percent=3.0)
    assert imp.is_up
    assert imp.start == pts[0] and imp.end == pts[-1]
    assert len(imp.waves) == 5
    assert not imp.is_degenerate


def test_unknown_wave3_rule():
    with pytest.raises(ValueError):
        Wave3Rule("middle")
