import random

import pytest

from ewimpulse.data.bars import Bar, BarSeries
from ewimpulse.ew.core.options import ImpulseOptions
from ewimpulse.signals.model import Signal, SignalKind
from ewimpulse.signals.setup_finder import SetupFinder

A_POINTS = [1300, 1400, 1000, 1100, 1062, 1223, 1185, 1285, 1100, 1300]
A_STEPS = [4, 10, 10, 5, 12, 5, 10, 8, 8]


def _opts(**kw):
    base = dict(deviation_percent=5.0, deviation_step_percent=0.5, min_deviation_percent=0.5)
    base.update(kw)
    return ImpulseOptions(**base)


def _replay(bars, opts):
    finder = SetupFinder(bars, opts)
    state = finder.new_state()
    return [s for s in (finder.process_bar(state, i) for i in range(bars.count)) if not s.is_none]


def test_scenario_enter_then_take_profit(path_bars):
    bars = path_bars(A_POINTS, A_STEPS)
    sigs = _replay(bars, _opts())
    assert [s.kind for s in sigs] == [SignalKind.ENTER, SignalKind.TAKE_PROFIT]

    enter, tp = sigs
    assert enter.index == 63
    assert enter.level.price == pytest.approx(1142.5)
    assert (enter.take_profit.price, enter.take_profit.index) == (1285.0, 56)
    assert (enter.stop_loss.price, enter.stop_loss.index) == (1000.0, 14)
    assert enter.setup.is_up
    assert [e.index for e in enter.setup.impulse.extrema] == [14, 24, 29, 41, 46, 56]

    assert tp.index == 72
    assert tp.level.price == 1285.0
    assert tp.setup == enter.setup


def test_scenario_enter_then_stop_loss(path_bars):
    points = A_POINTS[:-1] + [950]
    steps = A_STEPS[:-1] + [6]
    bars = path_bars(points, steps)
    sigs = _replay(bars, _opts())
    assert [s.kind for s in sigs] == [SignalKind.ENTER, SignalKind.STOP_LOSS]
    assert sigs[1].index == 68
    assert sigs[1].level.price == 1000.0


def test_allowances_move_levels(path_bars):
    bars = path_bars(A_POINTS, A_STEPS)
    sigs = _replay(bars, _opts(take_allowance_percent=10.0, stop_allowance_percent=10.0))
    enter, tp = sigs
    assert enter.take_profit.price == pytest.approx(1270.75)
    assert enter.stop_loss.price == pytest.approx(985.75)
    assert tp.kind is SignalKind.TAKE_PROFIT
    assert tp.index == 71


@pytest.mark.parametrize(
    "policy, kind",
    [("stop_first", SignalKind.STOP_LOSS), ("profit_first", SignalKind.TAKE_PROFIT)],
)
def test_same_bar_policy(path_bars, policy, kind):
    base = path_bars(A_POINTS, A_STEPS)
    bars = BarSeries(list(base)[:65], timeframe_ms=60_000)
    bars.append(Bar(ts=65 * 60_000, open=1100.0, high=1300.0, low=990.0, close=1200.0))

    sigs = _replay(bars, _opts(same_bar_policy=policy))
    assert [s.kind for s in sigs] == [SignalKind.ENTER, kind]
    assert sigs[1].index == 65


def test_zigzag_that_never_classifies(path_bars):
    bars = path_bars([1300, 1400, 1000, 1100, 1062, 1223, 1100], [4, 10, 10, 5, 12, 8])
    assert _replay(bars, _opts()) == []


def test_recrossed_impulse_never_arms(path_bars):
    points = [1300, 1400, 1000, 1100, 1062, 1223, 1185, 1285, 950, 1140]
    steps = [4, 10, 10, 5, 12, 5, 10, 1, 10]
    bars = path_bars(points, steps)
    assert _replay(bars, _opts()) == []


def test_used_impulse_is_not_reused(path_bars):
    bars = path_bars(A_POINTS, A_STEPS)
    finder = SetupFinder(bars, _opts())
    state = finder.new_state()
    for i in range(bars.count):
        finder.process_bar(state, i)
    assert state.used == {(14, 56)}
    assert state.setup is None


def test_deterministic_replay(path_bars):
    bars = path_bars(A_POINTS, A_STEPS)
    assert _replay(bars, _opts()) == _replay(bars, _opts())


def test_feed_uses_default_state(path_bars):
    bars = path_bars(A_POINTS, A_STEPS)
    finder = SetupFinder(bars, _opts())
    kinds = [finder.feed(i).kind for i in range(bars.count)]
    assert kinds.count(SignalKind.ENTER) == 1
    assert finder.state.used == {(14, 56)}


def test_failure_rolls_back_bar(path_bars, monkeypatch):
    bars = path_bars(A_POINTS, A_STEPS)
    finder = SetupFinder(bars, _opts())
    state = finder.new_state()
    for i in range(63):
        assert finder.process_bar(state, i).is_none

    before = list(state.extrema)
    zz = (state.zigzag.price, state.zigzag.index, state.zigzag.is_up)

    def boom(*a, **kw):
        raise RuntimeError("boom")

    monkeypatch.setattr(finder.pattern_finder, "find_impulse", boom)
    sig = finder.process_bar(state, 63)
    assert sig.is_none and sig.index == 63
    assert list(state.extrema) == before
    assert (state.zigzag.price, state.zigzag.index, state.zigzag.is_up) == zz
    assert state.setup is None and state.used == set()

    monkeypatch.undo()
    sig = finder.process_bar(state, 63)
    assert sig.kind is SignalKind.ENTER


def test_signal_to_dict(path_bars):
    bars = path_bars(A_POINTS, A_STEPS)
    enter = _replay(bars, _opts())[0]
    d = enter.to_dict()
    assert d["kind"] == "enter"
    assert d["index"] == 63
    assert d["take_profit_index"] == 56
    assert d["direction"] == "up"


def test_down_scenario_enter_then_take_profit(path_bars):
    points = [700, 600, 1000, 900, 938, 777, 815, 715, 900, 700]
    bars = path_bars(points, A_STEPS)
    sigs = _replay(bars, _opts())
    assert [s.kind for s in sigs] == [SignalKind.ENTER, SignalKind.TAKE_PROFIT]

    enter, tp = sigs
    assert enter.index == 63
    assert not enter.setup.is_up
    assert enter.level.price == pytest.approx((1000.0 + 715.0) / 2)
    assert (enter.take_profit.price, enter.take_profit.index) == (715.0, 56)
    assert (enter.stop_loss.price, enter.stop_loss.index) == (1000.0, 14)

    assert tp.index == 72
    assert tp.level.price == 715.0


def test_down_scenario_stop_loss(path_bars):
    points = [700, 600, 1000, 900, 938, 777, 815, 715, 900, 1050]
    steps = A_STEPS[:-1] + [6]
    bars = path_bars(points, steps)
    sigs = _replay(bars, _opts())
    assert [s.kind for s in sigs] == [SignalKind.ENTER, SignalKind.STOP_LOSS]
    assert sigs[1].index == 68
    assert sigs[1].level.price == 1000.0


def _noisy_bars(seed, n=1500):
    rnd = random.Random(seed)
    px = 100.0
    out = []
    for i in range(n):
        op = px
        px *= 1.0 + rnd.uniform(-0.004, 0.004)
        hi = max(op, px) * (1.0 + rnd.uniform(0.0, 0.002))
        lo = min(op, px) * (1.0 - rnd.uniform(0.0, 0.002))
        out.append(Bar(ts=i * 60_000, open=op, high=hi, low=lo, close=px))
    return BarSeries(out, timeframe_ms=60_000)


@pytest.mark.parametrize("seed", range(6))
def test_enters_are_contained_and_unique(seed):
    bars = _noisy_bars(seed)
    sigs = _replay(bars, ImpulseOptions(deviation_percent=2.0, deviation_step_percent=0.2, min_deviation_percent=0.2))
    enters = [s for s in sigs if s.kind is SignalKind.ENTER]

    for s in enters:
        lo = min(s.setup.start_price, s.setup.end_price)
        hi = max(s.setup.start_price, s.setup.end_price)
        assert lo < s.level.price < hi
        assert s.setup.trigger_index == s.index
    keys = [s.setup.key for s in enters]
    assert len(keys) == len(set(keys))

    # setups never overlap: every enter is resolved before the next one
    kinds = [s.kind for s in sigs]
    assert not any(a is SignalKind.ENTER and b is SignalKind.ENTER for a, b in zip(kinds, kinds[1:]))


def test_failure_while_arming_undoes_used_pair(path_bars, monkeypatch):
    bars = path_bars(A_POINTS, A_STEPS)
    finder = SetupFinder(bars, _opts())
    state = finder.new_state()
    for i in range(63):
        finder.process_bar(state, i)
    used = state.used

    def boom(*a, **kw):
        raise RuntimeError("boom")

    monkeypatch.setattr(Signal, "enter", staticmethod(boom))
    assert finder.process_bar(state, 63).is_none
    assert state.setup is None
    assert state.used is used and used == set()

    monkeypatch.undo()
    assert finder.process_bar(state, 63).kind is SignalKind.ENTER
    assert state.used == {(14, 56)}
