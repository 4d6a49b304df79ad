"""Setup finder: the per-bar signal state machine.

Searching: after each bar the zigzag pivots are scanned newest pair first for
an initial impulse candidate whose 50% retracement has just been touched; when
the pattern finder confirms it, the setup is armed and ``Enter`` is emitted.

Armed: each later bar checks the take-profit and stop-loss levels; the first
hit resolves the setup and the finder goes back to searching.

The engine holds no per-instrument state. Callers own a ``SetupState`` and
pass it to ``process_bar`` for every new bar, in index order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Set, Tuple

from ewimpulse.data.bars import BarsProvider
from ewimpulse.ew.core.model import Impulse
from ewimpulse.ew.core.options import ImpulseOptions
from ewimpulse.ew.detectors.pattern_finder import PatternFinder
from ewimpulse.logging import get_logger
from ewimpulse.signals.model import LevelItem, Setup, Signal
from ewimpulse.swing.zigzag import Extremum, ExtremumFinder, ExtremumSeries, ZigZagState

log = get_logger("ewimpulse.setup")

TRIGGER_LEVEL_RATIO = 0.5
# correction pivot, impulse end, impulse start, and one earlier pivot for the initial-move check
MIN_EXTREMA = 4


@dataclass
class SetupState:
    zigzag: ZigZagState = field(default_factory=ZigZagState)
    setup: Optional[Setup] = None
    used: Set[Tuple[int, int]] = field(default_factory=set)

    @property
    def extrema(self) -> ExtremumSeries:
        return self.zigzag.extrema

    @property
    def is_armed(self) -> bool:
        return self.setup is not None


class SetupFinder:
    def __init__(self, bars: BarsProvider, options: Optional[ImpulseOptions] = None):
        self.bars = bars
        self.options = options or ImpulseOptions()
        self.pattern_finder = PatternFinder(bars, self.options)
        self._state: Optional[SetupState] = None

    @staticmethod
    def new_state() -> SetupState:
        return SetupState()

    @property
    def state(self) -> SetupState:
        if self._state is None:
            self._state = SetupState()
        return self._state

    def feed(self, index: int) -> Signal:
        """``process_bar`` on the finder's own default state."""
        return self.process_bar(self.state, index)

    def process_bar(self, state: SetupState, index: int) -> Signal:
        memento = state.zigzag.snapshot()
        setup = state.setup
        try:
            return self._step(state, index)
        except Exception:
            log.exception("bar processing failed", extra={"bar": index})
            state.zigzag.restore(memento)
            if setup is None and state.setup is not None:
                # only _arm adds to the used set
                state.used.discard(state.setup.key)
            state.setup = setup
            return Signal.none(index)

    # --- internals ---

    def _step(self, state: SetupState, index: int) -> Signal:
        ExtremumFinder(self.bars, self.options.deviation_percent, state.zigzag).calculate(index)
        if state.setup is not None:
            return self._check_levels(state, state.setup, index)
        if len(state.extrema) < MIN_EXTREMA:
            return Signal.none(index)
        return self._search(state, index)

    def _check_levels(self, state: SetupState, setup: Setup, index: int) -> Signal:
        high = float(self.bars.high(index))
        low = float(self.bars.low(index))
        if setup.is_up:
            tp_hit = high >= setup.take_profit
            sl_hit = low <= setup.stop_loss
        else:
            tp_hit = low <= setup.take_profit
            sl_hit = high >= setup.stop_loss

        if tp_hit and sl_hit:
            tp_hit = self.options.same_bar_policy == "profit_first"
            sl_hit = not tp_hit

        if tp_hit:
            state.setup = None
            log.info("take profit", extra={"bar": index, "price": setup.take_profit, "start": setup.start_index, "end": setup.end_index})
            return Signal.took_profit(setup.take_profit, index, setup)
        if sl_hit:
            state.setup = None
            log.info("stop loss", extra={"bar": index, "price": setup.stop_loss, "start": setup.start_index, "end": setup.end_index})
            return Signal.stopped_out(setup.stop_loss, index, setup)
        return Signal.none(index)

    def _is_initial(self, ext: ExtremumSeries, start_pos: int) -> bool:
        """Walk back from the pivot before the start: the first earlier pivot
        back at/behind the start means continuation, one beyond the end means
        the move broke out of a prior range."""
        start, end = ext[start_pos], ext[start_pos + 1]
        up = end.value > start.value
        for pos in range(start_pos - 1, -1, -1):
            cur = ext[pos].value
            if up:
                if cur <= start.value:
                    return False
                if cur > end.value:
                    return True
            else:
                if cur >= start.value:
                    return False
                if cur < end.value:
                    return True
        return False

    def _search(self, state: SetupState, index: int) -> Signal:
        ext = state.extrema
        count = len(ext)
        high = float(self.bars.high(index))
        low = float(self.bars.low(index))
        later_hi: Optional[float] = None
        later_lo: Optional[float] = None

        for k in range(count - 3):
            start_pos = count - 3 - k
            s, e, nxt = ext[start_pos], ext[start_pos + 1], ext[start_pos + 2]
            later_hi = nxt.value if later_hi is None else max(later_hi, nxt.value)
            later_lo = nxt.value if later_lo is None else min(later_lo, nxt.value)

            up = e.value > s.value
            lo, hi = min(s.value, e.value), max(s.value, e.value)
            probe = low if up else high
            if not (lo < probe < hi):
                break
            if (s.index, e.index) in state.used:
                continue
            if later_hi >= hi or later_lo <= lo:
                # a later pivot already reached the target or the origin
                continue
            if not self._is_initial(ext, start_pos):
                continue

            half = (hi - lo) * TRIGGER_LEVEL_RATIO
            if up:
                trigger = e.value - half
                in_band = low <= trigger and low > s.value
            else:
                trigger = e.value + half
                in_band = high >= trigger and high < s.value
            if not in_band:
                continue

            imp = self.pattern_finder.find_impulse(s, e)
            if imp is None:
                log.debug("candidate not impulsive", extra={"bar": index, "start": s.index, "end": e.index})
                continue
            return self._arm(state, index, s, e, trigger, imp)

        return Signal.none(index)

    def _arm(self, state: SetupState, index: int, s: Extremum, e: Extremum, trigger: float, imp: Impulse) -> Signal:
        d = 1 if e.value > s.value else -1
        take = self.options.take_allowance_percent / 100.0
        stop = self.options.stop_allowance_percent / 100.0
        tp = e.value - d * abs(e.value - trigger) * take
        sl = s.value - d * abs(trigger - s.value) * stop
        setup = Setup(
            start_index=s.index,
            start_price=s.value,
            end_index=e.index,
            end_price=e.value,
            trigger_level=trigger,
            trigger_index=index,
            direction=d,
            take_profit=tp,
            stop_loss=sl,
            impulse=imp,
        )
        state.setup = setup
        state.used.add(setup.key)
        log.info(
            "setup armed",
            extra={"bar": index, "start": s.index, "end": e.index, "trigger": trigger, "tp": tp, "sl": sl,
                   "deviation": imp.deviation_percent},
        )
        return Signal.enter(LevelItem(trigger, index), LevelItem(tp, e.index), LevelItem(sl, s.index), setup)
