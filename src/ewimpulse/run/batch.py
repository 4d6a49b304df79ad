"""Batch replay: run every bar of one or more series through the setup finder.

Each job gets a fresh ``SetupState``; jobs share nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from ewimpulse.data.bars import BarSeries
from ewimpulse.ew.core.options import ImpulseOptions
from ewimpulse.logging import get_logger
from ewimpulse.signals.model import Signal, SignalKind
from ewimpulse.signals.setup_finder import SetupFinder

log = get_logger("ewimpulse.batch")

SIGNAL_COLUMNS = [
    "symbol", "timeframe", "kind", "index", "ts", "time", "price",
    "take_profit", "take_profit_index", "stop_loss", "stop_loss_index",
    "direction", "start_index", "end_index",
]


@dataclass(frozen=True)
class JobSpec:
    symbol: str
    timeframe: str
    bars: BarSeries


@dataclass
class JobResult:
    symbol: str
    timeframe: str
    bars: int
    extrema: int = 0
    enters: int = 0
    take_profits: int = 0
    stop_losses: int = 0
    error: str = ""
    signals: List[Signal] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self, with_events: bool = True) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "bars": self.bars,
            "extrema": self.extrema,
            "enters": self.enters,
            "take_profits": self.take_profits,
            "stop_losses": self.stop_losses,
            "error": self.error,
        }
        if with_events:
            d["events"] = [dict(e) for e in self.events]
        return d


def run_job(spec: JobSpec, options: Optional[ImpulseOptions] = None) -> JobResult:
    bars = spec.bars
    log.debug("batch run_job start", extra={"symbol": spec.symbol, "timeframe": spec.timeframe, "bars": bars.count})
    finder = SetupFinder(bars, options)
    state = finder.new_state()
    res = JobResult(symbol=spec.symbol, timeframe=spec.timeframe, bars=bars.count)

    for i in range(bars.count):
        sig = finder.process_bar(state, i)
        if sig.is_none:
            continue
        res.signals.append(sig)
        ts = int(bars.open_time(i))
        ev = {"symbol": spec.symbol, "timeframe": spec.timeframe, "ts": ts,
              "time": pd.to_datetime(ts, unit="ms", utc=True).isoformat()}
        ev.update(sig.to_dict())
        res.events.append(ev)
        if sig.kind is SignalKind.ENTER:
            res.enters += 1
        elif sig.kind is SignalKind.TAKE_PROFIT:
            res.take_profits += 1
        elif sig.kind is SignalKind.STOP_LOSS:
            res.stop_losses += 1

    res.extrema = len(state.extrema)
    log.debug(
        "batch run_job done",
        extra={"symbol": spec.symbol, "extrema": res.extrema, "enters": res.enters,
               "take_profits": res.take_profits, "stop_losses": res.stop_losses},
    )
    return res


def run_jobs(specs: Sequence[JobSpec], options: Optional[ImpulseOptions] = None) -> List[JobResult]:
    out: List[JobResult] = []
    for spec in specs:
        try:
            out.append(run_job(spec, options))
        except Exception as e:
            log.exception("job failed", extra={"symbol": spec.symbol, "timeframe": spec.timeframe})
            out.append(JobResult(symbol=spec.symbol, timeframe=spec.timeframe, bars=len(spec.bars), error=str(e)))
    return out


def signals_frame(results: Sequence[JobResult]) -> pd.DataFrame:
    rows = [e for r in results for e in r.events]
    return pd.DataFrame(rows, columns=SIGNAL_COLUMNS)


def to_dict(results: Sequence[JobResult], with_events: bool = True) -> List[Dict[str, Any]]:
    return [r.to_dict(with_events=with_events) for r in results]
