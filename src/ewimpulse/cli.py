"""ewimpulse CLI.

Replays CSV bar files through the setup finder and reports the signals:

    ewimpulse BTCUSDT=data/btc_5m.csv eth_5m.csv --timeframe 5m --deviation_percent 0.5 \
        --export_signals out/signals.csv --export_report out/report.json

Options come from the built-in defaults < ``--config`` file < ``EWI_*`` env
vars < command-line flags.
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ewimpulse.config import load_config, section
from ewimpulse.data.bars import BarSeries
from ewimpulse.ew.core.options import SAME_BAR_POLICIES, WAVE3_RULES, ImpulseOptions
from ewimpulse.logging import LogConfig, get_logger, setup_logging
from ewimpulse.run.batch import JobResult, JobSpec, run_job, signals_frame, to_dict

log = get_logger("ewimpulse.cli")

_OPTION_FLAGS = (
    "deviation_percent",
    "minor_deviation_percent",
    "min_deviation_percent",
    "deviation_step_percent",
    "correction_allowance_percent",
    "stop_allowance_percent",
    "take_allowance_percent",
    "wave3_rule",
    "same_bar_policy",
)


def _parse_csv_list(s: Optional[str]) -> List[str]:
    if not s:
        return []
    return [x.strip() for x in s.split(",") if x.strip()]


def _ensure_dir(p: str) -> None:
    Path(p).parent.mkdir(parents=True, exist_ok=True)


def _parse_input(item: str) -> Tuple[str, str]:
    """``SYMBOL=path`` or ``path`` (symbol = file stem)."""
    if "=" in item:
        sym, path = item.split("=", 1)
        return sym.strip(), path.strip()
    return Path(item).stem, item


def _bars_range_str(bars: BarSeries) -> str:
    return f"[{bars.start_time}..{bars.end_time}]"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ewimpulse")

    p.add_argument("inputs", nargs="+", help="CSV bar files as SYMBOL=path or path")
    p.add_argument("--timeframe", default="", help="Label for the inputs (e.g. 5m)")
    p.add_argument("--timeframe_ms", type=int, default=0, help="Bar length in ms (0 = infer from data)")

    # detection
    p.add_argument("--deviation_percent", type=float, default=None)
    p.add_argument("--minor_deviation_percent", type=float, default=None)
    p.add_argument("--min_deviation_percent", type=float, default=None)
    p.add_argument("--deviation_step_percent", type=float, default=None)
    p.add_argument("--correction_allowance_percent", type=float, default=None)
    p.add_argument("--stop_allowance_percent", type=float, default=None)
    p.add_argument("--take_allowance_percent", type=float, default=None)
    p.add_argument("--wave3_rule", default=None, choices=WAVE3_RULES)
    p.add_argument("--same_bar_policy", default=None, choices=SAME_BAR_POLICIES)

    # exports
    p.add_argument("--export_signals", default="", help="CSV with one row per signal")
    p.add_argument("--export_report", default="", help="JSON with per-job counts and events")

    # notify
    p.add_argument("--notify", action="store_true")
    p.add_argument("--notify_channels", default="", help="telegram,log")

    # logging/config
    p.add_argument("--config", default=os.environ.get("EWI_CONFIG", ""))
    p.add_argument("--log_level", default=os.environ.get("EWI_LOG_LEVEL", ""))
    p.add_argument("--log_json", action="store_true")

    return p


def options_from(cfg: Dict[str, Any], args: argparse.Namespace) -> ImpulseOptions:
    d = section(cfg, "impulse")
    for k in _OPTION_FLAGS:
        v = getattr(args, k, None)
        if v is not None:
            d[k] = v
    return ImpulseOptions.from_dict(d)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    cfg = load_config(file_path=args.config or None)
    log_cfg = section(cfg, "logging")
    if args.log_level:
        log_cfg["level"] = args.log_level
    if args.log_json:
        log_cfg["json"] = True
    setup_logging(LogConfig.from_dict(log_cfg))

    try:
        opts = options_from(cfg, args)
    except ValueError as e:
        parser.error(str(e))

    notify_cfg = section(cfg, "notify")
    notify_channels = (args.notify_channels or str(notify_cfg.get("channels") or "")).strip()
    do_notify = bool(args.notify) and bool(notify_channels)
    digits = int(notify_cfg.get("digits", 5))

    results: List[JobResult] = []
    for item in args.inputs:
        sym, path = _parse_input(item)
        try:
            bars = BarSeries.read_csv(path, timeframe_ms=args.timeframe_ms or None)
        except (OSError, ValueError, KeyError) as e:
            log.error(f"cannot load bars: {e}", extra={"symbol": sym, "path": path})
            results.append(JobResult(symbol=sym, timeframe=args.timeframe, bars=0, error=str(e)))
            print(f"symbol={sym} tf={args.timeframe} error={e}")
            continue

        jr = run_job(JobSpec(symbol=sym, timeframe=args.timeframe, bars=bars), opts)
        results.append(jr)
        print(
            f"symbol={jr.symbol} tf={jr.timeframe} bars={jr.bars} {_bars_range_str(bars)} "
            f"extrema={jr.extrema} enters={jr.enters} take_profits={jr.take_profits} stop_losses={jr.stop_losses}"
        )

        if do_notify and jr.signals:
            try:
                from ewimpulse.notify import notify_signals

                notify_signals(
                    jr.signals,
                    channels=_parse_csv_list(notify_channels),
                    symbol=jr.symbol,
                    timeframe=jr.timeframe,
                    digits=digits,
                )
            except Exception as e:
                log.warning(f"notify failed: {e}", extra={"symbol": jr.symbol})

    if do_notify and results:
        try:
            from ewimpulse.notify import notify_summary

            notify_summary(to_dict(results, with_events=False), channels=_parse_csv_list(notify_channels))
        except Exception as e:
            log.warning(f"summary notify failed: {e}")

    # exports
    if args.export_signals:
        _ensure_dir(args.export_signals)
        signals_frame(results).to_csv(args.export_signals, index=False)

    if args.export_report:
        _ensure_dir(args.export_report)
        with open(args.export_report, "w", encoding="utf-8") as f:
            json.dump(to_dict(results), f, ensure_ascii=False, indent=2)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
