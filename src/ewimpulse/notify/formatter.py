from __future__ import annotations

from typing import Any, Dict, List, Optional

from ewimpulse.signals.model import Signal, SignalKind


def _fmt_float(x: Any, nd: int = 5) -> str:
    try:
        return f"{float(x):.{nd}f}"
    except (TypeError, ValueError):
        return str(x)


def _label(symbol: str, timeframe: str) -> str:
    return " ".join(p for p in (symbol, timeframe) if p)


def format_signal(sig: Signal, *, symbol: str = "", timeframe: str = "", digits: int = 5) -> Optional[str]:
    """One-line text for a non-empty signal; None for ``NONE``."""
    head = _label(symbol, timeframe)
    head = f"{head} " if head else ""
    if sig.kind is SignalKind.ENTER:
        side = "long" if sig.setup is not None and sig.setup.is_up else "short"
        return (
            f"{head}enter {side} @ {_fmt_float(sig.level.price, digits)} (bar {sig.index}) "
            f"tp={_fmt_float(sig.take_profit.price, digits)} sl={_fmt_float(sig.stop_loss.price, digits)}"
        )
    if sig.kind is SignalKind.TAKE_PROFIT:
        return f"{head}take profit @ {_fmt_float(sig.level.price, digits)} (bar {sig.index})"
    if sig.kind is SignalKind.STOP_LOSS:
        return f"{head}stop loss @ {_fmt_float(sig.level.price, digits)} (bar {sig.index})"
    return None


def format_summary(results: List[Dict[str, Any]]) -> str:
    lines: List[str] = []
    for r in results[:20]:
        lbl = _label(str(r.get("symbol") or ""), str(r.get("timeframe") or ""))
        line = (
            f"{lbl} bars={r.get('bars')} extrema={r.get('extrema')} enters={r.get('enters')} "
            f"tp={r.get('take_profits')} sl={r.get('stop_losses')}"
        )
        if r.get("error"):
            line += f" error={r.get('error')}"
        lines.append(line.strip())
    if len(results) > 20:
        lines.append(f"... +{len(results) - 20} more")
    return "\n".join(lines).strip() + "\n"
