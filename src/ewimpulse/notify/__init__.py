"""Notification package (telegram + log).

Public helper:
  - notify_signals(signals, channels, symbol, timeframe, digits, title)
  - notify_summary(results, channels, title)

Env defaults:
  - EWI_NOTIFY_CHANNELS=telegram,log
  - EWI_TELEGRAM_BOT_TOKEN / EWI_TELEGRAM_CHAT_ID for the telegram channel
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Sequence

from ewimpulse.notify.base import LogNotifier, NotificationMessage, Notifier
from ewimpulse.notify.formatter import format_signal, format_summary
from ewimpulse.notify.manager import NotifierManager, SendResult
from ewimpulse.notify.telegram import TelegramBotNotifier, TelegramConfig
from ewimpulse.signals.model import Signal


def _parse_csv(s: str) -> List[str]:
    return [x.strip() for x in (s or "").split(",") if x.strip()]


def notify_signals(
    signals: Sequence[Signal],
    *,
    channels: Optional[Sequence[str]] = None,
    symbol: str = "",
    timeframe: str = "",
    digits: int = 5,
    title: Optional[str] = None,
    manager: Optional[NotifierManager] = None,
) -> Optional[SendResult]:
    """Send one message listing the non-empty signals. Returns None when nothing was sent."""
    lines = [t for t in (format_signal(s, symbol=symbol, timeframe=timeframe, digits=digits) for s in signals) if t]
    if not lines:
        return None

    if manager is None:
        ch = list(channels) if channels is not None else _parse_csv(os.getenv("EWI_NOTIFY_CHANNELS", ""))
        if not ch:
            return None
        manager = NotifierManager.from_env(",".join(ch))

    title2 = (title or os.getenv("EWI_NOTIFY_TITLE", "") or "Impulse signals").strip()
    msg = NotificationMessage(title=title2, text="\n".join(lines), meta={"symbol": symbol, "signals": len(lines)})
    return manager.send(msg, strict=False)


def notify_summary(
    results: Sequence[Dict[str, Any]],
    *,
    channels: Optional[Sequence[str]] = None,
    title: Optional[str] = None,
    manager: Optional[NotifierManager] = None,
) -> Optional[SendResult]:
    """Send the per-job counts (``JobResult.to_dict`` rows) as one message."""
    if not results:
        return None

    if manager is None:
        ch = list(channels) if channels is not None else _parse_csv(os.getenv("EWI_NOTIFY_CHANNELS", ""))
        if not ch:
            return None
        manager = NotifierManager.from_env(",".join(ch))

    title2 = (title or "Impulse summary").strip()
    failed = sum(1 for r in results if r.get("error"))
    msg = NotificationMessage(
        title=title2,
        text=format_summary(list(results)),
        level="warning" if failed else "info",
        meta={"jobs": len(results), "failed": failed},
    )
    return manager.send(msg, strict=False)


__all__ = [
    "LogNotifier",
    "NotificationMessage",
    "Notifier",
    "NotifierManager",
    "SendResult",
    "TelegramBotNotifier",
    "TelegramConfig",
    "format_signal",
    "format_summary",
    "notify_signals",
    "notify_summary",
]
