from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from ewimpulse.logging import get_logger
from ewimpulse.notify.base import LogNotifier, NotificationMessage, Notifier
from ewimpulse.notify.telegram import TelegramBotNotifier

log = get_logger("ewimpulse.notify")


def _parse_channels(ch: str) -> List[str]:
    return [c.strip().lower() for c in (ch or "").split(",") if c.strip()]


@dataclass
class SendResult:
    ok: bool
    sent: List[str]
    failed: List[Tuple[str, str]]


class NotifierManager:
    def __init__(self, notifiers: List[Notifier]):
        self.notifiers = notifiers

    @classmethod
    def from_env(cls, channels: str) -> "NotifierManager":
        notifiers: List[Notifier] = []
        for c in _parse_channels(channels):
            try:
                if c in ("telegram", "tg"):
                    notifiers.append(TelegramBotNotifier.from_env())
                elif c in ("log", "stdout"):
                    notifiers.append(LogNotifier())
                else:
                    log.warning("unknown notify channel (supported: telegram,log)", extra={"channel": c})
            except Exception as e:
                log.warning(f"notify channel disabled: {e}", extra={"channel": c})
        return cls(notifiers)

    def send(self, msg: NotificationMessage, strict: bool = False) -> SendResult:
        if not self.notifiers:
            if strict:
                raise RuntimeError("No notifiers configured")
            return SendResult(ok=False, sent=[], failed=[("all", "no notifiers configured")])

        sent: List[str] = []
        failed: List[Tuple[str, str]] = []
        for n in self.notifiers:
            name = getattr(n, "name", n.__class__.__name__)
            try:
                n.send(msg)
                sent.append(name)
            except Exception as e:
                log.warning(f"notify failed: {e}", extra={"channel": name})
                failed.append((name, str(e)))
                if strict:
                    raise
        return SendResult(ok=(len(failed) == 0), sent=sent, failed=failed)
