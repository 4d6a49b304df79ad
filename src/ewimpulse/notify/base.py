from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from ewimpulse.logging import get_logger


@dataclass
class NotificationMessage:
    title: str
    text: str
    level: str = "info"
    meta: Dict[str, Any] = field(default_factory=dict)


class Notifier:
    name: str = "notifier"

    def send(self, msg: NotificationMessage) -> None:  # pragma: no cover
        raise NotImplementedError


class LogNotifier(Notifier):
    """Writes messages to the ``ewimpulse.notify`` logger."""
    name = "log"

    def __init__(self, logger_name: str = "ewimpulse.notify"):
        self.log = get_logger(logger_name)

    def send(self, msg: NotificationMessage) -> None:
        level = msg.level.lower()
        fn = self.log.warning if level in ("warn", "warning", "error") else self.log.info
        fn(f"{msg.title}: {msg.text}".strip(), extra={"channel": self.name, "meta": msg.meta})
