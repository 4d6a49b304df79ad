from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import List
from urllib.error import HTTPError
from urllib.request import Request, urlopen

from ewimpulse.notify.base import NotificationMessage, Notifier


def _chunks(text: str, max_len: int = 3500) -> List[str]:
    if len(text) <= max_len:
        return [text]
    out: List[str] = []
    rest = text
    while rest:
        cut = rest.rfind("\n", 0, max_len)
        if cut <= 0:
            cut = max_len
        out.append(rest[:cut])
        rest = rest[cut:].lstrip("\n")
    return out


@dataclass(frozen=True)
class TelegramConfig:
    token: str
    chat_id: str
    timeout_s: float = 20.0


class TelegramBotNotifier(Notifier):
    name = "telegram"

    def __init__(self, cfg: TelegramConfig):
        self.cfg = cfg

    @classmethod
    def from_env(cls) -> "TelegramBotNotifier":
        token = os.getenv("EWI_TELEGRAM_BOT_TOKEN", "").strip()
        chat_id = os.getenv("EWI_TELEGRAM_CHAT_ID", "").strip()
        timeout_s = float(os.getenv("EWI_TELEGRAM_TIMEOUT_S", "20").strip() or "20")
        if not token or not chat_id:
            raise RuntimeError("Missing EWI_TELEGRAM_BOT_TOKEN or EWI_TELEGRAM_CHAT_ID")
        return cls(TelegramConfig(token=token, chat_id=chat_id, timeout_s=timeout_s))

    def _api_url(self, method: str) -> str:
        return f"https://api.telegram.org/bot{self.cfg.token}/{method}"

    def _post_json(self, method: str, payload: dict) -> dict:
        data = json.dumps(payload).encode("utf-8")
        req = Request(self._api_url(method), data=data, headers={"Content-Type": "application/json"})
        try:
            with urlopen(req, timeout=self.cfg.timeout_s) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
                return json.loads(raw) if raw else {}
        except HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if hasattr(e, "read") else ""
            raise RuntimeError(f"Telegram HTTP {e.code}: {body}") from e

    def send(self, msg: NotificationMessage) -> None:
        header = msg.title.strip()
        text = msg.text.strip()
        payload_text = f"{header}\n\n{text}" if header else text
        for part in _chunks(payload_text):
            self._post_json("sendMessage", {"chat_id": self.cfg.chat_id, "text": part})
