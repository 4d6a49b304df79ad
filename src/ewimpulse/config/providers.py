"""Config providers.

Layered config is composed from providers in precedence order:
defaults (dict) < file (JSON/TOML) < environment. Each provider returns a plain
dict and ``ConfigManager`` deep-merges them, later providers winning.
"""

from __future__ import annotations

import copy
import json
import os
import tomllib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol, runtime_checkable


@runtime_checkable
class ConfigProvider(Protocol):
    name: str

    def load(self) -> Dict[str, Any]:
        """Return the provider config as a plain dict."""
        ...


def _deep_merge(a: Dict[str, Any], b: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge mapping b into dict a (recursive for dict values)."""
    for k, v in b.items():
        if isinstance(v, Mapping) and isinstance(a.get(k), Mapping):
            a[k] = _deep_merge(dict(a[k]), v)
        else:
            a[k] = v
    return a


def _set_nested(d: Dict[str, Any], keys: List[str], value: Any) -> None:
    cur = d
    for k in keys[:-1]:
        if k not in cur or not isinstance(cur[k], dict):
            cur[k] = {}
        cur = cur[k]
    cur[keys[-1]] = value


def _coerce_value(s: str) -> Any:
    sl = s.strip().lower()
    if sl in {"true", "yes", "y", "on"}:
        return True
    if sl in {"false", "no", "n", "off"}:
        return False
    if sl in {"", "none", "null"}:
        return None
    try:
        if "." in sl or "e" in sl:
            return float(sl)
        return int(sl)
    except ValueError:
        pass
    if (sl.startswith("{") and sl.endswith("}")) or (sl.startswith("[") and sl.endswith("]")):
        try:
            return json.loads(s)
        except json.JSONDecodeError:
            return s
    return s.strip()


@dataclass
class DictProvider:
    name: str = "dict"
    data: Dict[str, Any] = field(default_factory=dict)

    def load(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data) if self.data else {}


@dataclass
class EnvProvider:
    """Reads EWI_* variables and builds a nested dict via the '__' separator.

    Example:
      EWI_IMPULSE__DEVIATION_PERCENT=0.2
    becomes:
      {"impulse": {"deviation_percent": 0.2}}
    """

    name: str = "env"
    prefix: str = "EWI_"
    sep: str = "__"

    def load(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for k, v in os.environ.items():
            if not k.startswith(self.prefix):
                continue
            key = k[len(self.prefix):]
            parts = [p.strip().lower() for p in key.split(self.sep) if p.strip()]
            if not parts:
                continue
            _set_nested(out, parts, _coerce_value(v))
        return out


@dataclass
class FileProvider:
    """Reads a JSON or TOML config file."""

    name: str = "file"
    path: str = ""
    optional: bool = True

    def load(self) -> Dict[str, Any]:
        if not self.path:
            return {}
        if not os.path.exists(self.path):
            if self.optional:
                return {}
            raise FileNotFoundError(self.path)

        with open(self.path, "rb") as f:
            raw = f.read()

        p = self.path.lower()
        if p.endswith(".json"):
            return json.loads(raw.decode("utf-8"))
        if p.endswith(".toml"):
            return tomllib.loads(raw.decode("utf-8"))

        # no recognised suffix: try json then toml
        text = raw.decode("utf-8")
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            try:
                return tomllib.loads(text)
            except tomllib.TOMLDecodeError as e:
                raise RuntimeError(f"Unsupported config format: {self.path}") from e


@dataclass
class ConfigManager:
    """Compose providers in precedence order (later overrides earlier)."""

    providers: List[ConfigProvider]

    def load(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in self.providers:
            payload = p.load()
            if payload:
                _deep_merge(merged, payload)
        return merged
