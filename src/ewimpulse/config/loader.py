from __future__ import annotations

from typing import Any, Dict, Optional

from .providers import ConfigManager, DictProvider, EnvProvider, FileProvider

DEFAULTS: Dict[str, Any] = {
    "impulse": {
        "deviation_percent": 0.1,
        "minor_deviation_percent": 0.05,
        "correction_allowance_percent": 250.0,
    },
    "logging": {"level": "info", "json": False},
    "notify": {"channels": "", "digits": 5},
}


def load_config(
    defaults: Optional[Dict[str, Any]] = None,
    file_path: Optional[str] = None,
    *,
    use_env: bool = True,
    env_prefix: str = "EWI_",
) -> Dict[str, Any]:
    """Load layered config: defaults < file < env.

    ``defaults`` falls back to :data:`DEFAULTS` when omitted.
    """
    base = DEFAULTS if defaults is None else defaults
    providers = [DictProvider(data=dict(base))]
    if file_path:
        providers.append(FileProvider(path=file_path, optional=False))
    if use_env:
        providers.append(EnvProvider(prefix=env_prefix))
    return ConfigManager(providers).load()


def section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return ``cfg[name]`` as a dict (empty when missing or not a mapping)."""
    value = cfg.get(name)
    return dict(value) if isinstance(value, dict) else {}
