"""Config module.

  - load_config(defaults, file_path) -> dict  (defaults < file < env)
  - providers: DictProvider, EnvProvider, FileProvider composed by ConfigManager
"""

from __future__ import annotations

from .loader import DEFAULTS, load_config, section
from .providers import (
    ConfigManager,
    ConfigProvider,
    DictProvider,
    EnvProvider,
    FileProvider,
)

__all__ = [
    "DEFAULTS",
    "load_config",
    "section",
    "ConfigProvider",
    "ConfigManager",
    "DictProvider",
    "EnvProvider",
    "FileProvider",
]
