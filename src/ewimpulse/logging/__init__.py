"""Logging helpers shared by every ewimpulse module."""

from .logger import LogConfig, get_logger, level_from_name, setup_logging

__all__ = ["LogConfig", "get_logger", "level_from_name", "setup_logging"]
