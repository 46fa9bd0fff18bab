"""Core engine configuration and utilities.

This package contains core functionality including:
- Configuration management (config.py)
- Logging setup (logging.py)
"""

from flowforge.core.config import Settings, get_settings, settings
from flowforge.core.logging import ExecutionLogAdapter, get_logger, setup_logging

__all__ = [
    "ExecutionLogAdapter",
    "Settings",
    "get_logger",
    "get_settings",
    "settings",
    "setup_logging",
]
