"""Structured logging configuration for the FlowForge engine.

This module provides the logging system shared by the engine and the nodes:
- JSON structured logging for production environments
- Colored console output for development
- Rotating file handler (10MB max, 5 backups)
- Sensitive data filtering (tokens, passwords, API keys in node configs)
- ExecutionLogAdapter, a per-run logger that stamps every record with the
  execution id so log output is attributable to a specific run
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, ClassVar

from flowforge.core.config import settings


class LogLevel(str, Enum):
    """Log level enumeration for type-safe log level configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# Level names used by node authors ("warn", "log") mapped onto stdlib levels
_LEVEL_ALIASES: dict[str, int] = {
    "debug": logging.DEBUG,
    "log": logging.INFO,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def resolve_level(level: str | int) -> int:
    """Convert a level name or number into a stdlib logging level.

    Unknown names resolve to INFO.

    Examples:
        >>> resolve_level("warn")
        30
    """
    if isinstance(level, int):
        return level
    return _LEVEL_ALIASES.get(str(level).lower(), logging.INFO)


class SensitiveDataFilter(logging.Filter):
    """Filter to prevent sensitive data from appearing in logs.

    Node configurations routinely carry credentials (HttpRequest bearer
    tokens, API keys, basic auth passwords). This filter redacts them from
    the message and string arguments before any handler writes the record.

    Examples:
        >>> logger = logging.getLogger("flowforge")
        >>> logger.addFilter(SensitiveDataFilter())
        >>> logger.info("token=abc123")
        # Logs: "token: [REDACTED]"
    """

    SENSITIVE_PATTERNS: ClassVar[list[str]] = [
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "bearer",
        "credential",
    ]

    _REGEXES: ClassVar[list[tuple[str, re.Pattern[str]]]] = [
        (pattern, re.compile(rf"{pattern}[:=]\s*[\"']?[^\s\"',}}]+", re.IGNORECASE))
        for pattern in SENSITIVE_PATTERNS
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data from the record; never drops it."""
        record.msg = self.redact(str(record.msg))

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True

    @classmethod
    def redact(cls, text: str) -> str:
        """Redact "key: value" and "key=value" pairs for sensitive keys."""
        for pattern, regex in cls._REGEXES:
            text = regex.sub(f"{pattern}: [REDACTED]", text)
        return text


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Format:
        {
            "timestamp": "2025-01-12T10:30:45.123Z",
            "level": "INFO",
            "logger": "flowforge.services.workflow.engine",
            "message": "Workflow execution completed",
            "service": "FlowForge Engine",
            "context": {
                "execution_id": "1f0c...",
                "workflow_id": "wf-1",
                "duration_ms": 12.5
            }
        }
    """

    def __init__(
        self,
        service_name: str = "FlowForge Engine",
        service_version: str = "0.1.0",
    ) -> None:
        super().__init__()
        self.service_name = service_name
        self.service_version = service_version

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.service_version,
        }

        context = getattr(record, "context", None)
        if context:
            log_entry["context"] = context

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Source location only for ERROR and above
        if record.levelno >= logging.ERROR:
            log_entry["source"] = {
                "function": record.funcName,
                "line": record.lineno,
                "file": record.pathname,
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored, human-readable console formatter for development."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[41m",  # Red background
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format a copy of the record so other handlers see it unchanged."""
        colored = logging.makeLogRecord(record.__dict__)
        log_color = self.COLORS.get(colored.levelname, self.RESET)
        colored.levelname = f"{log_color}{colored.levelname}{self.RESET}"

        context = getattr(colored, "context", None)
        if context:
            colored.msg = f"{colored.getMessage()} | Context: {json.dumps(context, default=str)}"
            colored.args = None

        return super().format(colored)


class ExecutionLogAdapter(logging.LoggerAdapter):
    """Logger bound to a single workflow execution.

    Every record carries the bound fields (execution_id, workflow_id, and
    node_id for node-scoped adapters) in ``record.context``, merged with any
    ``extra={"context": {...}}`` passed at the call site.

    Examples:
        >>> run_logger = ExecutionLogAdapter(get_logger(__name__), execution_id="abc")
        >>> node_logger = run_logger.bind(node_id="2")
        >>> node_logger.info("Node completed", extra={"context": {"duration_ms": 3}})
    """

    def __init__(self, logger: logging.Logger, **bound: Any) -> None:
        super().__init__(logger, {k: v for k, v in bound.items() if v is not None})

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        call_context = extra.get("context") or {}
        extra["context"] = {**self.extra, **call_context}
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **bound: Any) -> ExecutionLogAdapter:
        """Return a child adapter with additional bound fields."""
        return ExecutionLogAdapter(self.logger, **{**self.extra, **bound})


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    service_name: str | None = None,
    enable_json: bool | None = None,
    enable_console: bool = True,
) -> logging.Logger:
    """Configure the ``flowforge`` logger hierarchy.

    Sets up:
    - Rotating file handler (10MB max, 5 backups), JSON or plain text
    - Console handler, colored in DEBUG mode and JSON otherwise
    - SensitiveDataFilter on every handler when LOG_SENSITIVE_FILTER is set

    Args:
        log_level: Logging level name. Defaults to settings.LOG_LEVEL.
        log_file: Path to log file. Defaults to settings.LOG_FILE or
            logs/flowforge.log.
        service_name: Service name for JSON records. Defaults to
            settings.PROJECT_NAME.
        enable_json: JSON formatting for the file handler. Defaults to
            settings.LOG_JSON_FORMAT.
        enable_console: Enable console output handler.

    Returns:
        The configured ``flowforge`` logger.
    """
    log_level = (log_level or settings.LOG_LEVEL).upper()
    service_name = service_name or settings.PROJECT_NAME
    if enable_json is None:
        enable_json = settings.LOG_JSON_FORMAT

    log_file_path = Path(log_file or settings.LOG_FILE or "logs/flowforge.log")
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("flowforge")
    logger.setLevel(getattr(logging, log_level, logging.INFO))
    logger.propagate = False

    # Remove existing handlers to avoid duplicates on repeated setup
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    sensitive_filter = SensitiveDataFilter() if settings.LOG_SENSITIVE_FILTER else None

    file_handler = RotatingFileHandler(
        filename=str(log_file_path),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    if enable_json:
        file_handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        file_handler.setFormatter(
            logging.Formatter(settings.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
    if sensitive_filter:
        file_handler.addFilter(sensitive_filter)
    logger.addHandler(file_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level, logging.INFO))
        if settings.DEBUG:
            console_handler.setFormatter(ColoredConsoleFormatter())
        else:
            console_handler.setFormatter(JSONFormatter(service_name=service_name))
        if sensitive_filter:
            console_handler.addFilter(sensitive_filter)
        logger.addHandler(console_handler)

    logger.info(
        f"Logging initialized - Level: {log_level}, File: {log_file_path}",
        extra={
            "context": {
                "log_level": log_level,
                "log_file": str(log_file_path),
                "service": service_name,
            }
        },
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name.

    Examples:
        >>> from flowforge.core.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Validating workflow")
    """
    return logging.getLogger(name)


__all__ = [
    "ColoredConsoleFormatter",
    "ExecutionLogAdapter",
    "JSONFormatter",
    "LogLevel",
    "SensitiveDataFilter",
    "get_logger",
    "resolve_level",
    "setup_logging",
]
