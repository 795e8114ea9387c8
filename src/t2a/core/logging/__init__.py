"""
t2a Structured Logging Module.

    - Numeric log levels (1-4) for simplified configuration
    - Colored console output for human readability
    - JSONL file output for machine parsing
    - Request ID correlation through contextvars

Configuration:
    export T2A_LOG_LEVEL=3   # VERBOSE
    export T2A_NO_COLOR=1    # Disable colors
    export T2A_LOG_DIR=logs  # Also write logs/t2a.jsonl

    In settings.yaml:
        logging:
          level: 2
          log_dir: logs
          jsonl_file: t2a.jsonl

Usage:
    from t2a.core.logging import get_logger, info, warn, verbose

    log = get_logger("t2a.mymodule")
    info(log, "request_received", chars=150, lang="hi")
    verbose(log, "stage_done", event="transcode", seconds=0.21)
    warn(log, "duration_fallback", path="x.mp3", fallback=5.0)
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .levels import LogLevel, LEVEL_MAP, LEVEL_NAMES, coerce_level
from .context import (
    get_request_id,
    set_request_id,
    get_level,
    set_level,
    get_level_name,
    is_configured,
    set_configured,
    get_log_config,
    set_log_config,
    read_logging_config,
)
from .formatters import JsonlFormatter, ColoredConsoleFormatter, supports_color


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Configure the logging system.

    Args:
        level: Log level (1-4, level name, or LogLevel enum)
        force: Force reconfiguration even if already configured
    """
    if is_configured() and not force:
        return

    log_config = read_logging_config()
    set_log_config(log_config)

    current_level = coerce_level(level or log_config.get("level", LogLevel.NORMAL))
    set_level(current_level)
    python_level = LEVEL_MAP.get(current_level, logging.INFO)

    root = logging.getLogger("t2a")
    root.setLevel(1)  # NOTSET (0) would defer to the root logger
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(python_level)
    console.setFormatter(ColoredConsoleFormatter())
    root.addHandler(console)

    log_dir = log_config.get("log_dir")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        jsonl_path = Path(log_dir) / str(log_config.get("jsonl_file", "t2a.jsonl"))
        file_handler = RotatingFileHandler(
            jsonl_path,
            maxBytes=int(log_config.get("rotate_max_bytes", 10 * 1024 * 1024)),
            backupCount=int(log_config.get("rotate_backup_count", 5)),
            encoding="utf-8",
            delay=True,
        )
        file_handler.setLevel(1)
        file_handler.setFormatter(JsonlFormatter())
        root.addHandler(file_handler)

    set_configured(True)


def _log(
    logger: logging.Logger,
    level: int,
    tag: str,
    msg: str,
    numeric_level: int = 2,
    **fields: Any
) -> None:
    if numeric_level > get_level():
        return

    event = fields.pop("event", None)
    seconds = fields.pop("seconds", None)
    exc_info = fields.pop("exc_info", None)
    logger.log(
        level,
        msg,
        exc_info=exc_info,
        extra={
            "tag": tag,
            "request_id": get_request_id(),
            "event": event,
            "seconds": seconds,
            "extra_data": fields or None,
            "numeric_level": numeric_level,
        },
    )


def get_logger(name: str = "t2a") -> logging.Logger:
    """Get a logger under the "t2a" hierarchy, configuring logging if needed."""
    configure_logging()
    return logging.getLogger(name)


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log an info message (level 2 = NORMAL)."""
    _log(logger, logging.INFO, "INFO", msg, numeric_level=2, **fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a warning message (level 2 = NORMAL)."""
    _log(logger, logging.WARNING, "WARN", msg, numeric_level=2, **fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log an error message (level 1 = MINIMAL)."""
    _log(logger, logging.ERROR, "ERROR", msg, numeric_level=1, **fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a success message (level 2 = NORMAL)."""
    _log(logger, logging.INFO, "SUCCESS", msg, numeric_level=2, **fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a failure message (level 1 = MINIMAL)."""
    _log(logger, logging.ERROR, "FAIL", msg, numeric_level=1, **fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a verbose message (level 3 = VERBOSE)."""
    _log(logger, logging.DEBUG, "INFO", msg, numeric_level=3, **fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Log a debug message (level 4 = DEBUG)."""
    _log(logger, logging.DEBUG - 5, "DEBUG", msg, numeric_level=4, **fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "supports_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "set_level",
    "get_level_name",
    "get_log_config",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
