"""
Log Level Definitions and Mapping.

t2a uses numeric levels 1-4:
    1 = MINIMAL  - Only critical info (startup, shutdown, errors)
    2 = NORMAL   - Request lifecycle (default)
    3 = VERBOSE  - Pipeline stage timing, artifact bookkeeping
    4 = DEBUG    - Internal state for debugging

Mapping to Python Levels:
    MINIMAL (1) -> logging.WARNING (30)
    NORMAL (2)  -> logging.INFO (20)
    VERBOSE (3) -> logging.DEBUG (10)
    DEBUG (4)   -> logging.DEBUG - 5 (5, TRACE)
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Numeric log levels, increasing verbosity."""
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG - 5,
}

LEVEL_NAMES = {
    1: "MINIMAL",
    2: "NORMAL",
    3: "VERBOSE",
    4: "DEBUG",
}

_NAME_MAP = {
    "MINIMAL": LogLevel.MINIMAL,
    "NORMAL": LogLevel.NORMAL,
    "VERBOSE": LogLevel.VERBOSE,
    "DEBUG": LogLevel.DEBUG,
    "TRACE": LogLevel.DEBUG,
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
    "1": LogLevel.MINIMAL,
    "2": LogLevel.NORMAL,
    "3": LogLevel.VERBOSE,
    "4": LogLevel.DEBUG,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Convert various inputs to a LogLevel.

    Accepts a LogLevel, an int 1-4, a Python logging level int, a level
    name ("VERBOSE", "INFO", ...) or a numeric string. Anything else
    falls back to NORMAL.

    Examples:
        >>> coerce_level(3)
        <LogLevel.VERBOSE: 3>
        >>> coerce_level("INFO")
        <LogLevel.NORMAL: 2>
        >>> coerce_level(logging.WARNING)
        <LogLevel.MINIMAL: 1>
    """
    if isinstance(value, LogLevel):
        return value

    if isinstance(value, int):
        if 1 <= value <= 4:
            return LogLevel(value)
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        if value >= logging.INFO:
            return LogLevel.NORMAL
        return LogLevel.DEBUG

    if isinstance(value, str):
        return _NAME_MAP.get(value.upper().strip(), LogLevel.NORMAL)

    return LogLevel.NORMAL
