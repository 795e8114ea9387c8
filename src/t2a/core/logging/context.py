"""
Request Context and Configuration State for Logging.

The request id lives in a ContextVar so every log line emitted while a
request is being serviced (including the delayed artifact release that
runs after the response) carries the same correlation id.

Environment Variables:
    - T2A_LOG_LEVEL: Override log level (1-4 or name)
    - T2A_LOG_DIR: Override log directory (enables the JSONL file)
    - T2A_JSONL_FILE: Override JSONL filename
    - T2A_LOG_ROTATE_BYTES: Max log file size
    - T2A_LOG_ROTATE_BACKUP: Number of backup files
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

# "-" outside of a request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Return the request ID for the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Set the request ID used by every log call in this context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Read logging configuration from the settings file and environment.

    Priority (highest first): T2A_* environment variables, the
    ``logging`` section of settings.yaml, built-in defaults. A missing
    settings file is not an error here; the logger must come up even
    when the service is started without one.

    Returns:
        Dictionary with resolved logging configuration.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("T2A_SETTINGS", "config/settings.yaml")
    try:
        from t2a.core.config import load_settings
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except FileNotFoundError:
        pass

    if os.getenv("T2A_LOG_LEVEL"):
        cfg["level"] = os.environ["T2A_LOG_LEVEL"]
    if os.getenv("T2A_LOG_DIR"):
        cfg["log_dir"] = os.environ["T2A_LOG_DIR"]
    if os.getenv("T2A_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["T2A_JSONL_FILE"]
    if os.getenv("T2A_LOG_ROTATE_BYTES"):
        try:
            cfg["rotate_max_bytes"] = int(os.environ["T2A_LOG_ROTATE_BYTES"])
        except ValueError:
            pass  # keep default
    if os.getenv("T2A_LOG_ROTATE_BACKUP"):
        try:
            cfg["rotate_backup_count"] = int(os.environ["T2A_LOG_ROTATE_BACKUP"])
        except ValueError:
            pass  # keep default

    return cfg
