"""
Configuration Management for t2a.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (T2A_PORT, T2A_TEMP_DIR, T2A_SAVED_DIR, ...)
    2. YAML config file (config/settings.yaml, or the T2A_SETTINGS path)
    3. Defaults class values

Example settings.yaml:
    server:
      port: 3000

    paths:
      temp_dir: ./temp
      saved_dir: ./saved_audio

    media:
      wav_sample_rate: 22050
      duration_fallback_s: 5.0

    housekeeping:
      interval_seconds: 600
      max_age_seconds: 3600
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    All default values are defined here so the YAML file, the environment
    overrides and the tests agree on a single source of truth.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "0.0.0.0"
    SERVER_PORT = 3000

    # ─────────────────────────────────────────────────────────────────────────
    # Directories
    # ─────────────────────────────────────────────────────────────────────────
    TEMP_DIR = "./temp"                 # Per-request intermediate artifacts
    SAVED_DIR = "./saved_audio"         # Durable store for persisted audio

    # ─────────────────────────────────────────────────────────────────────────
    # Input validation
    # ─────────────────────────────────────────────────────────────────────────
    MAX_TEXT_CHARS = 5000
    DEFAULT_LANGUAGE = "english"
    DEFAULT_FORMAT = "mp3"

    # ─────────────────────────────────────────────────────────────────────────
    # Display filenames: <prefix>_<index>.<ext>
    # ─────────────────────────────────────────────────────────────────────────
    FILENAME_PREFIX = "t2a"

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis engine
    # ─────────────────────────────────────────────────────────────────────────
    SYNTH_ENGINE = "gtts"
    SYNTH_TLD = "com"                   # Google host variant (accent)
    SYNTH_SLOW = False
    SYNTH_MAX_CHARS_PER_CALL = 5000     # Longer text is split across calls
    SYNTH_TIMEOUT_S = 60.0              # 0 disables the bound

    # ─────────────────────────────────────────────────────────────────────────
    # Media tool (ffmpeg / ffprobe)
    # ─────────────────────────────────────────────────────────────────────────
    FFMPEG_BIN = "ffmpeg"
    FFPROBE_BIN = "ffprobe"
    WAV_SAMPLE_RATE = 22050
    WAV_CHANNELS = 1
    MEDIA_TIMEOUT_S = 120.0             # 0 disables the bound
    DURATION_FALLBACK_S = 5.0           # Reported when probing fails

    # ─────────────────────────────────────────────────────────────────────────
    # Artifact cleanup
    # ─────────────────────────────────────────────────────────────────────────
    CLEANUP_GRACE_SECONDS = 1.0         # Wait after the response is sent
    CLEANUP_PURGE_TEMP_ON_SHUTDOWN = True

    # ─────────────────────────────────────────────────────────────────────────
    # Background housekeeping
    # ─────────────────────────────────────────────────────────────────────────
    HOUSEKEEPING_ENABLED = True
    HOUSEKEEPING_INTERVAL_SECONDS = 600     # 10 minutes
    HOUSEKEEPING_MAX_AGE_SECONDS = 3600     # 1 hour

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG
    LOGGING_LOG_DIR = None              # None disables the JSONL file
    LOGGING_JSONL_FILE = "t2a.jsonl"


@dataclass
class ServerConfig:
    """Listening address for the ASGI server (used by the CLI)."""
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT


@dataclass
class PathsConfig:
    """
    Filesystem locations.

    Both directories are created at startup if absent.
    """
    temp_dir: str = Defaults.TEMP_DIR
    saved_dir: str = Defaults.SAVED_DIR


@dataclass
class ValidationConfig:
    """Input bounds and defaults applied by the request validator."""
    max_text_chars: int = Defaults.MAX_TEXT_CHARS
    default_language: str = Defaults.DEFAULT_LANGUAGE
    default_format: str = Defaults.DEFAULT_FORMAT


@dataclass
class NamingConfig:
    """Display filename pattern settings."""
    filename_prefix: str = Defaults.FILENAME_PREFIX


@dataclass
class SynthesisConfig:
    """
    Synthesis engine configuration.

    max_chars_per_call is the longest text handed to the engine in one
    call; it should be measured against the real engine, not assumed.
    """
    engine: str = Defaults.SYNTH_ENGINE
    tld: str = Defaults.SYNTH_TLD
    slow: bool = Defaults.SYNTH_SLOW
    max_chars_per_call: int = Defaults.SYNTH_MAX_CHARS_PER_CALL
    timeout_s: float = Defaults.SYNTH_TIMEOUT_S


@dataclass
class MediaConfig:
    """
    ffmpeg / ffprobe configuration.

    One canonical WAV profile per process: mono, 22050 Hz, PCM 16-bit by
    default. The transcoder verifies every WAV it produces against it.
    """
    ffmpeg_bin: str = Defaults.FFMPEG_BIN
    ffprobe_bin: str = Defaults.FFPROBE_BIN
    wav_sample_rate: int = Defaults.WAV_SAMPLE_RATE
    wav_channels: int = Defaults.WAV_CHANNELS
    timeout_s: float = Defaults.MEDIA_TIMEOUT_S
    duration_fallback_s: float = Defaults.DURATION_FALLBACK_S


@dataclass
class CleanupConfig:
    """Temporary artifact release settings."""
    grace_seconds: float = Defaults.CLEANUP_GRACE_SECONDS
    purge_temp_on_shutdown: bool = Defaults.CLEANUP_PURGE_TEMP_ON_SHUTDOWN


@dataclass
class HousekeepingConfig:
    """Periodic sweep of aged files in the temp and saved directories."""
    enabled: bool = Defaults.HOUSEKEEPING_ENABLED
    interval_seconds: int = Defaults.HOUSEKEEPING_INTERVAL_SECONDS
    max_age_seconds: int = Defaults.HOUSEKEEPING_MAX_AGE_SECONDS


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle (default)
        3 = VERBOSE: Per-stage timing, artifact bookkeeping
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL
    log_dir: Optional[str] = Defaults.LOGGING_LOG_DIR
    jsonl_file: str = Defaults.LOGGING_JSONL_FILE


@dataclass
class ServiceConfig:
    """
    Validated configuration for the speech pipeline and the HTTP app.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.media.wav_sample_rate)
    """
    server: ServerConfig = field(default_factory=ServerConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    naming: NamingConfig = field(default_factory=NamingConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    housekeeping: HousekeepingConfig = field(default_factory=HousekeepingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Server
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        server = ServerConfig(
            host=str(server_raw.get("host", Defaults.SERVER_HOST)),
            port=int(server_raw.get("port", Defaults.SERVER_PORT)),
        )
        cls._validate_range("server.port", server.port, 1, 65535)

        # ─────────────────────────────────────────────────────────────────────
        # Paths
        # ─────────────────────────────────────────────────────────────────────
        paths_raw = raw.get("paths", {}) or {}
        paths = PathsConfig(
            temp_dir=str(paths_raw.get("temp_dir", Defaults.TEMP_DIR)),
            saved_dir=str(paths_raw.get("saved_dir", Defaults.SAVED_DIR)),
        )
        if Path(paths.temp_dir).resolve() == Path(paths.saved_dir).resolve():
            raise ConfigValidationError("paths.temp_dir and paths.saved_dir must differ")

        # ─────────────────────────────────────────────────────────────────────
        # Validation
        # ─────────────────────────────────────────────────────────────────────
        validation_raw = raw.get("validation", {}) or {}
        validation = ValidationConfig(
            max_text_chars=int(validation_raw.get("max_text_chars", Defaults.MAX_TEXT_CHARS)),
            default_language=str(validation_raw.get("default_language", Defaults.DEFAULT_LANGUAGE)).lower(),
            default_format=str(validation_raw.get("default_format", Defaults.DEFAULT_FORMAT)).lower(),
        )
        cls._validate_positive("validation.max_text_chars", validation.max_text_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Naming
        # ─────────────────────────────────────────────────────────────────────
        naming_raw = raw.get("naming", {}) or {}
        naming = NamingConfig(
            filename_prefix=str(naming_raw.get("filename_prefix", Defaults.FILENAME_PREFIX)),
        )
        if not naming.filename_prefix or "/" in naming.filename_prefix or "\\" in naming.filename_prefix:
            raise ConfigValidationError(
                f"naming.filename_prefix must be a plain name, got {naming.filename_prefix!r}"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis
        # ─────────────────────────────────────────────────────────────────────
        synth_raw = raw.get("synthesis", {}) or {}
        synthesis = SynthesisConfig(
            engine=str(synth_raw.get("engine", Defaults.SYNTH_ENGINE)).lower(),
            tld=str(synth_raw.get("tld", Defaults.SYNTH_TLD)),
            slow=bool(synth_raw.get("slow", Defaults.SYNTH_SLOW)),
            max_chars_per_call=int(synth_raw.get("max_chars_per_call", Defaults.SYNTH_MAX_CHARS_PER_CALL)),
            timeout_s=float(synth_raw.get("timeout_s", Defaults.SYNTH_TIMEOUT_S)),
        )
        cls._validate_positive("synthesis.max_chars_per_call", synthesis.max_chars_per_call)
        cls._validate_non_negative("synthesis.timeout_s", synthesis.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Media tool
        # ─────────────────────────────────────────────────────────────────────
        media_raw = raw.get("media", {}) or {}
        media = MediaConfig(
            ffmpeg_bin=str(media_raw.get("ffmpeg_bin", Defaults.FFMPEG_BIN)),
            ffprobe_bin=str(media_raw.get("ffprobe_bin", Defaults.FFPROBE_BIN)),
            wav_sample_rate=int(media_raw.get("wav_sample_rate", Defaults.WAV_SAMPLE_RATE)),
            wav_channels=int(media_raw.get("wav_channels", Defaults.WAV_CHANNELS)),
            timeout_s=float(media_raw.get("timeout_s", Defaults.MEDIA_TIMEOUT_S)),
            duration_fallback_s=float(media_raw.get("duration_fallback_s", Defaults.DURATION_FALLBACK_S)),
        )
        cls._validate_positive("media.wav_sample_rate", media.wav_sample_rate)
        cls._validate_range("media.wav_channels", media.wav_channels, 1, 2)
        cls._validate_non_negative("media.timeout_s", media.timeout_s)
        cls._validate_non_negative("media.duration_fallback_s", media.duration_fallback_s)

        # ─────────────────────────────────────────────────────────────────────
        # Cleanup
        # ─────────────────────────────────────────────────────────────────────
        cleanup_raw = raw.get("cleanup", {}) or {}
        cleanup = CleanupConfig(
            grace_seconds=float(cleanup_raw.get("grace_seconds", Defaults.CLEANUP_GRACE_SECONDS)),
            purge_temp_on_shutdown=bool(
                cleanup_raw.get("purge_temp_on_shutdown", Defaults.CLEANUP_PURGE_TEMP_ON_SHUTDOWN)
            ),
        )
        cls._validate_non_negative("cleanup.grace_seconds", cleanup.grace_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Housekeeping
        # ─────────────────────────────────────────────────────────────────────
        hk_raw = raw.get("housekeeping", {}) or {}
        housekeeping = HousekeepingConfig(
            enabled=bool(hk_raw.get("enabled", Defaults.HOUSEKEEPING_ENABLED)),
            interval_seconds=int(hk_raw.get("interval_seconds", Defaults.HOUSEKEEPING_INTERVAL_SECONDS)),
            max_age_seconds=int(hk_raw.get("max_age_seconds", Defaults.HOUSEKEEPING_MAX_AGE_SECONDS)),
        )
        cls._validate_positive("housekeeping.interval_seconds", housekeeping.interval_seconds)
        cls._validate_positive("housekeeping.max_age_seconds", housekeeping.max_age_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
            log_dir=logging_raw.get("log_dir", Defaults.LOGGING_LOG_DIR),
            jsonl_file=str(logging_raw.get("jsonl_file", Defaults.LOGGING_JSONL_FILE)),
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            server=server,
            paths=paths,
            validation=validation,
            naming=naming,
            synthesis=synthesis,
            media=media,
            cleanup=cleanup,
            housekeeping=housekeeping,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get the validated ServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Apply T2A_* environment variables on top of the YAML values."""
    port = os.getenv("T2A_PORT")
    if port:
        try:
            raw.setdefault("server", {})["port"] = int(port)
        except ValueError:
            raise ConfigValidationError(f"T2A_PORT must be an integer, got {port!r}")

    temp_dir = os.getenv("T2A_TEMP_DIR")
    if temp_dir:
        raw.setdefault("paths", {})["temp_dir"] = temp_dir

    saved_dir = os.getenv("T2A_SAVED_DIR")
    if saved_dir:
        raw.setdefault("paths", {})["saved_dir"] = saved_dir

    return raw


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - T2A_SETTINGS: Settings file path (when ``path`` is not given)
        - T2A_PORT: Override server.port
        - T2A_TEMP_DIR: Override paths.temp_dir
        - T2A_SAVED_DIR: Override paths.saved_dir

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path or os.getenv("T2A_SETTINGS", "config/settings.yaml"))
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=_apply_env_overrides(raw))


def default_settings() -> Settings:
    """Settings built from Defaults plus environment overrides only."""
    return Settings(raw=_apply_env_overrides({}))
