"""
Error taxonomy for the speech pipeline.

Every error raised on purpose by the pipeline is a T2AError carrying the
HTTP status it maps to and a stable machine code. Routes turn them into
the JSON error envelope through to_dict():

    {"success": false, "error": "Unsupported language",
     "code": "UNSUPPORTED_LANGUAGE", "message": "...", "details": {...}}
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """
    Standardized error codes for API responses.

    Clients should branch on these, never on the human-readable text.
    """
    INVALID_TEXT = "INVALID_TEXT"                   # Missing / blank text
    TEXT_TOO_LONG = "TEXT_TOO_LONG"                 # Over max_text_chars
    UNSUPPORTED_LANGUAGE = "UNSUPPORTED_LANGUAGE"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    INVALID_REQUEST = "INVALID_REQUEST"             # Malformed body
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"           # Engine error
    TRANSCODE_FAILED = "TRANSCODE_FAILED"           # ffmpeg error
    PROBE_FAILED = "PROBE_FAILED"                   # ffprobe error
    NOT_FOUND = "NOT_FOUND"
    STORAGE_ERROR = "STORAGE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"               # Unexpected error


class T2AError(Exception):
    """
    Base exception for pipeline errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        status_code: HTTP status the error maps to.
        title: Short summary sent as the envelope's ``error`` field.
        details: Optional dictionary with additional context.
    """
    status_code = 500
    default_code = ErrorCode.INTERNAL_ERROR
    default_title = "Internal server error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        title: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        self.title = title or self.default_title
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON error envelope."""
        result: Dict[str, Any] = {
            "success": False,
            "error": self.title,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(T2AError):
    """Rejected input. The title is the message itself ("Invalid text", ...)."""
    status_code = 400
    default_code = ErrorCode.INVALID_REQUEST

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, title=message, details=details)


class SynthesisFailure(T2AError):
    """The speech engine failed or produced no audio."""
    default_code = ErrorCode.SYNTHESIS_FAILED
    default_title = "Speech synthesis failed"


class TranscodeFailure(T2AError):
    """ffmpeg failed, timed out, is missing, or produced the wrong profile."""
    default_code = ErrorCode.TRANSCODE_FAILED
    default_title = "Audio conversion failed"


class DurationProbeFailure(T2AError):
    """ffprobe failed or returned something that is not a duration."""
    default_code = ErrorCode.PROBE_FAILED
    default_title = "Duration probe failed"


class ArtifactNotFound(T2AError):
    status_code = 404
    default_code = ErrorCode.NOT_FOUND
    default_title = "File not found"


class StorageError(T2AError):
    default_code = ErrorCode.STORAGE_ERROR
    default_title = "Storage error"


def internal_error() -> T2AError:
    """Envelope for an unexpected exception; the cause goes to the log only."""
    return T2AError("An unexpected error occurred while generating audio")
