"""
t2a Services Layer.

Components:
    - errors.py: Error taxonomy and the JSON error envelope
    - validators.py: Request validation and the language directory
    - speech_service.py: SpeechService, the per-request pipeline

speech_service is not re-exported here because it imports the tts
package, which itself depends on errors and validators.
"""
from .errors import (
    ArtifactNotFound,
    DurationProbeFailure,
    ErrorCode,
    StorageError,
    SynthesisFailure,
    T2AError,
    TranscodeFailure,
    ValidationError,
    internal_error,
)
from .validators import (
    LANGUAGES,
    AudioFormat,
    LanguageDirectory,
    SynthesisRequest,
    validate_request,
)

__all__ = [
    "T2AError",
    "ValidationError",
    "SynthesisFailure",
    "TranscodeFailure",
    "DurationProbeFailure",
    "ArtifactNotFound",
    "StorageError",
    "ErrorCode",
    "internal_error",
    "AudioFormat",
    "LanguageDirectory",
    "LANGUAGES",
    "SynthesisRequest",
    "validate_request",
]
