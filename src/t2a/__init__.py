"""
t2a: Text-to-Audio HTTP Microservice.

Converts submitted text into speech audio and hands it back either as a
streamed attachment, a JSON envelope with base64 audio, or a persisted file
that can be fetched later by name.

External Collaborators:
    - gTTS: Google Translate text-to-speech (MP3 output)
    - ffmpeg: MP3 -> WAV transcoding (mono, 22050 Hz, PCM 16-bit)
    - ffprobe: Container duration metadata

Key Features:
    - Streamed endpoint with duration/size/index metadata headers (/api/tts)
    - JSON envelope endpoint with base64 audio (/api/tts/complete)
    - Persisted audio with retrieval by filename (/api/tts/save, /audio/...)
    - Deterministic temporary file cleanup on every exit path
    - Background housekeeping of aged files
    - Prometheus metrics

Example Usage:
    >>> import asyncio
    >>> from t2a.core.config import Settings
    >>> from t2a.services import validate_request
    >>> from t2a.services.speech_service import SpeechService
    >>>
    >>> service = SpeechService(Settings(raw={}))
    >>> req = validate_request({"text": "Hello", "lang": "english", "file": "wav"})
    >>> async def run():
    ...     async with service.artifacts.scope() as artifacts:
    ...         audio = await service.render(req, artifacts)
    ...         return audio.file_info()
    >>> asyncio.run(run())
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
