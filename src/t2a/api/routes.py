"""
t2a API Routes.

Endpoints:
    POST /api/tts                 - Audio as a streamed attachment with metadata headers
    POST /api/tts/complete        - JSON envelope with base64 audio (alias /api/tts/json)
    POST /api/tts/save            - Persist the audio, return its record
    GET  /audio/{filename}        - Stream a persisted file
    GET  /api/tts/languages       - Supported languages
    GET  /api/tts/info            - API description
    GET  /api/duration/{filename} - Duration of a stored or temporary file
    GET  /health                  - Health check
    GET  /metrics                 - Prometheus metrics

Request Flow (POST endpoints):
    1. Assign a request ID for log correlation
    2. Validate the body (400 on failure, nothing written to disk)
    3. Open an artifact scope and run the pipeline
    4. Emit: stream / JSON envelope (the response takes over the
       artifacts) or persist (the scope releases them immediately)
    5. Any pipeline failure returns the error envelope; the scope
       releases whatever was created

Error Envelope:
    {
        "success": false,
        "error": "Unsupported language",
        "code": "UNSUPPORTED_LANGUAGE",
        "message": "Unsupported language",
        "details": {"supported": [...]}
    }

Example Usage:
    curl -X POST http://localhost:3000/api/tts \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Hello world", "lang": "english", "file": "mp3"}' \\
        --output speech.mp3 -D -
"""
from __future__ import annotations

import uuid
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Body, Depends, Response
from fastapi.responses import FileResponse, JSONResponse

from t2a.api.dependencies import get_speech_service
from t2a.api.responses import error_response, json_envelope, stream_audio
from t2a.api.schemas import DurationResponse, HealthResponse, LanguagesResponse, TTSRequest
from t2a.core.logging import error, get_logger, set_request_id, verbose, warn
from t2a.core.metrics import metrics
from t2a.services.errors import T2AError, ValidationError, internal_error
from t2a.services.speech_service import AudioArtifact, PipelineStage, SpeechService, format_duration_floor
from t2a.services.validators import LANGUAGES, AudioFormat
from t2a.tts.artifacts import ArtifactSet
from t2a.tts.storage import content_type_for
from t2a.utils.timeit import timeit

router = APIRouter()

_LOG = get_logger("t2a.api")

Emitter = Callable[[AudioArtifact, ArtifactSet], Awaitable[Response]]


def _new_request_id() -> str:
    rid = uuid.uuid4().hex[:12]
    set_request_id(rid)
    return rid


def _pipeline_failed(endpoint: str, stage: str) -> None:
    metrics.record_request(endpoint, "error")
    verbose(_LOG, "stage", event=PipelineStage.FAILED.value, failed_stage=stage)


async def _run_pipeline(
    endpoint: str,
    req: Optional[TTSRequest],
    service: SpeechService,
    emit: Emitter,
) -> Response:
    """Validate, render inside an artifact scope, and hand the result to emit."""
    _new_request_id()
    body = req.to_body() if req is not None else {}

    try:
        with timeit("validate") as t:
            request = service.validate(body)
    except ValidationError as e:
        metrics.record_request(endpoint, "rejected")
        warn(_LOG, "request_rejected", endpoint=endpoint, code=e.code, stage=PipelineStage.VALIDATING.value)
        return error_response(e)
    verbose(_LOG, "stage", event=PipelineStage.VALIDATING.value, seconds=round(t.seconds, 4))

    # render() tags its own failures with the stage they happened in
    stage = PipelineStage.SYNTHESIZING.value
    try:
        async with service.artifacts.scope() as artifacts:
            audio = await service.render(request, artifacts)
            stage = PipelineStage.EMITTING.value
            with timeit("emit") as t:
                response = await emit(audio, artifacts)
            verbose(_LOG, "stage", event=stage, seconds=round(t.seconds, 4))
    except T2AError as e:
        _pipeline_failed(endpoint, e.details.setdefault("stage", stage))
        return error_response(e)
    except Exception as e:
        _pipeline_failed(endpoint, stage)
        error(_LOG, "unhandled_error", endpoint=endpoint, error=repr(e), exc_info=e)
        return error_response(internal_error())
    finally:
        verbose(_LOG, "stage", event=PipelineStage.RELEASING.value)

    metrics.record_request(
        endpoint,
        "success",
        duration=audio.timings_s.get("total"),
        fmt=audio.output_format.value,
        audio_bytes=audio.size,
    )
    return response


@router.post("/api/tts")
async def tts_stream(
    req: Optional[TTSRequest] = Body(default=None),
    service: SpeechService = Depends(get_speech_service),
):
    """
    Convert text to audio and return it as a file attachment.

    Returns:
        audio/mpeg or audio/wav body with headers:
            - Content-Disposition: attachment; filename="t2a_<index>.<ext>"
            - X-Audio-Duration: Duration in seconds
            - X-Audio-Duration-Formatted: Rounded, e.g. "3s"
            - X-File-Size: Size in bytes
            - X-Filename / X-File-Index: Display name and sequential index
            - X-Request-Id: Correlation id
    """
    grace = service.config.cleanup.grace_seconds

    async def emit(audio: AudioArtifact, artifacts: ArtifactSet) -> Response:
        return stream_audio(audio, service.artifacts, artifacts, grace)

    return await _run_pipeline("tts", req, service, emit)


@router.post("/api/tts/complete")
@router.post("/api/tts/json", include_in_schema=False)
async def tts_complete(
    req: Optional[TTSRequest] = Body(default=None),
    service: SpeechService = Depends(get_speech_service),
):
    """Convert text to audio and return it base64-encoded in a JSON envelope."""
    grace = service.config.cleanup.grace_seconds

    async def emit(audio: AudioArtifact, artifacts: ArtifactSet) -> Response:
        data = await service.read_bytes(audio)
        return json_envelope(audio, data, service.artifacts, artifacts, grace)

    return await _run_pipeline("complete", req, service, emit)


@router.post("/api/tts/save")
async def tts_save(
    req: Optional[TTSRequest] = Body(default=None),
    service: SpeechService = Depends(get_speech_service),
):
    """Convert text to audio, store it, and return where to fetch it."""

    async def emit(audio: AudioArtifact, artifacts: ArtifactSet) -> Response:
        record = await service.persist(audio)
        file_info = audio.file_info()
        return JSONResponse(
            content={
                "success": True,
                "message": "Audio saved",
                "file_info": {
                    "filename": record.filename,
                    "url": record.url,
                    "format": file_info["format"],
                    "duration": file_info["duration"],
                    "duration_formatted": file_info["duration_formatted"],
                    "size": record.size,
                    "language": file_info["language"],
                    "language_name": file_info["language_name"],
                    "text_length": file_info["text_length"],
                    "timestamp": file_info["timestamp"],
                },
            },
        )

    return await _run_pipeline("save", req, service, emit)


@router.get("/audio/{filename}")
async def get_audio(filename: str, service: SpeechService = Depends(get_speech_service)):
    """Stream a persisted file."""
    try:
        path = service.store.resolve(filename)
    except T2AError as e:
        return error_response(e)
    return FileResponse(path, media_type=content_type_for(filename), filename=filename)


@router.get("/api/tts/languages", response_model=LanguagesResponse)
async def languages():
    return {"success": True, "supported_languages": LANGUAGES.listing()}


@router.get("/api/tts/info")
async def api_info(service: SpeechService = Depends(get_speech_service)):
    """Describe the API: endpoints, formats, languages, limits and headers."""
    cfg = service.config
    return {
        "endpoint": "/api/tts",
        "method": "POST",
        "endpoints": {
            "POST /api/tts": "Audio file attachment with metadata headers",
            "POST /api/tts/complete": "JSON with base64 audio and file_info",
            "POST /api/tts/save": "Store the audio and return its URL",
            "GET /audio/{filename}": "Fetch stored audio",
            "GET /api/tts/languages": "Supported languages",
            "GET /api/duration/{filename}": "Duration of a stored file",
            "GET /health": "Health check",
        },
        "supported_languages": {alias: entry["code"] for alias, entry in LANGUAGES.listing().items()},
        "supported_formats": AudioFormat.values(),
        "limits": {"max_text_chars": cfg.validation.max_text_chars},
        "request_format": {
            "text": f"string (required) - Text to convert to speech, max {cfg.validation.max_text_chars} chars",
            "lang": f"string (optional, default {cfg.validation.default_language}) - Language name or code",
            "file": f"string (optional, default {cfg.validation.default_format}) - Output format: mp3/wav",
        },
        "example_request": {
            "text": "Hello, how are you? This is a test of the text to speech system.",
            "lang": "english",
            "file": "mp3",
        },
        "response_headers": {
            "X-Audio-Duration": "Duration of audio in seconds",
            "X-Audio-Duration-Formatted": "Duration rounded to whole seconds, e.g. 3s",
            "X-File-Size": "Size of the audio in bytes",
            "X-Filename": f"Filename in format {cfg.naming.filename_prefix}_[index].[ext]",
            "X-File-Index": "Sequential file index",
            "X-Request-Id": "Request correlation id",
        },
        "wav_profile": {
            "channels": cfg.media.wav_channels,
            "sample_rate": cfg.media.wav_sample_rate,
            "encoding": "pcm_s16le",
        },
    }


@router.get("/api/duration/{filename}", response_model=DurationResponse)
async def duration(filename: str, service: SpeechService = Depends(get_speech_service)):
    """Probe a stored (or still temporary) file."""
    try:
        _, seconds = await service.probe_file(filename)
    except T2AError as e:
        if e.status_code >= 500:
            warn(_LOG, "duration_probe_failed", filename=filename, error=e.message)
        return error_response(e)
    return {
        "success": True,
        "filename": filename,
        "duration_seconds": round(seconds, 2),
        "duration_formatted": format_duration_floor(seconds),
    }


@router.get("/health", response_model=HealthResponse)
async def health(service: SpeechService = Depends(get_speech_service)):
    return service.health()


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
