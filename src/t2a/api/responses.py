"""
Response emitter.

Two success shapes share one release rule: temporary artifacts are
deleted by a Starlette background task, which runs only after the last
body chunk has been handed to the transport, followed by the configured
grace delay. A file is therefore never deleted while it is still being
streamed.

    stream_audio()   FileResponse + metadata headers (POST /api/tts)
    json_envelope()  JSON with base64 audio (POST /api/tts/complete)
    error_response() the {success: false, ...} envelope
"""
from __future__ import annotations

import base64
from typing import Any, Dict, Optional

from fastapi.responses import FileResponse, JSONResponse
from starlette.background import BackgroundTask

from t2a.core.logging import get_request_id
from t2a.services.errors import T2AError
from t2a.services.speech_service import AudioArtifact
from t2a.tts.artifacts import ArtifactManager, ArtifactSet


def audio_headers(audio: AudioArtifact) -> Dict[str, str]:
    """Metadata headers of the streamed response."""
    return {
        "X-Audio-Duration": str(round(audio.duration, 3)),
        "X-Audio-Duration-Formatted": audio.duration_formatted,
        "X-File-Size": str(audio.size),
        "X-Filename": audio.filename,
        "X-File-Index": str(audio.index),
        "X-Request-Id": get_request_id(),
    }


def _release_task(manager: ArtifactManager, artifacts: ArtifactSet, grace_seconds: float) -> BackgroundTask:
    return BackgroundTask(manager.release_after, artifacts, grace_seconds)


def stream_audio(
    audio: AudioArtifact,
    manager: ArtifactManager,
    artifacts: ArtifactSet,
    grace_seconds: float,
) -> FileResponse:
    """
    Stream the artifact as an attachment.

    Takes ownership of the artifact set; its files are released after
    the body has been sent.
    """
    response = FileResponse(
        audio.path,
        media_type=audio.content_type,
        filename=audio.filename,
        headers=audio_headers(audio),
        background=_release_task(manager, artifacts, grace_seconds),
    )
    artifacts.hand_off()
    return response


def json_envelope(
    audio: AudioArtifact,
    data: bytes,
    manager: ArtifactManager,
    artifacts: ArtifactSet,
    grace_seconds: float,
) -> JSONResponse:
    """
    Audio embedded as base64 next to its file_info document.

    Takes ownership of the artifact set like stream_audio().
    """
    content = {
        "success": True,
        "file_info": audio.file_info(),
        "audio": {
            "data": base64.b64encode(data).decode("ascii"),
            "content_type": audio.content_type,
        },
    }
    response = JSONResponse(
        content=content,
        headers={"X-Request-Id": get_request_id()},
        background=_release_task(manager, artifacts, grace_seconds),
    )
    artifacts.hand_off()
    return response


def error_response(err: T2AError, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    out_headers: Dict[str, Any] = {"X-Request-Id": get_request_id()}
    if headers:
        out_headers.update(headers)
    return JSONResponse(status_code=err.status_code, content=err.to_dict(), headers=out_headers)
