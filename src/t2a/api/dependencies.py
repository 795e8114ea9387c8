"""
FastAPI Dependency Injection Providers.

The application factory (main.create_app) builds one SpeechService and
stores it, with the settings, on app.state. Route handlers receive them
through Depends() so tests can build an app around fake collaborators.

Usage in Route Handlers:
    @router.post("/api/tts")
    async def tts(req: TTSRequest, service: SpeechService = Depends(get_speech_service)):
        ...
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from t2a.core.config import Settings, default_settings, load_settings
from t2a.services.speech_service import SpeechService


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Reads config/settings.yaml (or T2A_SETTINGS). A missing file means
    defaults plus environment overrides.
    """
    try:
        return load_settings()
    except FileNotFoundError:
        return default_settings()


def get_speech_service(request: Request) -> SpeechService:
    """The SpeechService owned by this application."""
    return request.app.state.speech_service
