"""
FastAPI Application Entry Point.

Usage:
    # Run with uvicorn
    uvicorn t2a.main:app --host 0.0.0.0 --port 3000

    # Or through the CLI
    t2a serve --port 3000

Lifespan:
    startup   create the temp and saved directories, start housekeeping
    shutdown  cancel housekeeping, purge the temp directory
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from t2a import __version__
from t2a.api.dependencies import get_settings
from t2a.api.responses import error_response
from t2a.api.routes import router
from t2a.core.config import Settings
from t2a.core.logging import configure_logging, get_logger, info
from t2a.services.errors import ErrorCode, T2AError, ValidationError
from t2a.services.speech_service import SpeechService
from t2a.tts.storage import HousekeepingSweeper

_LOG = get_logger("t2a.main")


def _lifespan(service: SpeechService):
    cfg = service.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Path(cfg.paths.temp_dir).mkdir(parents=True, exist_ok=True)
        Path(cfg.paths.saved_dir).mkdir(parents=True, exist_ok=True)

        task: Optional[asyncio.Task] = None
        if cfg.housekeeping.enabled:
            sweeper = HousekeepingSweeper(
                [cfg.paths.temp_dir, cfg.paths.saved_dir],
                max_age_seconds=cfg.housekeeping.max_age_seconds,
                interval_seconds=cfg.housekeeping.interval_seconds,
            )
            app.state.sweeper = sweeper
            task = asyncio.create_task(sweeper.run_forever(), name="t2a-housekeeping")

        info(
            _LOG, "startup",
            version=__version__,
            engine=service.synthesizer.name,
            temp_dir=cfg.paths.temp_dir,
            saved_dir=cfg.paths.saved_dir,
        )
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            if cfg.cleanup.purge_temp_on_shutdown:
                removed = service.artifacts.purge()
                info(_LOG, "shutdown", temp_files_removed=removed)

    return lifespan


async def _t2a_error_handler(request: Request, exc: T2AError):
    return error_response(exc)


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    err = ValidationError(
        "Invalid request body",
        ErrorCode.INVALID_REQUEST,
        details={"errors": [e.get("msg", "") for e in exc.errors()]},
    )
    return error_response(err)


def create_app(settings: Optional[Settings] = None, service: Optional[SpeechService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. Defaults to config/settings.yaml.
        service: Pipeline to serve. Defaults to one built from settings
            (tests pass one with fake collaborators).

    Returns:
        FastAPI: Configured application instance.
    """
    configure_logging()

    settings = settings or (service.settings if service is not None else get_settings())
    service = service or SpeechService(settings)

    app = FastAPI(title="t2a", version=__version__, lifespan=_lifespan(service))
    app.state.settings = settings
    app.state.speech_service = service

    app.add_exception_handler(T2AError, _t2a_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router)

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
