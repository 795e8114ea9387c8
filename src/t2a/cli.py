"""
Command-Line Interface for t2a.

Subcommands:
    serve       Run the HTTP service with uvicorn
    synth       One-shot text -> audio file through the same pipeline
    languages   Print the supported languages

Usage Examples:
    # Start the server on the configured host/port
    t2a serve
    t2a serve --port 8080 --reload

    # Synthesize to a file
    t2a synth "Hello world" --out hello.mp3
    t2a synth --text "नमस्ते" --lang hindi --format wav --out namaste.wav

    # Validate only, print the resolved request
    t2a synth "Hola" --lang es --dry-run --json

    # List languages
    t2a languages --json

Exit codes:
    0 success, 1 pipeline failure, 2 invalid input
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from t2a import __version__
from t2a.core.config import Settings, default_settings, load_settings
from t2a.core.logging import configure_logging, get_logger, info, set_request_id
from t2a.services.errors import T2AError, ValidationError
from t2a.services.speech_service import SpeechService
from t2a.services.validators import LANGUAGES, SynthesisRequest


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="t2a", description="t2a text-to-audio service")
    parser.add_argument("--version", action="version", version=f"t2a {__version__}")
    parser.add_argument("--settings", help="Settings file (default: config/settings.yaml or T2A_SETTINGS)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", help="Bind address (default: server.host)")
    serve.add_argument("--port", type=int, help="Port (default: server.port)")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    synth = sub.add_parser("synth", help="Synthesize text to an audio file")
    synth.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    synth.add_argument("--text", help="Text to synthesize")
    synth.add_argument("--lang", help="Language name or code (default: english)")
    synth.add_argument("--format", dest="fmt", help="mp3 or wav (default: mp3)")
    synth.add_argument("--out", help="Output path (default: the display filename)")
    synth.add_argument("--dry-run", action="store_true", help="Validate and print the request without synthesis")
    synth.add_argument("--json", action="store_true", help="Print JSON summary")

    langs = sub.add_parser("languages", help="List supported languages")
    langs.add_argument("--json", action="store_true", help="Print JSON")

    return parser.parse_args(argv)


def _load_settings(path: Optional[str]) -> Settings:
    if path:
        return load_settings(path)
    try:
        return load_settings()
    except FileNotFoundError:
        return default_settings()


def _build_service(settings: Settings) -> SpeechService:
    return SpeechService(settings)


def _request_summary(req: SynthesisRequest) -> Dict[str, Any]:
    return {
        "text_length": req.text_length,
        "language": req.language,
        "language_name": req.language_name,
        "language_alias": req.language_alias,
        "format": req.output_format.value,
    }


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        for key, value in payload.items():
            print(f"{key}: {value}")


async def _synthesize(service: SpeechService, req: SynthesisRequest, out: Optional[str]) -> Dict[str, Any]:
    async with service.artifacts.scope() as artifacts:
        audio = await service.render(req, artifacts)
        out_path = Path(out or audio.filename)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, audio.path, out_path)
        result = audio.file_info()
        result["out"] = str(out_path)
        return result


def _cmd_synth(args: argparse.Namespace, settings: Settings) -> int:
    log = get_logger("t2a.cli")
    set_request_id(uuid4().hex[:12])

    if args.text and args.text_pos:
        raise SystemExit("Use either --text or a positional text, not both.")
    body = {"text": args.text or args.text_pos, "lang": args.lang, "file": args.fmt}

    service = _build_service(settings)
    try:
        req = service.validate(body)
    except ValidationError as e:
        _emit(e.to_dict(), args.json)
        return 2

    if args.dry_run:
        payload = {"success": True, "dry_run": True, **_request_summary(req)}
        if not args.json:
            info(log, "dry_run", lang=req.language, format=req.output_format.value)
        _emit(payload, args.json)
        return 0

    try:
        result = asyncio.run(_synthesize(service, req, args.out))
    except T2AError as e:
        _emit(e.to_dict(), args.json)
        return 1

    _emit({"success": True, "dry_run": False, **result}, args.json)
    return 0


def _cmd_languages(args: argparse.Namespace) -> int:
    listing = LANGUAGES.listing()
    if args.json:
        print(json.dumps({"success": True, "supported_languages": listing}, ensure_ascii=False))
    else:
        for alias, entry in listing.items():
            print(f"{alias:<10} {entry['code']:<4} {entry['name']}")
    return 0


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    cfg = settings.get_service_config().server
    uvicorn.run(
        "t2a.main:app",
        host=args.host or cfg.host,
        port=args.port or cfg.port,
        reload=args.reload,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 success, 1 pipeline failure, 2 invalid input).
    """
    args = _parse_args(argv)

    if args.command == "languages":
        return _cmd_languages(args)

    # uvicorn imports t2a.main, which reads the path from the environment
    if args.settings:
        os.environ["T2A_SETTINGS"] = args.settings

    configure_logging()
    settings = _load_settings(args.settings)

    if args.command == "serve":
        return _cmd_serve(args, settings)
    return _cmd_synth(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
