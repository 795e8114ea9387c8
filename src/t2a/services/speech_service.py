"""
Speech pipeline service.

SpeechService composes the validator, the synthesis adapter, the media
tool adapter, the artifact manager and the persisted store into the
per-request pipeline:

    VALIDATING -> SYNTHESIZING -> [TRANSCODING] -> PROBING -> EMITTING -> RELEASING
    any stage  -> FAILED -> RELEASING

Transcoding only runs when the requested format differs from what the
engine produces (MP3). The sequential index is taken after validation
succeeds and before synthesis starts, so rejected requests never consume
an index.

The caller owns the ArtifactSet (see ArtifactManager.scope()); render()
only allocates paths inside it. That keeps release on every exit path in
one place.

Usage:
    service = SpeechService(settings)
    request = service.validate(body)
    async with service.artifacts.scope() as artifacts:
        audio = await service.render(request, artifacts)
        record = await service.persist(audio)
"""
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from t2a.core.config import ServiceConfig, Settings
from t2a.core.logging import debug, fail, get_logger, info, success, verbose
from t2a.services.errors import ArtifactNotFound, T2AError
from t2a.services.validators import AudioFormat, SynthesisRequest, validate_request
from t2a.tts.artifacts import ArtifactManager, ArtifactSet, SequentialIndex
from t2a.tts.storage import AudioStore, PersistedAudioRecord, is_safe_name
from t2a.tts.synthesizer import SpeechSynthesizer, get_synthesizer
from t2a.tts.transcoder import MediaTranscoder
from t2a.utils.timeit import timeit

_LOG = get_logger("t2a.service")


class PipelineStage(str, Enum):
    VALIDATING = "validating"
    SYNTHESIZING = "synthesizing"
    TRANSCODING = "transcoding"
    PROBING = "probing"
    EMITTING = "emitting"
    RELEASING = "releasing"
    FAILED = "failed"


def format_duration_rounded(seconds: float) -> str:
    """"<n>s" with n rounded half-up: 2.5 -> "3s"."""
    return f"{int(math.floor(seconds + 0.5))}s"


def format_duration_floor(seconds: float) -> str:
    """"<n>s" with n floored: 2.9 -> "2s"."""
    return f"{int(math.floor(seconds))}s"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class AudioArtifact:
    """
    Final audio produced by one request.

    Attributes:
        path: Location in the temporary directory.
        filename: Display filename (<prefix>_<index>.<ext>).
        index: Sequential index.
        output_format: Container format.
        size: Size in bytes.
        duration: Seconds (probed, header-derived, or the fallback).
        language: Canonical language code.
        language_name: Display name of the language.
        text_length: Length of the submitted text.
        timestamp: Creation time, UTC ISO-8601.
        timings_s: Per-stage timings.
    """
    path: Path
    filename: str
    index: int
    output_format: AudioFormat
    size: int
    duration: float
    language: str
    language_name: str
    text_length: int
    timestamp: str
    timings_s: Dict[str, float] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        return self.output_format.content_type

    @property
    def duration_formatted(self) -> str:
        return format_duration_rounded(self.duration)

    def file_info(self) -> Dict[str, Any]:
        """The ``file_info`` document of the JSON responses."""
        return {
            "filename": self.filename,
            "duration": round(self.duration, 2),
            "duration_formatted": self.duration_formatted,
            "format": self.output_format.value,
            "size": self.size,
            "language": self.language,
            "language_name": self.language_name,
            "text_length": self.text_length,
            "timestamp": self.timestamp,
        }


class SpeechService:
    """
    Text-to-audio pipeline.

    Args:
        settings: Application settings.
        synthesizer: Speech engine adapter. Defaults to the configured one.
        transcoder: Media tool adapter. Defaults to one built from settings.
        sequence: Sequential index. One per process; pass a shared one
            when building several services.
    """

    def __init__(
        self,
        settings: Settings,
        synthesizer: Optional[SpeechSynthesizer] = None,
        transcoder: Optional[MediaTranscoder] = None,
        sequence: Optional[SequentialIndex] = None,
    ):
        self.settings = settings
        self.config: ServiceConfig = settings.get_service_config()
        self.synthesizer = synthesizer or get_synthesizer(settings)
        self.transcoder = transcoder or MediaTranscoder.from_settings(settings)
        self.sequence = sequence or SequentialIndex()
        self.artifacts = ArtifactManager(self.config.paths.temp_dir)
        self.store = AudioStore(self.config.paths.saved_dir)

    def validate(self, body: Mapping[str, Any]) -> SynthesisRequest:
        """Validate a request body with the configured bounds and defaults."""
        v = self.config.validation
        return validate_request(
            body,
            max_text_chars=v.max_text_chars,
            default_language=v.default_language,
            default_format=v.default_format,
        )

    def display_filename(self, index: int, fmt: AudioFormat) -> str:
        return f"{self.config.naming.filename_prefix}_{index}.{fmt.extension}"

    async def render(self, request: SynthesisRequest, artifacts: ArtifactSet) -> AudioArtifact:
        """
        Run synthesis, optional transcoding and the duration probe.

        Raises:
            SynthesisFailure: The engine failed.
            TranscodeFailure: Format conversion failed.
        """
        preview_chars = self.config.logging.text_preview_chars
        preview = request.text[:preview_chars] if preview_chars > 0 else ""
        info(
            _LOG, "request",
            chars=request.text_length,
            lang=request.language,
            format=request.output_format.value,
            text_preview=preview,
        )

        index = self.sequence.next()
        filename = self.display_filename(index, request.output_format)
        debug(_LOG, "index_allocated", index=index, filename=filename, file_id=artifacts.file_id)

        timings: Dict[str, float] = {}
        stage = PipelineStage.SYNTHESIZING
        try:
            with timeit("request_total") as total_t:
                synth_path = artifacts.allocate(self.synthesizer.output_extension)
                with timeit("synthesize") as t:
                    await self.synthesizer.synthesize(request.text, request.language, synth_path)
                timings["synthesize"] = t.seconds
                verbose(_LOG, "stage", event=stage.value, seconds=round(t.seconds, 4))

                final_path = synth_path
                if request.output_format.extension != self.synthesizer.output_extension:
                    stage = PipelineStage.TRANSCODING
                    final_path = artifacts.allocate(request.output_format.extension)
                    with timeit("transcode") as t:
                        await self.transcoder.transcode(synth_path, final_path, request.output_format)
                    timings["transcode"] = t.seconds
                    verbose(_LOG, "stage", event=stage.value, seconds=round(t.seconds, 4))

                stage = PipelineStage.PROBING
                with timeit("probe") as t:
                    duration = await self.transcoder.probe_duration_or_default(final_path)
                timings["probe"] = t.seconds
                verbose(_LOG, "stage", event=stage.value, seconds=round(t.seconds, 4), duration=round(duration, 3))

                size = final_path.stat().st_size
        except T2AError as e:
            e.details.setdefault("stage", stage.value)
            fail(_LOG, "pipeline_failed", stage=stage.value, code=e.code, error=e.message)
            raise
        except Exception as e:
            fail(_LOG, "pipeline_crashed", stage=stage.value, error=repr(e))
            raise

        timings["total"] = total_t.seconds
        success(_LOG, "audio_ready", file=filename, bytes=size, duration=round(duration, 2), seconds=round(total_t.seconds, 3))

        return AudioArtifact(
            path=final_path,
            filename=filename,
            index=index,
            output_format=request.output_format,
            size=size,
            duration=duration,
            language=request.language,
            language_name=request.language_name,
            text_length=request.text_length,
            timestamp=utc_timestamp(),
            timings_s=timings,
        )

    async def read_bytes(self, audio: AudioArtifact) -> bytes:
        return await asyncio.to_thread(audio.path.read_bytes)

    async def persist(self, audio: AudioArtifact) -> PersistedAudioRecord:
        """Copy a rendered artifact into the durable store."""
        return await asyncio.to_thread(self.store.persist, audio.path, audio.filename)

    async def probe_file(self, filename: str) -> Tuple[Path, float]:
        """
        Probe a file by name, looking in the durable store first and then
        the temporary directory.

        Raises:
            ArtifactNotFound: No such file in either directory.
            DurationProbeFailure: The probe tool failed.
        """
        path: Optional[Path] = None
        try:
            path = self.store.resolve(filename)
        except ArtifactNotFound:
            candidate = self.artifacts.temp_dir / filename
            if is_safe_name(filename) and candidate.is_file():
                path = candidate
        if path is None:
            raise ArtifactNotFound(f"No file named {filename!r}")

        duration = await self.transcoder.probe_duration(path)
        return path, duration

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "time": utc_timestamp(),
            "temp_files": self.artifacts.count(),
            "saved_files": self.store.count(),
            "current_file_index": self.sequence.current,
        }
