"""
Media tool adapter (ffmpeg / ffprobe).

Every invocation is one asyncio subprocess with a single result: exit
status plus captured output. A configurable timeout kills hung processes.

Operations:
    transcode(src, dst, fmt)      ffmpeg conversion; WAV output is checked
                                  against the canonical profile
    probe_duration(path)          ffprobe container duration, seconds
    probe_duration_or_default()   never raises: ffprobe, then the WAV
                                  header, then the configured fallback

Canonical WAV profile: PCM 16-bit, mono, 22050 Hz (configurable through
media.wav_channels / media.wav_sample_rate, one profile per process).
"""
from __future__ import annotations

import asyncio
import math
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import soundfile as sf

from t2a.core.config import Defaults, Settings
from t2a.core.logging import debug, get_logger, verbose, warn
from t2a.core.metrics import metrics
from t2a.services.errors import DurationProbeFailure, TranscodeFailure
from t2a.services.validators import AudioFormat
from t2a.utils.audio import wav_duration, wav_profile

_LOG = get_logger("t2a.transcoder")

PathLike = Union[str, Path]


@dataclass(frozen=True)
class WavProfile:
    """Target WAV encoding."""
    sample_rate: int = Defaults.WAV_SAMPLE_RATE
    channels: int = Defaults.WAV_CHANNELS
    subtype: str = "PCM_16"
    codec: str = "pcm_s16le"


def build_transcode_command(ffmpeg_bin: str, src: PathLike, dst: PathLike, fmt: AudioFormat, profile: WavProfile) -> List[str]:
    """ffmpeg argument vector for converting src into fmt at dst."""
    cmd = [ffmpeg_bin, "-hide_banner", "-loglevel", "error", "-y", "-i", str(src)]
    if fmt is AudioFormat.WAV:
        cmd += [
            "-acodec", profile.codec,
            "-ac", str(profile.channels),
            "-ar", str(profile.sample_rate),
            "-f", "wav",
        ]
    else:
        cmd += ["-acodec", "libmp3lame", "-f", "mp3"]
    cmd.append(str(dst))
    return cmd


def build_probe_command(ffprobe_bin: str, path: PathLike) -> List[str]:
    return [
        ffprobe_bin,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]


def parse_duration(output: str) -> float:
    """
    Parse ffprobe's duration output.

    Raises:
        ValueError: Output is empty, "N/A", negative, or not a number.
    """
    lines = [ln.strip() for ln in output.strip().splitlines() if ln.strip()]
    if not lines:
        raise ValueError("empty ffprobe output")
    value = float(lines[0])
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"invalid duration: {lines[0]}")
    return value


class MediaTranscoder:
    """
    ffmpeg / ffprobe driver.

    Args:
        ffmpeg_bin: ffmpeg executable name or path.
        ffprobe_bin: ffprobe executable name or path.
        profile: Canonical WAV profile.
        timeout_s: Per-invocation bound; 0 disables it.
        duration_fallback_s: Value reported when probing fails.
    """

    def __init__(
        self,
        ffmpeg_bin: str = Defaults.FFMPEG_BIN,
        ffprobe_bin: str = Defaults.FFPROBE_BIN,
        profile: Optional[WavProfile] = None,
        timeout_s: float = Defaults.MEDIA_TIMEOUT_S,
        duration_fallback_s: float = Defaults.DURATION_FALLBACK_S,
    ):
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.profile = profile or WavProfile()
        self.timeout_s = timeout_s
        self.duration_fallback_s = duration_fallback_s

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaTranscoder":
        cfg = settings.get_service_config().media
        return cls(
            ffmpeg_bin=cfg.ffmpeg_bin,
            ffprobe_bin=cfg.ffprobe_bin,
            profile=WavProfile(sample_rate=cfg.wav_sample_rate, channels=cfg.wav_channels),
            timeout_s=cfg.timeout_s,
            duration_fallback_s=cfg.duration_fallback_s,
        )

    def available(self) -> bool:
        return shutil.which(self.ffmpeg_bin) is not None and shutil.which(self.ffprobe_bin) is not None

    async def _run(self, cmd: List[str]) -> Tuple[int, str, str]:
        """
        Run one subprocess to completion.

        Raises:
            FileNotFoundError: The executable does not exist.
            asyncio.TimeoutError: The process exceeded timeout_s (it is killed).
        """
        debug(_LOG, "subprocess_start", cmd=" ".join(cmd))
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            if self.timeout_s > 0:
                out, err = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_s)
            else:
                out, err = await proc.communicate()
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        return (
            proc.returncode if proc.returncode is not None else -1,
            out.decode("utf-8", "replace"),
            err.decode("utf-8", "replace"),
        )

    async def transcode(self, src: PathLike, dst: PathLike, fmt: AudioFormat) -> Path:
        """
        Convert src into fmt at dst.

        Raises:
            TranscodeFailure: Missing binary, non-zero exit, timeout, or a
                WAV output that does not match the canonical profile.
        """
        dst = Path(dst)
        cmd = build_transcode_command(self.ffmpeg_bin, src, dst, fmt, self.profile)
        try:
            code, _, err = await self._run(cmd)
        except FileNotFoundError:
            raise TranscodeFailure(
                f"Media tool not found: {self.ffmpeg_bin}",
                details={"binary": self.ffmpeg_bin},
            ) from None
        except asyncio.TimeoutError:
            raise TranscodeFailure(
                f"Media tool timed out after {self.timeout_s:g}s",
                details={"binary": self.ffmpeg_bin},
            ) from None

        if code != 0:
            raise TranscodeFailure(
                f"Media tool exited with status {code}",
                details={"stderr": err.strip()[-500:]},
            )
        if not dst.exists() or dst.stat().st_size == 0:
            raise TranscodeFailure("Media tool produced no output")

        if fmt is AudioFormat.WAV:
            self.verify_wav(dst)

        verbose(_LOG, "transcoded", format=fmt.value, bytes=dst.stat().st_size)
        return dst

    def verify_wav(self, path: PathLike) -> None:
        """
        Check a WAV file against the canonical profile.

        Raises:
            TranscodeFailure: Unreadable, or channels / rate / subtype differ.
        """
        try:
            info = wav_profile(path)
        except (RuntimeError, sf.LibsndfileError) as e:
            raise TranscodeFailure(f"Converted audio is unreadable: {e}") from e

        expected = (self.profile.channels, self.profile.sample_rate, self.profile.subtype)
        actual = (info.channels, info.sample_rate, info.subtype)
        if actual != expected:
            raise TranscodeFailure(
                "Converted audio does not match the WAV profile",
                details={
                    "expected": {"channels": expected[0], "sample_rate": expected[1], "subtype": expected[2]},
                    "actual": {"channels": actual[0], "sample_rate": actual[1], "subtype": actual[2]},
                },
            )

    async def probe_duration(self, path: PathLike) -> float:
        """
        Container duration in seconds.

        Raises:
            DurationProbeFailure: Missing binary, non-zero exit, timeout, or
                unparseable output.
        """
        cmd = build_probe_command(self.ffprobe_bin, path)
        try:
            code, out, err = await self._run(cmd)
        except FileNotFoundError:
            raise DurationProbeFailure(
                f"Probe tool not found: {self.ffprobe_bin}",
                details={"binary": self.ffprobe_bin},
            ) from None
        except asyncio.TimeoutError:
            raise DurationProbeFailure(f"Probe tool timed out after {self.timeout_s:g}s") from None

        if code != 0:
            raise DurationProbeFailure(
                f"Probe tool exited with status {code}",
                details={"stderr": err.strip()[-500:]},
            )
        try:
            return parse_duration(out)
        except ValueError as e:
            raise DurationProbeFailure(f"Unparseable duration: {e}") from e

    async def probe_duration_or_default(self, path: PathLike) -> float:
        """
        Duration that never raises.

        Falls back to the WAV header for .wav files, otherwise to
        duration_fallback_s.
        """
        try:
            return await self.probe_duration(path)
        except DurationProbeFailure as e:
            reason = e.message

        if Path(path).suffix.lower() == ".wav":
            try:
                seconds = await asyncio.to_thread(wav_duration, path)
            except (RuntimeError, sf.LibsndfileError) as e:
                debug(_LOG, "wav_header_unreadable", path=Path(path).name, error=str(e))
            else:
                metrics.record_duration_fallback("header")
                verbose(_LOG, "duration_from_header", path=Path(path).name, duration=round(seconds, 3))
                return seconds

        metrics.record_duration_fallback("default")
        warn(_LOG, "duration_fallback", path=Path(path).name, reason=reason, fallback=self.duration_fallback_s)
        return self.duration_fallback_s
