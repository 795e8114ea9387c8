"""Shared fixtures: a service wired to fake engine / media tool collaborators."""
from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import numpy as np
import pytest
import soundfile as sf

from t2a.core.config import Settings
from t2a.services.errors import DurationProbeFailure, TranscodeFailure
from t2a.services.speech_service import SpeechService
from t2a.services.validators import AudioFormat
from t2a.tts.artifacts import SequentialIndex
from t2a.tts.synthesizer import SpeechSynthesizer
from t2a.tts.transcoder import MediaTranscoder
from t2a.utils.audio import wav_duration

FAKE_MP3_HEADER = b"ID3\x03\x00\x00\x00\x00\x00\x00"
FAKE_MP3_FRAME = b"\xff\xfb\x90\x00" + b"\x00" * 60
FAKE_MP3_DURATION = 1.6


def fake_mp3_bytes(text: str) -> bytes:
    return FAKE_MP3_HEADER + FAKE_MP3_FRAME * max(1, len(text) // 4)


def write_wav(path, waveform: np.ndarray, sample_rate: int, channels: int = 1) -> int:
    """Write a float waveform in [-1, 1] as PCM 16-bit WAV; stereo duplicates the mono signal."""
    wav = np.asarray(waveform, dtype=np.float32).reshape(-1)
    if channels == 2:
        wav = np.stack([wav, wav], axis=1)
    sf.write(str(path), wav, sample_rate, format="WAV", subtype="PCM_16")
    return Path(path).stat().st_size


class FakeSynthesizer(SpeechSynthesizer):
    """Writes deterministic MP3-looking bytes instead of calling the network."""

    name = "fake"

    def __init__(self, fail: bool = False, empty: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.fail = fail
        self.empty = empty
        self.calls: List[Tuple[str, str, Path]] = []

    def _synthesize_blocking(self, text: str, language_code: str, destination: Path) -> None:
        self.calls.append((text, language_code, destination))
        if self.fail:
            raise RuntimeError("engine exploded")
        destination.write_bytes(b"" if self.empty else fake_mp3_bytes(text))


class FakeTranscoder(MediaTranscoder):
    """
    Produces a real PCM WAV (numpy + soundfile) for wav output and copies
    bytes for mp3. Duration probing reads WAV headers and reports a fixed
    duration for MP3.
    """

    def __init__(self, fail: bool = False, probe_fails: bool = False, wav_seconds: float = 0.75,
                 mp3_duration: float = FAKE_MP3_DURATION, **kwargs):
        super().__init__(**kwargs)
        self.mp3_duration = mp3_duration
        self.fail = fail
        self.probe_fails = probe_fails
        self.wav_seconds = wav_seconds
        self.transcoded: List[Tuple[Path, Path, AudioFormat]] = []

    async def transcode(self, src, dst, fmt):
        dst = Path(dst)
        self.transcoded.append((Path(src), dst, fmt))
        if self.fail:
            dst.write_bytes(b"partial")
            raise TranscodeFailure("Media tool exited with status 1")
        if fmt is AudioFormat.WAV:
            frames = int(self.profile.sample_rate * self.wav_seconds)
            t = np.arange(frames, dtype=np.float32) / self.profile.sample_rate
            wave = 0.2 * np.sin(2 * np.pi * 440.0 * t).astype(np.float32)
            write_wav(dst, wave, self.profile.sample_rate, self.profile.channels)
            self.verify_wav(dst)
        else:
            dst.write_bytes(Path(src).read_bytes())
        return dst

    async def probe_duration(self, path):
        if self.probe_fails:
            raise DurationProbeFailure("Probe tool not found: ffprobe")
        path = Path(path)
        if not path.exists():
            raise DurationProbeFailure("No such file")
        if path.suffix == ".wav":
            return wav_duration(path)
        return self.mp3_duration


def make_settings(tmp_path: Path, **sections) -> Settings:
    raw = {
        "paths": {"temp_dir": str(tmp_path / "temp"), "saved_dir": str(tmp_path / "saved")},
        "cleanup": {"grace_seconds": 0, "purge_temp_on_shutdown": True},
        "housekeeping": {"enabled": False},
    }
    for name, values in sections.items():
        raw.setdefault(name, {}).update(values)
    return Settings(raw=raw)


def make_service(settings: Settings, synthesizer=None, transcoder=None) -> SpeechService:
    return SpeechService(
        settings,
        synthesizer=synthesizer or FakeSynthesizer(),
        transcoder=transcoder or FakeTranscoder(),
        sequence=SequentialIndex(),
    )


def temp_files(service: SpeechService) -> List[Path]:
    d = service.artifacts.temp_dir
    return sorted(p for p in d.iterdir() if p.is_file()) if d.exists() else []


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def service(settings):
    return make_service(settings)


@pytest.fixture
def client(service):
    from fastapi.testclient import TestClient
    from t2a.main import create_app

    return TestClient(create_app(service=service))
