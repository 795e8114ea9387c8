"""
Audio file helpers built on soundfile (libsndfile).

Key Functions:
    wav_profile: Read channels / sample rate / subtype from a WAV header
    wav_duration: Duration in seconds from a WAV header (frames / rate)

Only WAV headers are read here; MP3 duration comes from ffprobe.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import soundfile as sf

PathLike = Union[str, Path]


@dataclass(frozen=True)
class WavInfo:
    """Header fields of a WAV file."""
    channels: int
    sample_rate: int
    subtype: str
    frames: int

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0


def wav_profile(path: PathLike) -> WavInfo:
    """
    Read the header of a WAV file.

    Raises:
        soundfile.LibsndfileError (a RuntimeError) if the file is not
        readable audio.
    """
    info = sf.info(str(path))
    return WavInfo(
        channels=int(info.channels),
        sample_rate=int(info.samplerate),
        subtype=str(info.subtype),
        frames=int(info.frames),
    )


def wav_duration(path: PathLike) -> float:
    return wav_profile(path).duration

