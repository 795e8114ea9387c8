"""
Speech synthesis adapter.

The engine is a blocking network client (gTTS talks to Google Translate's
TTS endpoint), so each call runs in a worker thread via asyncio.to_thread
and only suspends the request that issued it.

Contract of synthesize(text, language_code, destination):
    - on success, a non-empty MP3 file exists at destination
    - any engine error, an empty result, or a timeout raises
      SynthesisFailure carrying the underlying message and exception type

Text longer than max_chars_per_call is split with chunk_text() and each
piece is written to the same open file in order. MP3 frames concatenate,
so the result is one playable stream.

Usage:
    synth = get_synthesizer(settings)
    await synth.synthesize("Hello", "en", Path("temp/ab12.mp3"))
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from gtts import gTTS

from t2a.core.config import Defaults, Settings
from t2a.core.logging import debug, get_logger, verbose
from t2a.services.errors import SynthesisFailure
from t2a.tts.chunker import chunk_text

_LOG = get_logger("t2a.synthesizer")


class SpeechSynthesizer:
    """
    Base class for synthesis engines.

    Subclasses implement _synthesize_blocking(); the base class handles
    threading, timeout and output verification.
    """

    name = "base"
    output_extension = "mp3"

    def __init__(self, max_chars_per_call: int = Defaults.SYNTH_MAX_CHARS_PER_CALL, timeout_s: float = Defaults.SYNTH_TIMEOUT_S):
        self.max_chars_per_call = max_chars_per_call
        self.timeout_s = timeout_s

    def _synthesize_blocking(self, text: str, language_code: str, destination: Path) -> None:
        raise NotImplementedError

    async def synthesize(self, text: str, language_code: str, destination: Path) -> Path:
        """
        Synthesize text into an audio file at destination.

        Raises:
            SynthesisFailure: On any engine error, timeout, or empty output.
        """
        destination = Path(destination)
        call = asyncio.to_thread(self._synthesize_blocking, text, language_code, destination)
        try:
            if self.timeout_s > 0:
                await asyncio.wait_for(call, timeout=self.timeout_s)
            else:
                await call
        except SynthesisFailure:
            raise
        except asyncio.TimeoutError:
            raise SynthesisFailure(
                f"Speech engine did not answer within {self.timeout_s:g}s",
                details={"engine": self.name, "type": "TimeoutError"},
            ) from None
        except Exception as e:
            raise SynthesisFailure(
                str(e) or type(e).__name__,
                details={"engine": self.name, "type": type(e).__name__},
            ) from e

        if not destination.exists() or destination.stat().st_size == 0:
            raise SynthesisFailure(
                "Speech engine produced no audio",
                details={"engine": self.name},
            )
        return destination


class GTTSSynthesizer(SpeechSynthesizer):
    """
    Google Translate TTS through the gTTS library. Produces MP3.

    Args:
        tld: Google host top-level domain ("com", "co.uk", "co.in", ...),
            which selects the regional accent.
        slow: Slower speech rate.
    """

    name = "gtts"

    def __init__(
        self,
        tld: str = Defaults.SYNTH_TLD,
        slow: bool = Defaults.SYNTH_SLOW,
        max_chars_per_call: int = Defaults.SYNTH_MAX_CHARS_PER_CALL,
        timeout_s: float = Defaults.SYNTH_TIMEOUT_S,
    ):
        super().__init__(max_chars_per_call=max_chars_per_call, timeout_s=timeout_s)
        self.tld = tld
        self.slow = slow

    def _synthesize_blocking(self, text: str, language_code: str, destination: Path) -> None:
        chunks = chunk_text(text, max_chars=self.max_chars_per_call).chunks
        if len(chunks) > 1:
            verbose(_LOG, "synthesis_split", chunks=len(chunks), chars=len(text))

        with destination.open("wb") as fp:
            for i, chunk in enumerate(chunks):
                gTTS(text=chunk, lang=language_code, tld=self.tld, slow=self.slow).write_to_fp(fp)
                debug(_LOG, "synthesis_chunk_written", index=i, chars=len(chunk), bytes=fp.tell())


def get_synthesizer(settings: Settings, engine: Optional[str] = None) -> SpeechSynthesizer:
    """
    Create the configured synthesis engine.

    Raises:
        ValueError: Unknown engine name.
    """
    cfg = settings.get_service_config().synthesis
    engine_name = (engine or cfg.engine).lower()
    if engine_name == "gtts":
        return GTTSSynthesizer(
            tld=cfg.tld,
            slow=cfg.slow,
            max_chars_per_call=cfg.max_chars_per_call,
            timeout_s=cfg.timeout_s,
        )
    raise ValueError(f"Unknown synthesis engine: {engine_name}")
