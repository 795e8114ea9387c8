"""
Text splitting for engines with a per-call length limit.

Text longer than synthesis.max_chars_per_call is split so the synthesis
adapter can issue several engine calls and append the audio to a single
file. Splits prefer natural pause points:

    1. Sentence endings (. ! ? … and the Devanagari / Arabic / Urdu
       full stops । ؟ ۔)
    2. Clause boundaries (, ; : and the Arabic comma ،)
    3. Whitespace
    4. Hard split at max_chars as a last resort

Adjacent short pieces are merged back together up to max_chars, so a
5000-char limit produces few calls, not one per sentence.

Example:
    >>> chunk_text("One. Two. Three.", max_chars=10).chunks
    ['One. Two.', 'Three.']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List

from t2a.core.logging import get_logger, verbose
from t2a.utils.timeit import timeit

_LOG = get_logger("t2a.chunker")


# Keeps the delimiter with the sentence
_SENT_SPLIT = re.compile(r"([^.!?…।؟۔]+[.!?…।؟۔]+|[^.!?…।؟۔]+$)", re.UNICODE)

_SOFT_SPLIT = re.compile(r"([^,;:،]+[,;:،]+|[^,;:،]+$)", re.UNICODE)


@dataclass
class ChunkResult:
    """
    Result of text chunking.

    Attributes:
        chunks: Text pieces, each at most max_chars long.
        timings_s: Timing measurements in seconds.
    """
    chunks: List[str]
    timings_s: Dict[str, float]


def _split_words(text: str, max_chars: int) -> List[str]:
    out: List[str] = []
    current = ""
    for word in text.split():
        while len(word) > max_chars:
            if current:
                out.append(current)
                current = ""
            out.append(word[:max_chars])
            word = word[max_chars:]
        if not word:
            continue
        if current and len(current) + 1 + len(word) <= max_chars:
            current = f"{current} {word}"
        elif current:
            out.append(current)
            current = word
        else:
            current = word
    if current:
        out.append(current)
    return out


def _pieces(text: str, max_chars: int) -> List[str]:
    """Split into pieces no longer than max_chars, sentence first."""
    out: List[str] = []
    sentences = [m.group(0).strip() for m in _SENT_SPLIT.finditer(text) if m.group(0).strip()]
    for sent in sentences:
        if len(sent) <= max_chars:
            out.append(sent)
            continue
        clauses = [m.group(0).strip() for m in _SOFT_SPLIT.finditer(sent) if m.group(0).strip()]
        for clause in clauses:
            if len(clause) <= max_chars:
                out.append(clause)
            else:
                out.extend(_split_words(clause, max_chars))
    return out


def _merge(pieces: List[str], max_chars: int) -> List[str]:
    out: List[str] = []
    current = ""
    for piece in pieces:
        if current and len(current) + 1 + len(piece) <= max_chars:
            current = f"{current} {piece}"
        else:
            if current:
                out.append(current)
            current = piece
    if current:
        out.append(current)
    return out


def chunk_text(text: str, max_chars: int = 5000) -> ChunkResult:
    """
    Split text into chunks of at most max_chars characters.

    Text that already fits is returned as a single chunk, unchanged.

    Args:
        text: Input text.
        max_chars: Maximum characters per chunk.

    Returns:
        ChunkResult with the chunks in reading order.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    timings: Dict[str, float] = {}

    with timeit("chunk") as t:
        if len(text) <= max_chars:
            out = [text] if text.strip() else []
        else:
            out = _merge(_pieces(text, max_chars), max_chars)

    timings["chunk"] = t.seconds
    verbose(_LOG, "chunked", chunks=len(out), max_chars=max_chars, seconds=round(timings["chunk"], 4))

    return ChunkResult(chunks=out, timings_s=timings)
