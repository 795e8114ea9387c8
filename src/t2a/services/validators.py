"""
Input Validation for the speech pipeline.

Validation happens before any artifact is allocated or any external tool
runs, so a rejected request leaves nothing behind on disk.

Validation Rules (checked in this order, first failure wins):
    1. text: present, a string, at least one non-whitespace character
    2. text: at most max_text_chars characters (default 5000)
    3. lang / language: defaults to "english" when absent or blank;
       must be a known alias
    4. file / format / output_format: defaults to "mp3" when absent or
       blank; mp3 or wav

The submitted text is passed through unchanged (not stripped) so the
reported text_length matches what the client sent.

Usage:
    from t2a.services.validators import validate_request, LANGUAGES

    req = validate_request({"text": "Hello", "lang": "hindi", "file": "wav"})
    req.language            # "hi"
    LANGUAGES.display_name("hi")   # "Hindi"
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ErrorCode, ValidationError


class AudioFormat(str, Enum):
    """Output container formats."""
    MP3 = "mp3"
    WAV = "wav"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def content_type(self) -> str:
        return "audio/wav" if self is AudioFormat.WAV else "audio/mpeg"

    @classmethod
    def values(cls) -> List[str]:
        return [f.value for f in cls]


# (full name, code, display name)
_LANGUAGE_TABLE: Tuple[Tuple[str, str, str], ...] = (
    ("english", "en", "English"),
    ("hindi", "hi", "Hindi"),
    ("arabic", "ar", "Arabic"),
    ("telugu", "te", "Telugu"),
    ("bengali", "bn", "Bengali"),
    ("urdu", "ur", "Urdu"),
    ("spanish", "es", "Spanish"),
)


class LanguageDirectory:
    """
    Mapping of accepted language aliases to canonical engine codes.

    Both the full name and the code are accepted aliases, so resolving a
    canonical code returns the code itself. Every code has exactly one
    display name.
    """

    def __init__(self, table: Tuple[Tuple[str, str, str], ...] = _LANGUAGE_TABLE):
        self._aliases: Dict[str, str] = {}
        self._names: Dict[str, str] = {}
        self._full_names: Dict[str, str] = {}
        for full_name, code, display in table:
            self._aliases[full_name] = code
            self._aliases[code] = code
            self._names[code] = display
            self._full_names[full_name] = code

    def resolve(self, alias: str) -> Optional[str]:
        """Canonical code for an alias (case-insensitive), or None."""
        return self._aliases.get(alias.strip().lower())

    def display_name(self, code: str) -> str:
        return self._names[code]

    def aliases(self) -> List[str]:
        return sorted(self._aliases)

    def codes(self) -> List[str]:
        return list(self._names)

    def listing(self) -> Dict[str, Dict[str, str]]:
        """Full-name aliases only: {"english": {"code": "en", "name": "English"}, ...}"""
        return {
            alias: {"code": code, "name": self._names[code]}
            for alias, code in self._full_names.items()
        }

    def __contains__(self, alias: object) -> bool:
        return isinstance(alias, str) and self.resolve(alias) is not None


LANGUAGES = LanguageDirectory()


@dataclass(frozen=True)
class SynthesisRequest:
    """
    A validated request. Only validate_request() builds these.

    Attributes:
        text: Text to speak, exactly as submitted.
        language: Canonical language code ("en", "hi", ...).
        language_alias: Lower-cased alias that was submitted or defaulted.
        output_format: Requested container.
    """
    text: str
    language: str
    language_alias: str
    output_format: AudioFormat

    @property
    def language_name(self) -> str:
        return LANGUAGES.display_name(self.language)

    @property
    def text_length(self) -> int:
        return len(self.text)


def _first_present(body: Mapping[str, Any], *keys: str) -> Any:
    """First non-null value among keys; blank strings count as absent."""
    for key in keys:
        value = body.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return value
    return None


def validate_request(
    body: Mapping[str, Any],
    max_text_chars: int = 5000,
    default_language: str = "english",
    default_format: str = "mp3",
) -> SynthesisRequest:
    """
    Validate a request body.

    Args:
        body: Decoded request body (JSON object).
        max_text_chars: Maximum accepted text length.
        default_language: Alias used when no language is given.
        default_format: Format used when no format is given.

    Returns:
        Immutable SynthesisRequest.

    Raises:
        ValidationError: On the first rule that fails.
    """
    text = body.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Invalid text", ErrorCode.INVALID_TEXT)

    if len(text) > max_text_chars:
        raise ValidationError(
            f"Text too long (max {max_text_chars} chars)",
            ErrorCode.TEXT_TOO_LONG,
            details={"length": len(text), "max": max_text_chars},
        )

    raw_lang = _first_present(body, "lang", "language")
    if raw_lang is None:
        raw_lang = default_language
    lang_alias = raw_lang.strip().lower() if isinstance(raw_lang, str) else ""
    code = LANGUAGES.resolve(lang_alias) if lang_alias else None
    if code is None:
        raise ValidationError(
            "Unsupported language",
            ErrorCode.UNSUPPORTED_LANGUAGE,
            details={"supported": LANGUAGES.aliases()},
        )

    raw_fmt = _first_present(body, "file", "format", "output_format")
    if raw_fmt is None:
        raw_fmt = default_format
    fmt_value = raw_fmt.strip().lower() if isinstance(raw_fmt, str) else ""
    try:
        output_format = AudioFormat(fmt_value)
    except ValueError:
        raise ValidationError(
            "Unsupported format",
            ErrorCode.UNSUPPORTED_FORMAT,
            details={"supported": AudioFormat.values()},
        ) from None

    return SynthesisRequest(
        text=text,
        language=code,
        language_alias=lang_alias,
        output_format=output_format,
    )
