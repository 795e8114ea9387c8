"""
API Request/Response Schemas.

TTSRequest deliberately types its fields as Any: the service's own
validator decides what is acceptable so that wrong types produce the
same "Invalid text" / "Unsupported language" envelopes as wrong values,
instead of FastAPI's generic 422.

Example Request:
    {
        "text": "नमस्ते दुनिया",
        "lang": "hindi",
        "file": "wav"
    }

Accepted aliases:
    lang: "lang" or "language"
    file: "file", "format" or "output_format"
"""
from __future__ import annotations

from typing import Any, Dict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TTSRequest(BaseModel):
    """
    Body of POST /api/tts, /api/tts/complete and /api/tts/save.

    Attributes:
        text: Text to speak (1-5000 characters, not blank).
        lang: Language alias, e.g. "english" or "en". Default "english".
        file: Output format, "mp3" or "wav". Default "mp3".
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    text: Any = Field(default=None, description="Text to synthesize")
    lang: Any = Field(
        default=None,
        validation_alias=AliasChoices("lang", "language"),
        description="Language alias (english, hindi, arabic, telugu, bengali, urdu, spanish or their codes)",
    )
    file: Any = Field(
        default=None,
        validation_alias=AliasChoices("file", "format", "output_format"),
        description="Output format: mp3 or wav",
    )

    def to_body(self) -> Dict[str, Any]:
        """Plain dict in the shape validate_request() expects."""
        return {"text": self.text, "lang": self.lang, "file": self.file}


class LanguageEntry(BaseModel):
    code: str
    name: str


class LanguagesResponse(BaseModel):
    success: bool = True
    supported_languages: Dict[str, LanguageEntry]


class DurationResponse(BaseModel):
    success: bool = True
    filename: str
    duration_seconds: float
    duration_formatted: str


class HealthResponse(BaseModel):
    status: str
    time: str
    temp_files: int
    saved_files: int
    current_file_index: int

