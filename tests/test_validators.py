"""
Tests for request validation, the language directory and the error
envelope.

Tests cover:
- Rule order (text, length, language, format; first failure wins)
- Defaults and alias keys
- Language aliases, codes and display names
- T2AError.to_dict() and HTTP status mapping
"""
import pytest

from t2a.services import (
    ArtifactNotFound,
    AudioFormat,
    ErrorCode,
    LANGUAGES,
    StorageError,
    SynthesisFailure,
    T2AError,
    TranscodeFailure,
    ValidationError,
    internal_error,
    validate_request,
)


class TestTextRules:
    @pytest.mark.parametrize("text", [None, "", "   ", "\n\t", 42, ["a"], {"a": 1}])
    def test_invalid_text(self, text):
        body = {} if text is None else {"text": text}
        with pytest.raises(ValidationError) as exc:
            validate_request(body)
        assert exc.value.code == ErrorCode.INVALID_TEXT
        assert exc.value.status_code == 400
        assert exc.value.title == "Invalid text"

    def test_length_limit_inclusive(self):
        assert validate_request({"text": "a" * 5000}).text_length == 5000

    def test_too_long(self):
        with pytest.raises(ValidationError) as exc:
            validate_request({"text": "a" * 5001})
        assert exc.value.code == ErrorCode.TEXT_TOO_LONG
        assert exc.value.message == "Text too long (max 5000 chars)"
        assert exc.value.details == {"length": 5001, "max": 5000}

    def test_custom_limit(self):
        with pytest.raises(ValidationError):
            validate_request({"text": "hello"}, max_text_chars=4)

    def test_text_not_stripped(self):
        req = validate_request({"text": "  hi  "})
        assert req.text == "  hi  "
        assert req.text_length == 6


class TestRuleOrder:
    def test_text_checked_before_language(self):
        with pytest.raises(ValidationError) as exc:
            validate_request({"text": "", "lang": "klingon", "file": "ogg"})
        assert exc.value.code == ErrorCode.INVALID_TEXT

    def test_length_checked_before_language(self):
        with pytest.raises(ValidationError) as exc:
            validate_request({"text": "x" * 6000, "lang": "klingon"})
        assert exc.value.code == ErrorCode.TEXT_TOO_LONG

    def test_language_checked_before_format(self):
        with pytest.raises(ValidationError) as exc:
            validate_request({"text": "hi", "lang": "klingon", "file": "ogg"})
        assert exc.value.code == ErrorCode.UNSUPPORTED_LANGUAGE
        assert "english" in exc.value.details["supported"]
        assert "en" in exc.value.details["supported"]

    def test_unsupported_format(self):
        with pytest.raises(ValidationError) as exc:
            validate_request({"text": "hi", "file": "ogg"})
        assert exc.value.code == ErrorCode.UNSUPPORTED_FORMAT
        assert exc.value.details == {"supported": ["mp3", "wav"]}


class TestDefaultsAndAliases:
    def test_defaults(self):
        req = validate_request({"text": "Hello"})
        assert req.language == "en"
        assert req.language_alias == "english"
        assert req.language_name == "English"
        assert req.output_format is AudioFormat.MP3

    def test_null_fields_use_defaults(self):
        req = validate_request({"text": "Hello", "lang": None, "file": None})
        assert req.language == "en"
        assert req.output_format is AudioFormat.MP3

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_fields_use_defaults(self, blank):
        req = validate_request({"text": "Hello", "lang": blank, "file": blank})
        assert req.language == "en"
        assert req.language_alias == "english"
        assert req.output_format is AudioFormat.MP3

    def test_blank_lang_falls_through_to_alternate_key(self):
        req = validate_request({"text": "Hola", "lang": "", "language": "es", "file": " ", "format": "wav"})
        assert req.language == "es"
        assert req.output_format is AudioFormat.WAV

    def test_case_and_whitespace_insensitive(self):
        req = validate_request({"text": "नमस्ते", "lang": " Hindi ", "file": "WAV"})
        assert req.language == "hi"
        assert req.language_alias == "hindi"
        assert req.output_format is AudioFormat.WAV

    def test_alternate_keys(self):
        req = validate_request({"text": "Hola", "language": "es", "format": "wav"})
        assert req.language == "es"
        assert req.output_format is AudioFormat.WAV
        req = validate_request({"text": "Hola", "output_format": "mp3"})
        assert req.output_format is AudioFormat.MP3

    def test_configured_defaults(self):
        req = validate_request({"text": "x"}, default_language="urdu", default_format="wav")
        assert req.language == "ur"
        assert req.output_format is AudioFormat.WAV

    def test_non_string_language_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_request({"text": "x", "lang": 7})
        assert exc.value.code == ErrorCode.UNSUPPORTED_LANGUAGE


class TestLanguageDirectory:
    def test_all_languages(self):
        expected = {
            "english": ("en", "English"),
            "hindi": ("hi", "Hindi"),
            "arabic": ("ar", "Arabic"),
            "telugu": ("te", "Telugu"),
            "bengali": ("bn", "Bengali"),
            "urdu": ("ur", "Urdu"),
            "spanish": ("es", "Spanish"),
        }
        for alias, (code, name) in expected.items():
            assert LANGUAGES.resolve(alias) == code
            assert LANGUAGES.display_name(code) == name

    def test_codes_resolve_to_themselves(self):
        for code in LANGUAGES.codes():
            assert LANGUAGES.resolve(code) == code

    def test_unknown(self):
        assert LANGUAGES.resolve("klingon") is None
        assert "klingon" not in LANGUAGES
        assert 5 not in LANGUAGES
        assert "Bengali" in LANGUAGES

    def test_listing_has_full_names_only(self):
        listing = LANGUAGES.listing()
        assert len(listing) == 7
        assert listing["telugu"] == {"code": "te", "name": "Telugu"}
        assert "te" not in listing

    def test_aliases_sorted(self):
        aliases = LANGUAGES.aliases()
        assert aliases == sorted(aliases)
        assert len(aliases) == 14


class TestAudioFormat:
    def test_properties(self):
        assert AudioFormat.MP3.content_type == "audio/mpeg"
        assert AudioFormat.WAV.content_type == "audio/wav"
        assert AudioFormat.WAV.extension == "wav"
        assert AudioFormat.values() == ["mp3", "wav"]


class TestErrorEnvelope:
    def test_validation_envelope(self):
        err = ValidationError("Unsupported format", ErrorCode.UNSUPPORTED_FORMAT, details={"supported": ["mp3"]})
        assert err.to_dict() == {
            "success": False,
            "error": "Unsupported format",
            "code": "UNSUPPORTED_FORMAT",
            "message": "Unsupported format",
            "details": {"supported": ["mp3"]},
        }

    def test_details_omitted_when_empty(self):
        d = SynthesisFailure("engine down").to_dict()
        assert "details" not in d
        assert d["error"] == "Speech synthesis failed"
        assert d["code"] == ErrorCode.SYNTHESIS_FAILED

    @pytest.mark.parametrize(
        "err,status,code",
        [
            (SynthesisFailure("x"), 500, ErrorCode.SYNTHESIS_FAILED),
            (TranscodeFailure("x"), 500, ErrorCode.TRANSCODE_FAILED),
            (ArtifactNotFound("x"), 404, ErrorCode.NOT_FOUND),
            (StorageError("x"), 500, ErrorCode.STORAGE_ERROR),
            (ValidationError("x"), 400, ErrorCode.INVALID_REQUEST),
        ],
    )
    def test_status_mapping(self, err, status, code):
        assert isinstance(err, T2AError)
        assert err.status_code == status
        assert err.code == code

    def test_status_override(self):
        assert T2AError("x", status_code=503).status_code == 503
        assert T2AError("x").status_code == 500

    def test_internal_error_is_generic(self):
        err = internal_error()
        assert err.status_code == 500
        assert err.code == ErrorCode.INTERNAL_ERROR
        assert err.to_dict()["error"] == "Internal server error"
